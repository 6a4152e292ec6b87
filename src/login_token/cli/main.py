"""CLI entry point for login-token.

Invoked as::

    login-token [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m login_token.cli.main

Commands
--------
serve      Run the HTTP JSON-RPC server with the daily sweeper
otp        Issue a one-hour single-use token
create     Issue a token with explicit uses/deadline/metadata
login      Validate a token and record one use
consume    Kill a token
list       List tokens visible to a requester
info       Show tokens by id
clear      Sweep dead and expired tokens now

Every command works against a token database (``--db``, defaulting to
``LOGIN_TOKEN_DB_PATH``) and, where permissions matter, a JSON grant table
(``--permissions``).
"""
from __future__ import annotations

import contextlib
import functools
import json
import logging
import sys
from typing import TYPE_CHECKING, Any, Callable, Iterator, Sequence

import click
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from login_token.config import LoginTokenSettings
    from login_token.lifecycle.service import TokenService
    from login_token.tokens.token import LoginToken

console = Console()


# ------------------------------------------------------------------
# Shared options
# ------------------------------------------------------------------


def _db_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--db",
        "db_path",
        default=None,
        help="SQLite token database, or ':memory:' (default: LOGIN_TOKEN_DB_PATH).",
    )(func)


def _permissions_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--permissions",
        "permissions_file",
        type=click.Path(exists=True, dir_okay=False),
        default=None,
        help="JSON grant table {requester: {path: {tag: bool}}} (default: LOGIN_TOKEN_PERMISSIONS_FILE).",
    )(func)


def _requester_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--as",
        "requester",
        required=True,
        help="Identity path the command runs as.",
    )(func)


def _reports_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn service errors into a red message and exit status 1."""
    from login_token.errors import PermissionLookupError, StoreError, TokenServiceError

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except TokenServiceError as exc:
            console.print(f"[red]Error:[/red] {exc.message} (code {exc.code})")
            sys.exit(1)
        except (PermissionLookupError, StoreError) as exc:
            console.print(f"[red]Error:[/red] {exc}")
            sys.exit(1)

    return wrapper


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="login-token")
def cli() -> None:
    """Issue, validate, consume and expire short-lived login tokens"""


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from login_token import __version__

    console.print(f"[bold]login-token[/bold] v{__version__}")


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@cli.command(name="serve")
@click.option("--host", default=None, help="Bind address (default: LOGIN_TOKEN_HOST).")
@click.option("--port", type=int, default=None, help="TCP port (default: LOGIN_TOKEN_PORT).")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level (default: LOGIN_TOKEN_LOG_LEVEL).",
)
@_db_option
@_permissions_option
@_reports_errors
def serve_command(
    host: str | None,
    port: int | None,
    log_level: str | None,
    db_path: str | None,
    permissions_file: str | None,
) -> None:
    """Run the HTTP JSON-RPC server (blocking)."""
    from login_token.server.app import run_server

    settings = _settings(
        host=host,
        port=port,
        log_level=log_level,
        db_path=db_path,
        permissions_file=permissions_file,
    )
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    console.print(f"[green]Serving[/green] login-token on http://{settings.host}:{settings.port}")
    run_server(settings)


# ------------------------------------------------------------------
# otp
# ------------------------------------------------------------------


@cli.command(name="otp")
@_requester_option
@_db_option
@_reports_errors
def otp_command(requester: str, db_path: str | None) -> None:
    """Issue a one-hour, single-use token for the requester."""
    with _open_service(db_path, None) as service:
        token_id = service.otp(requester)
        console.print(token_id)


# ------------------------------------------------------------------
# create
# ------------------------------------------------------------------


@cli.command(name="create")
@_requester_option
@click.option("--deadline", required=True, help="ISO-8601 instant or Unix seconds.")
@click.option(
    "--ttl",
    type=int,
    default=None,
    help="Number of uses (default 1; negative means unlimited).",
)
@click.option("--metadata", "-m", default=None, help="JSON value attached to the token.")
@click.option("--impersonate", default=None, help="Issue the token on behalf of this identity.")
@_db_option
@_permissions_option
@_reports_errors
def create_command(
    requester: str,
    deadline: str,
    ttl: int | None,
    metadata: str | None,
    impersonate: str | None,
    db_path: str | None,
    permissions_file: str | None,
) -> None:
    """Issue a token with explicit uses, deadline and metadata."""
    from login_token.lifecycle.requests import CreateRequest

    parsed_metadata: object = None
    if metadata:
        try:
            parsed_metadata = json.loads(metadata)
        except json.JSONDecodeError as exc:
            console.print(f"[red]Error:[/red] --metadata is not valid JSON: {exc}")
            sys.exit(1)

    deadline_value: object = deadline
    try:
        deadline_value = float(deadline)
    except ValueError:
        pass

    with _open_service(db_path, permissions_file) as service:
        request = CreateRequest(
            ttl=ttl,
            deadline=deadline_value,
            metadata=parsed_metadata,
            user_to_impersonate=impersonate,
        )
        token_id = service.create(requester, request)
        console.print(token_id)


# ------------------------------------------------------------------
# login / consume
# ------------------------------------------------------------------


@cli.command(name="login")
@click.argument("token_id")
@_db_option
@_reports_errors
def login_command(token_id: str, db_path: str | None) -> None:
    """Validate TOKEN_ID and record one use."""
    with _open_service(db_path, None) as service:
        token = service.login(token_id)
        console.print(f"[green]Valid[/green] token for [bold]{token.owner}[/bold]")
        console.print(f"  Uses left:  {_uses(token.uses_remaining)}")
        console.print(f"  Deadline:   {token.deadline.isoformat()}")


@cli.command(name="consume")
@click.argument("token_id")
@_db_option
@_reports_errors
def consume_command(token_id: str, db_path: str | None) -> None:
    """Kill TOKEN_ID so it can no longer be used."""
    with _open_service(db_path, None) as service:
        token = service.consume(token_id)
        console.print(f"[red]Consumed[/red] token [bold]{token.token_id}[/bold] of {token.owner}")


# ------------------------------------------------------------------
# list / info
# ------------------------------------------------------------------


@cli.command(name="list")
@_requester_option
@click.option("--path", default="", help="Identity path to list under (default: own tokens).")
@_db_option
@_permissions_option
@_reports_errors
def list_command(
    requester: str,
    path: str,
    db_path: str | None,
    permissions_file: str | None,
) -> None:
    """List tokens visible to the requester."""
    from login_token.lifecycle.requests import ListRequest

    with _open_service(db_path, permissions_file) as service:
        tokens = service.list(requester, ListRequest(path=path))
        _print_tokens(tokens, title="Tokens")


@cli.command(name="info")
@_requester_option
@click.argument("token_ids", nargs=-1, required=True)
@_db_option
@_permissions_option
@_reports_errors
def info_command(
    requester: str,
    token_ids: tuple[str, ...],
    db_path: str | None,
    permissions_file: str | None,
) -> None:
    """Show the tokens named by TOKEN_IDS."""
    from login_token.lifecycle.requests import InfoRequest

    with _open_service(db_path, permissions_file) as service:
        tokens = service.info(requester, InfoRequest(ids=list(token_ids)))
        _print_tokens(tokens, title="Token info", show_metadata=True)


# ------------------------------------------------------------------
# clear
# ------------------------------------------------------------------


@cli.command(name="clear")
@_db_option
@_reports_errors
def clear_command(db_path: str | None) -> None:
    """Delete dead and expired tokens now."""
    with _open_service(db_path, None) as service:
        deleted = service.clear()
        console.print(f"Deleted [bold]{deleted}[/bold] token(s)")


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _settings(**overrides: Any) -> LoginTokenSettings:
    """Return settings from the environment with non-None CLI *overrides* applied."""
    from login_token.config import LoginTokenSettings

    return LoginTokenSettings(**{key: value for key, value in overrides.items() if value is not None})


@contextlib.contextmanager
def _open_service(db_path: str | None, permissions_file: str | None) -> Iterator[TokenService]:
    """Yield a TokenService built from settings, with ``--db``/``--permissions`` applied."""
    from login_token.lifecycle.service import TokenService

    service = TokenService.from_settings(
        _settings(db_path=db_path, permissions_file=permissions_file)
    )
    try:
        yield service
    finally:
        service.store.close()


def _uses(uses_remaining: int) -> str:
    return "unlimited" if uses_remaining < 0 else str(uses_remaining)


def _print_tokens(tokens: Sequence[LoginToken], title: str, show_metadata: bool = False) -> None:
    if not tokens:
        console.print("[yellow]No tokens found.[/yellow]")
        return

    table = Table(title=title, show_header=True)
    table.add_column("Token ID", style="cyan")
    table.add_column("Owner")
    table.add_column("Uses", justify="right")
    table.add_column("Deadline")
    table.add_column("Last seen")
    if show_metadata:
        table.add_column("Metadata")

    for token in tokens:
        row = [
            token.token_id,
            token.owner,
            _uses(token.uses_remaining),
            token.deadline.isoformat(),
            token.last_used_at.isoformat() if token.last_used_at else "-",
        ]
        if show_metadata:
            row.append(json.dumps(token.metadata) if token.metadata is not None else "-")
        table.add_row(*row)

    console.print(table)
    console.print(f"\nTotal: {len(tokens)} token(s)")


if __name__ == "__main__":
    cli()
