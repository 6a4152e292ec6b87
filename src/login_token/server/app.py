"""HTTP server for login-token using stdlib http.server.

Routes:
    POST   /rpc      invoke one RPC method
    GET    /health   health check

The requester identity is read from a header (``X-Nexus-User`` by default)
that the authenticating gateway in front of this service sets. Requests
without it are rejected with 401.

Usage:
    python -m login_token.server.app --port 8088
    python -m login_token.server.app --host 127.0.0.1 --db tokens.db
"""
from __future__ import annotations

import argparse
import json
import logging
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from login_token.config import LoginTokenSettings, get_settings
from login_token.lifecycle.service import TokenService
from login_token.server import routes

logger = logging.getLogger(__name__)


class LoginTokenServer(ThreadingHTTPServer):
    """Threaded HTTP server bound to one :class:`TokenService`.

    Each request runs in its own thread; the service is shared.
    """

    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        service: TokenService,
        requester_header: str = "X-Nexus-User",
    ) -> None:
        self.service = service
        self.requester_header = requester_header
        super().__init__(address, LoginTokenHandler)


class LoginTokenHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the login-token server."""

    server: LoginTokenServer

    def log_message(self, format: str, *args: object) -> None:
        """Override to route access logs through the Python logging system."""
        logger.debug(format, *args)

    # ── GET ───────────────────────────────────────────────────────────────────

    def do_GET(self) -> None:
        """Handle all GET requests by routing on the URL path."""
        path = urllib.parse.urlparse(self.path).path.rstrip("/")

        if path == "/health":
            status, data = routes.handle_health(self.server.service)
            self._send_json(status, data)
        else:
            self._send_json(404, {"error": "Not found", "detail": f"No route for GET {path}"})

    # ── POST ──────────────────────────────────────────────────────────────────

    def do_POST(self) -> None:
        """Handle all POST requests by routing on the URL path."""
        path = urllib.parse.urlparse(self.path).path.rstrip("/")

        if path != "/rpc":
            self._send_json(404, {"error": "Not found", "detail": f"No route for POST {path}"})
            return

        requester = (self.headers.get(self.server.requester_header) or "").strip()
        if not requester:
            self._send_json(
                401,
                {
                    "error": "Unauthorized",
                    "detail": f"Missing {self.server.requester_header} header",
                },
            )
            return

        body = self._read_json_body()
        if body is None:
            return

        status, data = routes.handle_rpc(self.server.service, requester, body)
        self._send_json(status, data)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _send_json(self, status: int, data: dict[str, object]) -> None:
        """Serialize *data* to JSON and send an HTTP response with *status*."""
        body = json.dumps(data, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_json_body(self) -> dict[str, object] | None:
        """Read and parse the JSON request body.

        Returns None (and sends a 400 error response) if parsing fails or
        the body is not a JSON object.
        """
        content_length = int(self.headers.get("Content-Length", 0))
        if content_length == 0:
            return {}

        raw = self.rfile.read(content_length)
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            self._send_json(400, {"error": "Invalid JSON", "detail": str(exc)})
            return None
        if not isinstance(parsed, dict):
            self._send_json(400, {"error": "Invalid JSON", "detail": "Body must be an object"})
            return None
        return parsed


def create_server(
    service: TokenService,
    host: str = "0.0.0.0",
    port: int = 8088,
    requester_header: str = "X-Nexus-User",
) -> LoginTokenServer:
    """Create (but do not start) the login-token HTTP server.

    Parameters
    ----------
    service:
        The service every request is dispatched to.
    host:
        Bind address (default ``"0.0.0.0"``, all interfaces).
    port:
        TCP port to listen on (default 8088; 0 picks a free port).
    requester_header:
        Header carrying the requester identity.
    """
    server = LoginTokenServer((host, port), service, requester_header=requester_header)
    logger.info("login-token server created at http://%s:%d", host, server.server_address[1])
    return server


def run_server(settings: LoginTokenSettings | None = None) -> None:
    """Build the service, start the daily sweeper and serve (blocking)."""
    settings = settings or get_settings()
    service = TokenService.from_settings(settings)
    sweeper = service.periodic_sweeper(settings.sweep_interval)
    server = create_server(
        service,
        host=settings.host,
        port=settings.port,
        requester_header=settings.requester_header,
    )
    sweeper.start()
    logger.info("Serving login-token on http://%s:%d, press Ctrl-C to stop", settings.host, settings.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down login-token server.")
    finally:
        sweeper.stop()
        server.server_close()
        service.store.close()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="login-token HTTP server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--port", type=int, default=None, help="TCP port")
    parser.add_argument("--db", default=None, help="SQLite file or :memory:")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


if __name__ == "__main__":
    args = _build_arg_parser().parse_args()
    overrides = {
        key: value
        for key, value in {
            "host": args.host,
            "port": args.port,
            "db_path": args.db,
            "log_level": args.log_level,
        }.items()
        if value is not None
    }
    settings = LoginTokenSettings(**overrides)
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    run_server(settings)
