"""TokenAuditLogger: JSONL audit trail for token lifecycle events.

Every lifecycle transition (issuance, validation, consumption, denied
impersonation, sweep) is appended as a single JSON line to the configured
log file. Token metadata is never written; token ids and identities are.

If no file path is configured the logger emits to an in-memory buffer
that can be drained via :meth:`TokenAuditLogger.drain_buffer`.
"""
from __future__ import annotations

import datetime
import json
import threading
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class AuditEvent:
    """A single auditable token event.

    Parameters
    ----------
    event_type:
        Short snake_case string identifying the event (e.g. "token_issued").
    owner:
        Identity the affected token authenticates as.
    actor:
        Identity that triggered the event. Defaults to "system".
    details:
        Arbitrary key-value data about the event.
    timestamp:
        UTC datetime of the event. Defaults to now.
    """

    event_type: str
    owner: str
    actor: str = "system"
    details: dict[str, object] = field(default_factory=dict)
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary suitable for JSON encoding."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
            "owner": self.owner,
            "actor": self.actor,
            "details": self.details,
        }


class TokenAuditLogger:
    """Append-only JSONL audit logger for token events.

    Thread-safe. Each call to :meth:`log` appends one JSON line to the
    configured file path (or to the in-memory buffer if no path is set).

    Parameters
    ----------
    log_path:
        Path to the JSONL log file. Parent directories are created
        automatically. If None, events are buffered in memory only.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._buffer: list[str] = []
        self._lock = threading.Lock()

        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Core logging
    # ------------------------------------------------------------------

    def log(self, event: AuditEvent) -> None:
        """Append an audit event to the log."""
        line = json.dumps(event.to_dict(), separators=(",", ":"), default=str)
        with self._lock:
            if self._log_path is not None:
                with self._log_path.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            else:
                self._buffer.append(line)

    def log_event(
        self,
        event_type: str,
        owner: str,
        actor: str = "system",
        **details: object,
    ) -> None:
        """Log a simple event without constructing an AuditEvent."""
        self.log(AuditEvent(event_type=event_type, owner=owner, actor=actor, details=dict(details)))

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    def log_issued(
        self,
        token_id: str,
        owner: str,
        actor: str,
        uses: int,
        deadline: datetime.datetime,
    ) -> None:
        """Log a token_issued event. *actor* differs from *owner* on impersonation."""
        self.log_event(
            "token_issued",
            owner=owner,
            actor=actor,
            token_id=token_id,
            uses=uses,
            deadline=deadline.isoformat(),
            impersonated=actor != owner,
        )

    def log_validated(self, token_id: str, owner: str, uses_remaining: int) -> None:
        """Log a token_validated event."""
        self.log_event(
            "token_validated",
            owner=owner,
            actor=owner,
            token_id=token_id,
            uses_remaining=uses_remaining,
        )

    def log_consumed(self, token_id: str, owner: str) -> None:
        """Log a token_consumed event."""
        self.log_event("token_consumed", owner=owner, token_id=token_id)

    def log_impersonation_denied(self, requester: str, target: str) -> None:
        """Log an impersonation_denied event."""
        self.log_event("impersonation_denied", owner=target, actor=requester)

    def log_sweep(self, dead: int, expired: int) -> None:
        """Log a tokens_swept event."""
        self.log_event("tokens_swept", owner="*", dead=dead, expired=expired)

    # ------------------------------------------------------------------
    # Buffer access
    # ------------------------------------------------------------------

    def drain_buffer(self) -> list[str]:
        """Return and clear the in-memory event buffer, oldest first."""
        with self._lock:
            events = list(self._buffer)
            self._buffer.clear()
        return events

    def read_log(self, tail: int | None = None) -> list[dict[str, object]]:
        """Read events from the log file (or the buffer when no file is set).

        Parameters
        ----------
        tail:
            If provided, return only the last *tail* events.
        """
        if self._log_path is None or not self._log_path.exists():
            with self._lock:
                lines = list(self._buffer)
        else:
            with self._lock:
                lines = self._log_path.read_text(encoding="utf-8").splitlines()

        parsed: list[dict[str, object]] = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            try:
                parsed.append(json.loads(stripped))
            except json.JSONDecodeError:
                continue

        if tail is not None:
            return parsed[-tail:] if tail > 0 else []
        return parsed
