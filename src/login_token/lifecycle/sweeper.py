"""ExpirySweeper: physical removal of dead and expired tokens.

A sweep runs two independent bulk deletes:

1. every token with ``uses_remaining == 0``;
2. every token whose deadline is strictly before now.

Each phase logs its own count. A failing phase raises
:class:`~login_token.errors.InternalError`; if phase 2 fails, phase 1's
deletions stand. Deletes are idempotent, so a failed sweep is safe to
repeat. Valid tokens never match either phase.

:class:`PeriodicSweeper` runs a sweep on a fixed interval in a daemon
thread. It shares no lock with request handling.
"""
from __future__ import annotations

import datetime
import logging
import threading

from login_token.audit import TokenAuditLogger
from login_token.errors import InternalError, StoreError
from login_token.store.base import TokenStore
from login_token.tokens.token import Clock, utc_now

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = datetime.timedelta(hours=24)


class ExpirySweeper:
    """Deletes tokens that can no longer be validated.

    Parameters
    ----------
    store:
        Backend holding the tokens.
    clock:
        Returns the current server time.
    audit:
        Optional audit trail.
    """

    def __init__(
        self,
        store: TokenStore,
        clock: Clock = utc_now,
        audit: TokenAuditLogger | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._audit = audit

    def sweep(self) -> int:
        """Run both phases and return the total number of deleted tokens.

        Raises
        ------
        InternalError
            If either bulk delete fails.
        """
        try:
            dead = self._store.delete_where(lambda token: token.is_dead)
        except StoreError:
            logger.exception("Sweep of dead tokens failed")
            raise InternalError() from None
        logger.info("Deleted %d dead tokens", len(dead))

        now = self._clock()
        try:
            expired = self._store.delete_where(lambda token: token.is_expired(now))
        except StoreError:
            logger.exception("Sweep of expired tokens failed after deleting %d dead", len(dead))
            raise InternalError() from None
        logger.info("Deleted %d expired tokens", len(expired))

        if self._audit is not None:
            self._audit.log_sweep(dead=len(dead), expired=len(expired))
        return len(dead) + len(expired)


class PeriodicSweeper:
    """Runs :meth:`ExpirySweeper.sweep` on a fixed interval.

    The first sweep happens one interval after :meth:`start`. Failures are
    logged and the timer keeps going.

    Parameters
    ----------
    sweeper:
        The sweeper to drive.
    interval:
        Time between sweeps. Defaults to 24 hours.
    """

    def __init__(
        self,
        sweeper: ExpirySweeper,
        interval: datetime.timedelta = SWEEP_INTERVAL,
    ) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self._sweeper = sweeper
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.runs = 0

    @property
    def running(self) -> bool:
        """Return True while the background thread is alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Start the background thread. No-op if already running."""
        with self._lock:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._worker, name="token-sweeper", daemon=True
            )
            self._thread.start()
        logger.info("Token sweeper started, interval %s", self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to stop and wait up to *timeout* seconds for it."""
        self._stop.set()
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None:
            thread.join(timeout=timeout)
            logger.info("Token sweeper stopped")

    def run_once(self) -> int | None:
        """Sweep now. Returns the deleted count, or None if the sweep failed."""
        try:
            deleted = self._sweeper.sweep()
        except InternalError:
            logger.error("Scheduled token sweep failed; retrying next cycle")
            return None
        finally:
            self.runs += 1
        return deleted

    def _worker(self) -> None:
        seconds = self._interval.total_seconds()
        while not self._stop.wait(seconds):
            self.run_once()
