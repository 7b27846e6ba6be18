"""Concurrency cap and time budget for browser sessions."""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator

from templatefetcher.errors import NavigationError, SessionError

logger = logging.getLogger(__name__)


class SessionGate:
    """Bounded semaphore limiting how many browsers run at once."""

    def __init__(self, max_sessions: int, acquire_timeout: float = 30.0) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        if acquire_timeout <= 0:
            raise ValueError("acquire_timeout must be > 0")
        self._max_sessions = max_sessions
        self._acquire_timeout = acquire_timeout
        self._semaphore = threading.BoundedSemaphore(max_sessions)
        self._lock = threading.Lock()
        self._active = 0

    @property
    def max_sessions(self) -> int:
        return self._max_sessions

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    @contextlib.contextmanager
    def slot(self, timeout: float | None = None, *, target_url: str = "") -> Iterator[None]:
        """Hold one session slot for the duration of the ``with`` block.

        Raises:
            SessionError: if no slot frees up within *timeout* seconds
                (defaults to the gate's ``acquire_timeout``).
        """
        wait = self._acquire_timeout if timeout is None else max(timeout, 0.0)
        if not self._semaphore.acquire(timeout=wait):
            raise SessionError(
                f"no browser session available after {wait:.1f}s "
                f"({self._max_sessions} already running)",
                target_url=target_url,
            )
        with self._lock:
            self._active += 1
        logger.debug("session slot acquired (%d/%d)", self._active, self._max_sessions)
        try:
            yield
        finally:
            with self._lock:
                self._active -= 1
            self._semaphore.release()


class Deadline:
    """Wall-clock budget shared by every step of one request."""

    def __init__(self, seconds: float) -> None:
        self._seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    def clamp_ms(self, wanted_ms: int) -> int:
        """Return *wanted_ms* capped to the time left (at least 1 ms)."""
        return max(1, min(wanted_ms, int(self.remaining() * 1000)))

    def check(self, stage: str, target_url: str = "") -> None:
        """Raise :class:`NavigationError` once the budget is spent."""
        if self.remaining() <= 0:
            raise self.exceeded(stage, target_url)

    def exceeded(self, stage: str, target_url: str = "") -> NavigationError:
        return NavigationError(
            f"request budget of {self._seconds:g}s exceeded while {stage}",
            target_url=target_url,
        )
