"""
Request Governor

Serializes analysis requests: at most one job in flight per process, and a
minimum interval between job starts. Requests that cannot start are rejected
immediately with a retry hint; nothing is queued.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, NamedTuple

from upsc_digest.core.config import settings
from upsc_digest.core.errors import CooldownActiveError, GovernorBusyError

logger = logging.getLogger(__name__)


class GovernorState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"


class GovernorStatus(NamedTuple):
    """Snapshot of the governor for health reporting."""
    state: GovernorState
    cooldown_remaining: float


class RequestGovernor:
    """
    Single-job gate with a cooldown between job starts.

    The busy flag and the last-start timestamp are only read and written
    under one lock, so the rejection check and the acquisition are a single
    atomic step.
    """

    def __init__(
        self,
        cooldown_seconds: float | None = None,
        busy_retry_after: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Parameters
        ----------
        cooldown_seconds : float
            Minimum time between the starts of two admitted requests.
        busy_retry_after : int
            Retry hint (seconds) returned while a job is processing.
        clock : Callable[[], float]
            Monotonic time source; injectable for tests.
        """
        self._cooldown = settings.REQUEST_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        self._busy_retry_after = busy_retry_after or settings.BUSY_RETRY_AFTER_SECONDS
        self._clock = clock
        self._lock = threading.Lock()
        self._processing = False
        self._last_start: float | None = None

    def acquire(self) -> None:
        """
        Admit one request or reject it.

        Raises
        ------
        GovernorBusyError
            Another analysis is processing.
        CooldownActiveError
            The previous request started less than the cooldown ago.
        """
        with self._lock:
            if self._processing:
                logger.info("Another analysis is in progress; rejecting request")
                raise GovernorBusyError(
                    "request rejected: governor busy",
                    user_message=(
                        "Another newspaper is being analyzed. "
                        f"Please wait {self._busy_retry_after} seconds and try again."
                    ),
                    retry_after=self._busy_retry_after,
                )
            now = self._clock()
            if self._last_start is not None:
                elapsed = now - self._last_start
                if elapsed < self._cooldown:
                    wait = max(1, math.ceil(self._cooldown - elapsed))
                    logger.info("Cooldown active (%.1fs since last request)", elapsed)
                    raise CooldownActiveError(
                        f"request rejected: cooldown {wait}s remaining",
                        user_message=f"Please wait {wait} seconds before uploading another document.",
                        retry_after=wait,
                    )
            self._processing = True
            self._last_start = now
        logger.info("Lock acquired - starting analysis")

    def release(self) -> None:
        with self._lock:
            self._processing = False
        logger.info("Lock released")

    @contextmanager
    def admit(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def status(self) -> GovernorStatus:
        with self._lock:
            state = GovernorState.PROCESSING if self._processing else GovernorState.IDLE
            remaining = 0.0
            if self._last_start is not None:
                remaining = max(0.0, self._cooldown - (self._clock() - self._last_start))
        return GovernorStatus(state=state, cooldown_remaining=remaining)


governor = RequestGovernor()
