"""Per-request admission control.

Every inbound request passes three gates, in order, before it is routed:

1. size guard: the serialized request must fit in ``MAX_MESSAGE_BYTES``
2. activity: the shared :class:`ActivityClock` is touched
3. rate limit: a sliding window per method name

A rejected request fails on its own; other requests are unaffected. The
:class:`ConnectionMonitor` watches the same clock and asks the server to shut
down after a period of inactivity.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any, Optional

from pydantic import BaseModel

from obsidian_mcp.constants import (
    IDLE_CHECK_INTERVAL_SECONDS,
    IDLE_TIMEOUT_SECONDS,
    MAX_MESSAGE_BYTES,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW_SECONDS,
    STARTUP_GRACE_SECONDS,
)
from obsidian_mcp.errors import PayloadTooLarge, RateLimitExceeded

logger = logging.getLogger(__name__)

TimeSource = Callable[[], float]


def serialized_size(message: Any) -> int:
    """Length of ``message`` as JSON text."""
    if isinstance(message, BaseModel):
        return len(message.model_dump_json(by_alias=True, exclude_none=True))
    return len(json.dumps(message, default=str))


def validate_message_size(message: Any, limit: int = MAX_MESSAGE_BYTES) -> None:
    """Raise :class:`PayloadTooLarge` if ``message`` serializes past ``limit``."""
    size = serialized_size(message)
    if size > limit:
        raise PayloadTooLarge(size, limit)


class ActivityClock:
    """Last-activity timestamp shared by the dispatcher and the idle watchdog.

    Writes are last-write-wins; the watchdog only needs an approximate value.
    """

    def __init__(self, time_source: TimeSource = time.monotonic) -> None:
        self._now = time_source
        self._last = time_source()
        self._touched = False

    @property
    def touched(self) -> bool:
        """Whether any request has been admitted yet."""
        return self._touched

    def touch(self) -> None:
        self._last = self._now()
        self._touched = True

    def idle_for(self) -> float:
        """Seconds since the last activity, or since creation if none."""
        return self._now() - self._last


class RateLimiter:
    """Sliding-window rate limiter keyed by method name.

    The limit is global across clients. Updates hold a lock so concurrent
    sessions cannot lose an increment.
    """

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        time_source: TimeSource = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._now = time_source
        self._windows: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def check_limit(self, key: str) -> bool:
        """Record a call for ``key`` and report whether it is within the limit.

        Rejected calls are not recorded.
        """
        now = self._now()
        cutoff = now - self._window_seconds
        with self._lock:
            window = self._windows.setdefault(key, deque())
            while window and window[0] <= cutoff:
                window.popleft()
            if len(window) >= self._max_requests:
                return False
            window.append(now)
            return True

    def get_stats(self, key: str) -> dict[str, Any]:
        """Current usage for ``key``."""
        cutoff = self._now() - self._window_seconds
        with self._lock:
            current = sum(1 for stamp in self._windows.get(key, ()) if stamp > cutoff)
        return {
            "current_count": current,
            "max_allowed": self._max_requests,
            "window_seconds": self._window_seconds,
            "remaining": max(0, self._max_requests - current),
        }


class AdmissionController:
    """Runs the size, activity, and rate gates for one request."""

    def __init__(
        self,
        clock: ActivityClock,
        limiter: RateLimiter,
        max_message_bytes: int = MAX_MESSAGE_BYTES,
    ) -> None:
        self.clock = clock
        self.limiter = limiter
        self.max_message_bytes = max_message_bytes

    def admit(self, method: str, message: Any) -> None:
        """Admit ``message`` or raise.

        Raises:
            PayloadTooLarge: If the message exceeds the size ceiling.
            RateLimitExceeded: If ``method`` is over its rate limit.
        """
        validate_message_size(message, self.max_message_bytes)
        self.clock.touch()
        if not self.limiter.check_limit(method):
            logger.warning("Rate limit exceeded for %s", method)
            raise RateLimitExceeded(method)


class ConnectionMonitor:
    """Idle watchdog.

    Polls the activity clock and invokes ``on_idle`` once the server has been
    idle longer than ``idle_timeout``. Until the first request arrives the
    longer ``startup_grace`` applies instead. The callback fires at most once.
    """

    def __init__(
        self,
        clock: ActivityClock,
        on_idle: Callable[[], Any],
        idle_timeout: float = IDLE_TIMEOUT_SECONDS,
        startup_grace: float = STARTUP_GRACE_SECONDS,
        check_interval: float = IDLE_CHECK_INTERVAL_SECONDS,
    ) -> None:
        self.clock = clock
        self.on_idle = on_idle
        self.idle_timeout = idle_timeout
        self.startup_grace = startup_grace
        self.check_interval = check_interval
        self._task: Optional[asyncio.Task[None]] = None
        self._fired = False

    @property
    def enabled(self) -> bool:
        return self.idle_timeout > 0

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def check(self) -> bool:
        """Evaluate the idle condition once.

        Returns:
            True once the callback has fired; the watchdog then exits.
        """
        if self._fired:
            return True

        limit = self.idle_timeout
        if not self.clock.touched:
            limit = max(limit, self.startup_grace)

        idle = self.clock.idle_for()
        if idle <= limit:
            return False

        self._fired = True
        logger.info("No activity for %.0f seconds, shutting down", idle)
        self.on_idle()
        return True

    async def _watch(self) -> None:
        while not self.check():
            await asyncio.sleep(self.check_interval)

    def start(self) -> None:
        """Start the watchdog on the running event loop.

        A non-positive ``idle_timeout`` disables monitoring.
        """
        if not self.enabled or self.running:
            return
        self._task = asyncio.create_task(self._watch(), name="obsidian-mcp-idle-watchdog")
        logger.debug(
            "Idle watchdog started (timeout=%ss, startup grace=%ss)",
            self.idle_timeout,
            self.startup_grace,
        )

    def stop(self) -> None:
        """Cancel the watchdog. Safe to call more than once."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
