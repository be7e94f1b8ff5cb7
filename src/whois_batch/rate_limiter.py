"""
Rate Limiter module for the batch lookup system.

This module enforces a minimum interval between successive requests to the
same channel:
- Serial access per channel (one asyncio.Lock per channel name)
- The read-delay-write of the last issue time happens under that lock
- Different channels are fully independent
"""

import asyncio
import time
from collections import defaultdict
from typing import Optional

from .audit_logger import AuditLogger
from .config import RateLimitConfig


class RateLimiter:
    """
    Per-channel minimum-interval limiter.

    Ensures:
    - Two wait() calls for the same channel return at least the channel's
      minimum interval apart, even when issued concurrently
    - Waits on one channel never delay another channel
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            config: Per-channel minimum intervals and the default interval
            logger: Optional logger for recording enforced delays
        """
        self._config = config or RateLimitConfig()
        self._logger = logger
        # Monotonic time at which wait() last returned, per channel
        self._last_issue: dict[str, float] = {}
        # Locks belong to the event loop that created them
        self._locks: dict[str, asyncio.Lock] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._delays_applied: dict[str, int] = defaultdict(int)

    def min_interval(self, channel: str) -> float:
        """Minimum interval in seconds for a channel."""
        return self._config.interval_for(channel)

    async def wait(self, channel: str) -> float:
        """
        Suspend until the channel's minimum interval has elapsed.

        The elapsed-time check, the sleep and the timestamp update run under
        the channel lock, so concurrent callers queue up behind each other
        instead of reading the same stale timestamp.

        Args:
            channel: Channel name (e.g. 'whois_verisign')

        Returns:
            Total seconds spent sleeping
        """
        interval = self.min_interval(channel)
        slept = 0.0

        async with self._lock_for(channel):
            last = self._last_issue.get(channel)
            while last is not None:
                remaining = interval - (time.monotonic() - last)
                if remaining <= 0:
                    break
                await asyncio.sleep(remaining)
                slept += remaining

            self._last_issue[channel] = time.monotonic()

        if slept > 0:
            self._delays_applied[channel] += 1
            if self._logger:
                self._logger.debug(
                    "RateLimiter",
                    f"Delayed request on {channel}",
                    {"channel": channel, "delay_ms": round(slept * 1000, 1)},
                )
        return slept

    def _lock_for(self, channel: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            self._locks = {}
            self._loop = loop
        lock = self._locks.get(channel)
        if lock is None:
            lock = self._locks[channel] = asyncio.Lock()
        return lock

    def last_issue_time(self, channel: str) -> Optional[float]:
        """Monotonic timestamp of the last request released on a channel."""
        return self._last_issue.get(channel)

    def delays_applied(self, channel: str) -> int:
        """Number of wait() calls on a channel that had to sleep."""
        return self._delays_applied[channel]

    def reset(self, channel: Optional[str] = None) -> None:
        """Forget issue times for one channel, or all channels."""
        if channel is None:
            self._last_issue.clear()
            self._delays_applied.clear()
        else:
            self._last_issue.pop(channel, None)
            self._delays_applied.pop(channel, None)
