"""Rate limiting for the weather provider.

The provider enforces three independent request budgets (per second,
per hour, per day). RateLimiter tracks recent requests in one sliding
window per budget and answers whether another request may be made now.

State is in-memory and lives as long as the process; counters reset on
restart. The clock and sleep functions are injectable so the limiter
can be driven deterministically.
"""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from weather_alerts.core.config import RateLimitConfig


logger = logging.getLogger(__name__)


SECOND_MS = 1_000
HOUR_MS = 3_600_000
DAY_MS = 86_400_000

# Shortest sleep between re-checks in wait_until_allowed
MIN_WAIT_MS = 100


class Window(str, Enum):
    """Sliding windows, tightest first."""
    SECOND = "second"
    HOUR = "hour"
    DAY = "day"


WINDOW_LENGTH_MS: dict[Window, int] = {
    Window.SECOND: SECOND_MS,
    Window.HOUR: HOUR_MS,
    Window.DAY: DAY_MS,
}


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission check.

    Attributes:
        allowed: Whether a request may be made now
        limiting_window: First saturated window (None if allowed)
        wait_time_ms: Time until the oldest entry of that window expires
        current_count: Requests counted in the limiting window
        limit: Budget of the limiting window
    """
    allowed: bool
    limiting_window: Window | None = None
    wait_time_ms: int = 0
    current_count: int = 0
    limit: int = 0

    @property
    def reason(self) -> str | None:
        """Human-readable reason when the request is not allowed."""
        if self.allowed or self.limiting_window is None:
            return None
        return (
            f"Limit of {self.limit} requests per {self.limiting_window.value} "
            f"reached ({self.current_count}/{self.limit})"
        )


@dataclass(frozen=True)
class WindowStats:
    """Usage snapshot of one window."""
    current: int
    limit: int
    available: int
    percentage: float


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def _sleep_ms(milliseconds: float) -> None:
    time.sleep(milliseconds / 1000)


class RateLimiter:
    """Three-window sliding rate limiter for provider requests.

    Callers are expected to check admission (can_make_request or
    wait_until_allowed) and then call record_request exactly once per
    outbound request, on the same thread, with no other request in
    between.
    """

    def __init__(
        self,
        config: "RateLimitConfig | None" = None,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Request budgets (defaults: 3/s, 25/h, 500/day)
            clock: Returns the current time in milliseconds
            sleep: Blocks for the given number of milliseconds
        """
        if config is None:
            from weather_alerts.core.config import RateLimitConfig
            config = RateLimitConfig()

        self.config = config
        self.limits: dict[Window, int] = {
            Window.SECOND: config.per_second,
            Window.HOUR: config.per_hour,
            Window.DAY: config.per_day,
        }
        self._clock = clock or _monotonic_ms
        self._sleep = sleep or _sleep_ms
        self._windows: dict[Window, deque[float]] = {w: deque() for w in Window}

    def _prune(self, now: float) -> None:
        """Drop entries that have left their window."""
        for window, entries in self._windows.items():
            length = WINDOW_LENGTH_MS[window]
            while entries and now - entries[0] >= length:
                entries.popleft()

    def can_make_request(self) -> RateLimitResult:
        """Check whether a request may be made now.

        Windows are checked tightest first, so the reported window is the
        one that would block soonest.

        Returns:
            RateLimitResult describing the first saturated window, if any
        """
        now = self._clock()
        self._prune(now)

        for window in Window:
            entries = self._windows[window]
            limit = self.limits[window]
            if len(entries) >= limit:
                oldest = entries[0] if entries else now
                wait = WINDOW_LENGTH_MS[window] - (now - oldest)
                return RateLimitResult(
                    allowed=False,
                    limiting_window=window,
                    wait_time_ms=max(0, math.ceil(wait)),
                    current_count=len(entries),
                    limit=limit,
                )

        return RateLimitResult(allowed=True)

    def record_request(self) -> None:
        """Record one outbound request in every window."""
        now = self._clock()
        for entries in self._windows.values():
            entries.append(now)
        self._prune(now)

    def wait_until_allowed(self, max_wait_ms: int | None = None) -> bool:
        """Block until a request is allowed or the wait budget runs out.

        Sleeps for the wait time of the limiting window, clamped to
        [MIN_WAIT_MS, max_wait_ms], then re-checks, since another window
        may have become the bottleneck.

        Args:
            max_wait_ms: Give up after this long (defaults to config.max_wait_ms)

        Returns:
            True if a request is allowed now, False if the wait timed out
        """
        if max_wait_ms is None:
            max_wait_ms = self.config.max_wait_ms

        start = self._clock()

        while True:
            check = self.can_make_request()
            if check.allowed:
                return True

            elapsed = self._clock() - start
            if elapsed >= max_wait_ms:
                logger.warning(
                    "Gave up waiting for rate limit after %dms (%s)",
                    elapsed,
                    check.reason,
                )
                return False

            delay = min(max(check.wait_time_ms, MIN_WAIT_MS), max_wait_ms)
            logger.debug(
                "Waiting %dms for %s window",
                delay,
                check.limiting_window.value,
            )
            self._sleep(delay)

    def get_max_allowed_requests(self) -> int:
        """Number of requests that fit in the tightest remaining budget."""
        self._prune(self._clock())
        available = [
            self.limits[w] - len(self._windows[w]) for w in Window
        ]
        return max(0, min(available))

    @property
    def min_spacing_ms(self) -> int:
        """Smallest spacing that keeps requests under the per-second budget."""
        return math.ceil(SECOND_MS / self.limits[Window.SECOND])

    def calculate_optimal_delay(self, total_requests: int) -> int:
        """Delay between sequential requests for a batch.

        Large batches (more than the hourly budget) are spread evenly over
        one hour; otherwise requests are spaced just enough to stay under
        the per-second budget.

        Args:
            total_requests: Requests the caller intends to make

        Returns:
            Delay in milliseconds between requests
        """
        min_delay = self.min_spacing_ms

        if total_requests > self.limits[Window.HOUR]:
            return max(min_delay, HOUR_MS // total_requests)

        return min_delay

    def get_stats(self) -> dict[str, WindowStats]:
        """Current usage per window.

        Returns:
            Mapping of per_second/per_hour/per_day to WindowStats
        """
        self._prune(self._clock())

        stats = {}
        for window in Window:
            current = len(self._windows[window])
            limit = self.limits[window]
            stats[f"per_{window.value}"] = WindowStats(
                current=current,
                limit=limit,
                available=max(0, limit - current),
                percentage=round(current / limit * 100, 1) if limit else 0.0,
            )
        return stats

    def reset(self) -> None:
        """Clear all counters."""
        for entries in self._windows.values():
            entries.clear()
        logger.warning("Rate limiter reset")
