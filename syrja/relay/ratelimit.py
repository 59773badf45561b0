"""Fixed-window rate limiting keyed by connection origin address."""
from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
"""Default number of admitted operations per window."""

DEFAULT_WINDOW = 60.0
"""Default window length in seconds."""


@dataclasses.dataclass
class RateWindow:
    """Operations admitted for one origin in the current window.

    Attributes:
        count: Number of operations admitted since `start`.
        start: Clock reading when the window opened.
    """

    count: int
    start: float


class RateLimiter:
    """Fixed-window counter, one window per origin address.

    The first operation from an origin opens a window. Operations are
    admitted until `limit` have been admitted in that window, after which
    they are rejected until more than `window` seconds have passed since
    the window opened. The next operation then opens a fresh window.

    Note:
        This is a fixed, not sliding, window. A burst straddling a window
        boundary can be admitted up to `2 * limit` times in less than
        `window` seconds.

    Args:
        limit: Maximum number of admitted operations per window.
        window: Window length in seconds.
        clock: Zero argument callable returning the current time in
            seconds. Must be monotonic.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window: float = DEFAULT_WINDOW,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError('Limit must be >= 1.')
        if window <= 0:
            raise ValueError('Window must be greater than zero.')
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def get_window(self, origin: str) -> RateWindow | None:
        """Get the current window of an origin if one exists."""
        return self._windows.get(origin, None)

    def check(self, origin: str) -> bool:
        """Charge one operation to an origin.

        Args:
            origin: Origin address of the connection making the operation.

        Returns:
            `True` if the operation is admitted, `False` if the origin has
            exhausted its window.
        """
        now = self._clock()
        record = self._windows.get(origin, None)

        if record is None or now - record.start > self.window:
            self._windows[origin] = RateWindow(count=1, start=now)
            return True

        if record.count >= self.limit:
            return False

        record.count += 1
        return True

    def sweep(self) -> int:
        """Forget windows which have expired.

        An expired window is reset by the next
        [`check()`][syrja.relay.ratelimit.RateLimiter.check] of its origin
        anyway, so removing it does not change any outcome.

        Returns:
            Number of windows removed.
        """
        now = self._clock()
        expired = [
            origin
            for origin, record in self._windows.items()
            if now - record.start > self.window
        ]
        for origin in expired:
            del self._windows[origin]
        if expired:
            logger.debug(f'Swept {len(expired)} expired rate limit windows')
        return len(expired)
