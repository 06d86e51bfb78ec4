"""Fixed-window request limiting per caller."""

import math
import time
from typing import Callable

from .config import get_settings
from .errors import RateLimitExceededError


class RateLimiter:
    """Allows `max_requests` per caller in each `window_seconds` window.

    Expired windows are swept on access so the map stays bounded by the
    number of callers active within one window.
    """

    def __init__(
        self,
        max_requests: int | None = None,
        window_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.max_requests = max_requests or settings.rate_limit_max_requests
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}  # caller -> (window start, count)

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, caller_id: str) -> None:
        """Count one request for caller_id.

        Raises:
            RateLimitExceededError: If the caller is over the limit
        """
        now = self._clock()
        self._sweep(now)

        started, count = self._windows.get(caller_id, (now, 0))
        if count >= self.max_requests:
            retry_after = max(1, math.ceil(started + self.window_seconds - now))
            raise RateLimitExceededError(retry_after)
        self._windows[caller_id] = (started, count + 1)

    def _sweep(self, now: float) -> None:
        expired = [
            caller for caller, (started, _) in self._windows.items()
            if now - started >= self.window_seconds
        ]
        for caller in expired:
            del self._windows[caller]
