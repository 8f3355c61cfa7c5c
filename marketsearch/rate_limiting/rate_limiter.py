"""
Rate limiter for outbound geocoding requests.

Spaces consecutive calls by a minimum interval and enforces an hourly budget.
"""

import asyncio
import random
import time
from datetime import datetime, timedelta
from typing import List, Optional

from marketsearch.error_handling.errors import UpstreamRateLimited


class RateLimiter:
    """
    Rate limiter that enforces spacing between requests and an hourly limit.

    Attributes:
        min_interval_seconds: Minimum time between two requests
        jitter_seconds: Upper bound of random extra delay added to each wait
        max_requests_per_hour: Maximum number of requests in a rolling hour
        request_timestamps: Timestamps used for the hourly window
    """

    def __init__(
        self,
        min_interval_seconds: float = 0.1,
        jitter_seconds: float = 0.0,
        max_requests_per_hour: int = 1000
    ):
        self.min_interval_seconds = min_interval_seconds
        self.jitter_seconds = jitter_seconds
        self.max_requests_per_hour = max_requests_per_hour
        self.request_timestamps: List[datetime] = []
        self._last_request_at: Optional[float] = None

    async def acquire(self) -> None:
        """
        Reserve the next request slot and wait until it arrives.

        Raises:
            UpstreamRateLimited: If the hourly budget is already spent
        """
        if not self.check_hourly_limit():
            raise UpstreamRateLimited(
                f"Outbound budget of {self.max_requests_per_hour} requests/hour exhausted"
            )
        # Reserve the slot before sleeping so concurrent callers queue behind it
        delay = self._time_until_next_slot()
        self._last_request_at = time.monotonic() + delay
        self.record_request()
        if delay > 0:
            await asyncio.sleep(delay)

    def check_hourly_limit(self) -> bool:
        """
        Check if the hourly request limit has been reached.

        Removes timestamps older than 1 hour and checks if the number of
        requests in the last hour is under the limit.

        Returns:
            True if under the limit (can make more requests), False if limit reached
        """
        one_hour_ago = datetime.now() - timedelta(hours=1)
        self.request_timestamps = [
            ts for ts in self.request_timestamps if ts > one_hour_ago
        ]
        return len(self.request_timestamps) < self.max_requests_per_hour

    def record_request(self) -> None:
        """Record a request timestamp for hourly limit tracking."""
        self.request_timestamps.append(datetime.now())

    def _time_until_next_slot(self) -> float:
        jitter = self._generate_jitter()
        if self._last_request_at is None:
            return jitter
        elapsed = time.monotonic() - self._last_request_at
        return max(0.0, self.min_interval_seconds - elapsed) + jitter

    def _generate_jitter(self) -> float:
        """
        Generate a random extra delay.

        Returns:
            Random float between 0 and jitter_seconds
        """
        if self.jitter_seconds <= 0:
            return 0.0
        return random.uniform(0, self.jitter_seconds)
