"""Rate limiting for requests to the external rule source."""

import asyncio
import logging
import time
from typing import Any, Mapping, Optional

from compliance_engine.config import RateLimitConfig

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Rate limiter for Reddit rule requests.

    Spaces requests by a minimum interval and honours the X-Ratelimit headers
    Reddit returns on anonymous JSON endpoints. Shared by every fetch in a
    sync run, including concurrent fetches within one batch.
    """

    def __init__(self, config: RateLimitConfig):
        """
        Initialize the rate limiter with configuration.

        Args:
            config: Rate limiting configuration
        """
        self.config = config
        self.remaining_calls: Optional[int] = None
        self.reset_timestamp: Optional[float] = None
        self.last_request_time = 0.0
        self._lock = asyncio.Lock()

        # Absolute rate limit calculation
        self.min_interval = 60.0 / self.config.max_requests_per_minute

    async def pre_request(self) -> None:
        """
        Check rate limits before making a request and sleep if necessary.

        This should be called before each rule source request.
        """
        async with self._lock:
            now = time.time()
            elapsed = now - self.last_request_time
            if elapsed < self.min_interval:
                await asyncio.sleep(self.min_interval - elapsed)

            if (self.remaining_calls is not None and
                self.reset_timestamp is not None and
                self.remaining_calls < self.config.min_remaining_calls):

                wait_time = self.reset_timestamp - time.time() + self.config.sleep_buffer_sec
                if wait_time > 0:
                    logger.info(f"Rate limit approaching: {self.remaining_calls} calls remaining. "
                                f"Sleeping for {wait_time:.2f}s until reset.")
                    await asyncio.sleep(wait_time)
                    self.remaining_calls = None
                    self.reset_timestamp = None

            # Reserve the slot so concurrent callers space themselves out
            self.last_request_time = time.time()

    def update_from_headers(self, headers: Mapping[str, Any]) -> None:
        """
        Update rate limit tracking based on response headers.

        Args:
            headers: Response headers from a rule source request
        """
        self.last_request_time = time.time()
        lowered = {str(k).lower(): v for k, v in headers.items()}

        if "x-ratelimit-remaining" in lowered:
            try:
                self.remaining_calls = int(float(lowered["x-ratelimit-remaining"]))
            except (ValueError, TypeError):
                logger.warning("Failed to parse x-ratelimit-remaining header")

        if "x-ratelimit-reset" in lowered:
            try:
                reset_seconds = float(lowered["x-ratelimit-reset"])
                self.reset_timestamp = time.time() + reset_seconds
            except (ValueError, TypeError):
                logger.warning("Failed to parse x-ratelimit-reset header")

        if self.remaining_calls is not None and self.reset_timestamp is not None:
            reset_in = self.reset_timestamp - time.time()
            logger.debug(f"Rate limit status: {self.remaining_calls} calls remaining, "
                         f"reset in {reset_in:.2f}s")

    def note_429(self, retry_after: Optional[str] = None) -> None:
        """
        Record a 429 Too Many Requests response.

        Rule fetches are not retried; instead the next ``pre_request`` waits
        out the Retry-After window before any further request goes out.

        Args:
            retry_after: Value of the Retry-After header, if available
        """
        try:
            wait_seconds = float(retry_after) if retry_after else 60.0
        except (ValueError, TypeError):
            wait_seconds = 60.0

        logger.warning(f"Rate limited (429). Holding further requests for {wait_seconds:.2f}s.")
        self.remaining_calls = 0
        self.reset_timestamp = time.time() + wait_seconds
