"""Tests for the rate limiter module."""

import unittest
from unittest.mock import AsyncMock, patch

from compliance_engine.config import RateLimitConfig
from compliance_engine.ingestion.rate_limiter import RateLimiter


class TestRateLimiter(unittest.IsolatedAsyncioTestCase):
    """Test cases for the RateLimiter class."""

    def setUp(self):
        """Set up test environment."""
        self.config = RateLimitConfig(
            max_requests_per_minute=60,  # 1 request per second
            min_remaining_calls=5,
            sleep_buffer_sec=2
        )
        self.rate_limiter = RateLimiter(self.config)

    @patch("compliance_engine.ingestion.rate_limiter.time.time", return_value=100.5)
    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_pre_request_absolute_rate_limit(self, mock_sleep, mock_time):
        """Requests closer together than the minimum interval are spaced out."""
        self.rate_limiter.last_request_time = 100.0

        await self.rate_limiter.pre_request()

        mock_sleep.assert_awaited_once_with(0.5)
        self.assertEqual(self.rate_limiter.last_request_time, 100.5)

    @patch("compliance_engine.ingestion.rate_limiter.time.time", return_value=102.0)
    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_pre_request_no_sleep_needed(self, mock_sleep, mock_time):
        self.rate_limiter.last_request_time = 100.0

        await self.rate_limiter.pre_request()

        mock_sleep.assert_not_awaited()

    @patch("compliance_engine.ingestion.rate_limiter.time.time", return_value=100.0)
    @patch("asyncio.sleep", new_callable=AsyncMock)
    async def test_pre_request_ratelimit_headers(self, mock_sleep, mock_time):
        """Below min_remaining_calls, pre_request waits until the reset plus buffer."""
        self.rate_limiter.remaining_calls = 3
        self.rate_limiter.reset_timestamp = 110.0

        await self.rate_limiter.pre_request()

        mock_sleep.assert_awaited_once_with(12.0)
        self.assertIsNone(self.rate_limiter.remaining_calls)
        self.assertIsNone(self.rate_limiter.reset_timestamp)

    @patch("compliance_engine.ingestion.rate_limiter.time.time", return_value=100.0)
    def test_update_from_headers(self, mock_time):
        """Header names are matched case-insensitively."""
        self.rate_limiter.update_from_headers({
            "X-Ratelimit-Remaining": "42.0",
            "X-Ratelimit-Reset": "30",
        })

        self.assertEqual(self.rate_limiter.remaining_calls, 42)
        self.assertEqual(self.rate_limiter.reset_timestamp, 130.0)

    def test_update_from_headers_ignores_garbage(self):
        self.rate_limiter.update_from_headers({"x-ratelimit-remaining": "lots"})

        self.assertIsNone(self.rate_limiter.remaining_calls)

    @patch("compliance_engine.ingestion.rate_limiter.time.time", return_value=100.0)
    def test_note_429_uses_retry_after(self, mock_time):
        self.rate_limiter.note_429("5")

        self.assertEqual(self.rate_limiter.remaining_calls, 0)
        self.assertEqual(self.rate_limiter.reset_timestamp, 105.0)

    @patch("compliance_engine.ingestion.rate_limiter.time.time", return_value=100.0)
    def test_note_429_defaults_to_a_minute(self, mock_time):
        self.rate_limiter.note_429("soon")

        self.assertEqual(self.rate_limiter.reset_timestamp, 160.0)


if __name__ == "__main__":
    unittest.main()
