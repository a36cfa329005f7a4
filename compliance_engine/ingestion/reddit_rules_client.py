"""HTTP client for the two public Reddit rule endpoints of a community."""

import asyncio
import logging
from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from compliance_engine.config import SyncConfig
from compliance_engine.errors import UpstreamUnavailableError
from compliance_engine.ingestion.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class RuleSource(Protocol):
    """
    External source of raw community rules.

    Either method may raise ``UpstreamUnavailableError``; the sync service
    degrades that to empty content for the affected source.
    """

    def about_rules_url(self, community: str) -> str:
        ...

    def wiki_rules_url(self, community: str) -> str:
        ...

    async def fetch_about_rules(self, community: str) -> List[Dict[str, Any]]:
        ...

    async def fetch_wiki_rules(self, community: str) -> str:
        ...


class RedditRulesClient:
    """
    Fetches ``/r/<name>/about/rules.json`` and ``/r/<name>/wiki/rules.json``.

    Use as an async context manager so the underlying aiohttp session is
    closed, or pass an existing session in.
    """

    def __init__(
        self,
        config: SyncConfig,
        rate_limiter: RateLimiter,
        prometheus_exporter=None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            config: Sync configuration (base URL, user agent, timeout)
            rate_limiter: Rate limiter shared by all requests of a run
            prometheus_exporter: Optional Prometheus exporter for metrics
            session: Optional pre-built aiohttp session (not closed by this client)
        """
        self.config = config
        self.rate_limiter = rate_limiter
        self.prometheus_exporter = prometheus_exporter
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "RedditRulesClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.config.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_sec),
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the aiohttp session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def about_rules_url(self, community: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/r/{community}/about/rules.json"

    def wiki_rules_url(self, community: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/r/{community}/wiki/rules.json"

    async def fetch_about_rules(self, community: str) -> List[Dict[str, Any]]:
        """
        Fetch the structured rule list of a community.

        Returns:
            The ``rules`` array of the payload (each with ``short_name`` and
            ``description``); empty when the payload has none.

        Raises:
            UpstreamUnavailableError: On timeout, transport error or non-2xx status
        """
        payload = await self._get_json(self.about_rules_url(community), "about_rules")
        if not isinstance(payload, dict):
            return []
        rules = payload.get("rules") or []
        return [rule for rule in rules if isinstance(rule, dict)]

    async def fetch_wiki_rules(self, community: str) -> str:
        """
        Fetch the markdown body of a community's ``rules`` wiki page.

        Raises:
            UpstreamUnavailableError: On timeout, transport error or non-2xx status
        """
        payload = await self._get_json(self.wiki_rules_url(community), "wiki")
        if not isinstance(payload, dict):
            return ""
        data = payload.get("data") or {}
        return data.get("content_md") or ""

    async def _get_json(self, url: str, source: str) -> Any:
        if self._session is None:
            raise RuntimeError("RedditRulesClient used outside of its async context")

        await self.rate_limiter.pre_request()

        timer = self.prometheus_exporter.time_request() if self.prometheus_exporter else None
        try:
            with timer if timer else nullcontext():
                async with self._session.get(
                    url,
                    headers={"User-Agent": self.config.user_agent},
                    timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_sec),
                ) as response:
                    self.rate_limiter.update_from_headers(response.headers)

                    if response.status == 429:
                        self.rate_limiter.note_429(response.headers.get("Retry-After"))
                    if not 200 <= response.status < 300:
                        self._record_error(source, str(response.status))
                        raise UpstreamUnavailableError(
                            url, f"HTTP {response.status}", status=response.status
                        )

                    return await response.json(content_type=None)

        except asyncio.TimeoutError as e:
            self._record_error(source, "timeout")
            raise UpstreamUnavailableError(
                url, f"timed out after {self.config.request_timeout_sec}s"
            ) from e
        except aiohttp.ClientError as e:
            self._record_error(source, "connection")
            raise UpstreamUnavailableError(url, str(e) or type(e).__name__) from e
        except ValueError as e:
            # Body was not valid JSON (Reddit serves HTML for some private/banned communities)
            self._record_error(source, "decode")
            raise UpstreamUnavailableError(url, f"invalid JSON: {e}") from e

    def _record_error(self, source: str, error_type: str) -> None:
        if self.prometheus_exporter:
            self.prometheus_exporter.record_upstream_error(source, error_type)
