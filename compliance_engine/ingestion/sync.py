"""Rule ingestion: fetch, parse, merge with curator overrides, persist."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from compliance_engine.config import SyncConfig
from compliance_engine.errors import UpstreamUnavailableError
from compliance_engine.ingestion.parser import parse_rules_to_spec
from compliance_engine.ingestion.projection import project_community_rules
from compliance_engine.ingestion.reddit_rules_client import RuleSource
from compliance_engine.models.rule_spec import (
    RuleOverride,
    RuleSource as RuleProvenance,
    RuleSpec,
    apply_overrides,
    normalize_subreddit_name,
)
from compliance_engine.storage.protocols import CommunityStore, RuleStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncReport:
    """Outcome of a ``sync_all`` run."""

    total: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class RuleSyncService:
    """
    Produces up-to-date RuleSpecs for one or many communities.

    The rule source, stores and clock are injected so tests can substitute
    fakes. This service is the only writer of the rule store.
    """

    def __init__(
        self,
        rule_source: RuleSource,
        rule_store: RuleStore,
        community_store: Optional[CommunityStore] = None,
        config: Optional[SyncConfig] = None,
        prometheus_exporter=None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            rule_source: Client for the about/rules and wiki endpoints
            rule_store: Store the compiled RuleSpecs are upserted into
            community_store: Known communities and read-model target (required by sync_all)
            config: Batch size, inter-batch delay and request settings
            prometheus_exporter: Optional Prometheus exporter for metrics
            clock: Returns the current time; stamps ``source.fetchedAt``
            sleep: Coroutine used for the inter-batch delay
        """
        self.rule_source = rule_source
        self.rule_store = rule_store
        self.community_store = community_store
        self.config = config or SyncConfig()
        self.prometheus_exporter = prometheus_exporter
        self.clock = clock
        self._sleep = sleep

    async def sync_one(self, community: str) -> RuleSpec:
        """
        Sync the rules of a single community.

        Upstream failures degrade to empty input for the affected source; store
        failures propagate so callers (``sync_all``, the CLI) decide whether to
        continue. Not retried internally.

        Args:
            community: Community name, with or without the ``r/`` prefix

        Returns:
            The RuleSpec that was persisted
        """
        name = normalize_subreddit_name(community)
        if not name:
            raise ValueError(f"Invalid community name: {community!r}")

        logger.info(f"Syncing rules for r/{name}")
        try:
            about_rules, wiki_content = await asyncio.gather(
                self._fetch_about_rules(name),
                self._fetch_wiki_rules(name),
            )

            automated = parse_rules_to_spec(about_rules, wiki_content)

            existing = self.rule_store.get_rule_spec(name)
            overrides = (
                existing.overrides
                if existing is not None and existing.overrides is not None
                else RuleOverride()
            )
            spec = apply_overrides(automated, overrides)
            spec.source = RuleProvenance(
                fetched_at=self.clock(),
                about_rules_url=self.rule_source.about_rules_url(name),
                wiki_rules_url=self.rule_source.wiki_rules_url(name),
                automated_base=automated,
            )

            self.rule_store.upsert_rule_spec(name, spec)
            self._update_read_model(name, spec)

        except Exception:
            if self.prometheus_exporter:
                self.prometheus_exporter.record_sync("failure")
            raise

        if self.prometheus_exporter:
            self.prometheus_exporter.record_sync("success")

        if overrides.is_empty():
            logger.info(f"Successfully synced rules for r/{name}")
        else:
            logger.info(f"Successfully synced rules for r/{name} (curator overrides preserved)")
        return spec

    async def sync_all(self, communities: Optional[List[str]] = None) -> SyncReport:
        """
        Sync every known community, in fixed-size batches.

        Communities within a batch are synced concurrently; between batches the
        loop sleeps ``batch_delay_sec`` to stay under the upstream rate limit.
        A failing community is logged and recorded in the report; it never
        stops the rest of the run.

        Args:
            communities: Explicit list to sync; defaults to every community in the community store

        Returns:
            SyncReport listing succeeded and failed communities
        """
        if communities is None:
            if self.community_store is None:
                raise RuntimeError("sync_all needs a community store to enumerate communities")
            communities = self.community_store.list_community_names()

        report = SyncReport(total=len(communities))
        logger.info(f"Starting community rules sync for {report.total} communities")

        batch_size = max(1, self.config.batch_size)
        for start in range(0, len(communities), batch_size):
            batch = communities[start:start + batch_size]
            errors = await asyncio.gather(*(self._sync_safely(name) for name in batch))

            for name, error in zip(batch, errors):
                if error is None:
                    report.succeeded.append(name)
                else:
                    report.failed[name] = error

            processed = start + len(batch)
            if processed < len(communities):
                logger.info(f"Processed {processed}/{len(communities)}, waiting {self.config.batch_delay_sec}s...")
                await self._sleep(self.config.batch_delay_sec)

        if report.failed:
            logger.warning(
                f"Community rules sync completed with {len(report.failed)} failures: "
                f"{', '.join(sorted(report.failed))}"
            )
        else:
            logger.info(f"Community rules sync completed ({len(report.succeeded)} communities)")
        return report

    async def _sync_safely(self, community: str) -> Optional[str]:
        """Run ``sync_one`` and return the error message instead of raising."""
        try:
            await self.sync_one(community)
            return None
        except Exception as e:
            logger.error(f"Failed to sync rules for r/{community}: {str(e)}", exc_info=True)
            return str(e) or type(e).__name__

    async def _fetch_about_rules(self, name: str) -> List[Dict[str, Any]]:
        try:
            return await self.rule_source.fetch_about_rules(name)
        except UpstreamUnavailableError as e:
            logger.warning(f"Failed to fetch rules for r/{name}: {e.reason}; continuing without them")
        except Exception as e:
            logger.warning(f"Error fetching rules for r/{name}: {str(e)}; continuing without them", exc_info=True)
        return []

    async def _fetch_wiki_rules(self, name: str) -> str:
        try:
            return await self.rule_source.fetch_wiki_rules(name)
        except UpstreamUnavailableError as e:
            logger.warning(f"Failed to fetch wiki rules for r/{name}: {e.reason}; continuing without them")
        except Exception as e:
            logger.warning(f"Error fetching wiki rules for r/{name}: {str(e)}; continuing without them", exc_info=True)
        return ""

    def _update_read_model(self, name: str, spec: RuleSpec) -> None:
        if self.community_store is None:
            return
        rules = project_community_rules(spec).model_dump(mode="json", by_alias=True)
        updated = self.community_store.update_community_rules(name, rules, spec.source.fetched_at)
        if not updated:
            logger.debug(f"r/{name} is not a known community; read-model not written")
