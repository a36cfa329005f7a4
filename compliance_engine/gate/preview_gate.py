"""Preview gate: unlocks post queueing after enough clean previews."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from compliance_engine.config import GateConfig
from compliance_engine.models.preview import GateDecision, GateReason, PolicyState, PreviewStats
from compliance_engine.storage.protocols import PreviewEventStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PreviewGate:
    """
    Read-only view over the preview event log.

    A user may queue posts once they have at least ``required_ok_previews``
    ``ok`` previews with ``created_at`` inside the sliding window ending now.
    Nothing is persisted; every call re-reads the log.
    """

    def __init__(
        self,
        event_store: PreviewEventStore,
        config: Optional[GateConfig] = None,
        prometheus_exporter=None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.event_store = event_store
        self.config = config or GateConfig()
        self.prometheus_exporter = prometheus_exporter
        self.clock = clock

    def get_preview_stats(self, user_id: int) -> PreviewStats:
        """
        Count a user's previews inside the window.

        Any error from the event store fails closed: it is logged and reported
        as zero previews, so the gate denies rather than raising.
        """
        required = self.config.required_ok_previews
        since = self.clock() - timedelta(days=self.config.window_days)

        try:
            ok_count = self.event_store.count_preview_events(user_id, since, PolicyState.OK)
            total = self.event_store.count_preview_events(user_id, since)
        except Exception as e:
            logger.error(f"Failed to read preview stats for user {user_id}, denying: {str(e)}", exc_info=True)
            ok_count, total = 0, 0

        return PreviewStats(
            ok_count_14d=ok_count,
            total_previews_14d=total,
            can_queue=ok_count >= required,
            required=required,
        )

    def can_queue_posts(self, user_id: int) -> bool:
        return self.get_preview_stats(user_id).can_queue

    def check_preview_gate(self, user_id: int) -> GateDecision:
        """
        Decide whether ``user_id`` may queue posts.

        Returns:
            ``GateDecision(can_queue=True)``, or a denial carrying the reason
            and the required and current ``ok`` counts
        """
        return self.decide(user_id, self.get_preview_stats(user_id))

    def decide(self, user_id: int, stats: PreviewStats) -> GateDecision:
        """Turn stats already read for ``user_id`` into a gate decision."""
        if self.prometheus_exporter:
            self.prometheus_exporter.record_gate_decision(stats.can_queue)

        if stats.can_queue:
            return GateDecision(can_queue=True)

        logger.info(
            f"Preview gate not met for user {user_id}: "
            f"{stats.ok_count_14d}/{stats.required} clean previews in {self.config.window_days}d"
        )
        return GateDecision(
            can_queue=False,
            reason=GateReason.PREVIEW_GATE_NOT_MET,
            required=stats.required,
            current=stats.ok_count_14d,
        )
