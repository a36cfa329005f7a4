"""Storage interfaces consumed by the ingestion service, linter and gate."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from compliance_engine.models.preview import PolicyState, PreviewEvent
from compliance_engine.models.rule_spec import RuleSpec


class RuleStore(Protocol):
    """
    One RuleSpec per community, keyed by lowercase community name.

    Only the ingestion service writes; the linter only reads.
    """

    def get_rule_spec(self, community: str) -> Optional[RuleSpec]:
        """Return the stored RuleSpec, or None when the community has never been synced."""
        ...

    def upsert_rule_spec(self, community: str, spec: RuleSpec) -> None:
        """Insert or replace the RuleSpec for a community."""
        ...


class PreviewEventStore(Protocol):
    """Append-only log of lint evaluations."""

    def insert_preview_event(self, event: PreviewEvent) -> PreviewEvent:
        """Append an event and return it with its assigned id."""
        ...

    def count_preview_events(
        self,
        user_id: int,
        since: datetime,
        policy_state: Optional[PolicyState] = None,
    ) -> int:
        """Count events for a user created at or after ``since``, optionally filtered by state."""
        ...


class CommunityStore(Protocol):
    """Known communities and their denormalized rules read-model."""

    def list_community_names(self) -> List[str]:
        ...

    def update_community_rules(
        self, name: str, rules: Dict[str, Any], synced_at: datetime
    ) -> bool:
        """Write the read-model; returns False when the community is not known."""
        ...
