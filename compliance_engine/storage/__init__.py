from .community_store import SQLAlchemyCommunityStore
from .event_store import SQLAlchemyPreviewEventStore
from .protocols import CommunityStore, PreviewEventStore, RuleStore
from .rule_store import SQLAlchemyRuleStore

__all__ = [
    "CommunityStore",
    "PreviewEventStore",
    "RuleStore",
    "SQLAlchemyCommunityStore",
    "SQLAlchemyPreviewEventStore",
    "SQLAlchemyRuleStore",
]
