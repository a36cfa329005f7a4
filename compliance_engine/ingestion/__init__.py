from .parser import parse_rules_to_spec
from .projection import CommunityRules, project_community_rules
from .rate_limiter import RateLimiter
from .reddit_rules_client import RedditRulesClient, RuleSource
from .sync import RuleSyncService, SyncReport

__all__ = [
    "CommunityRules",
    "RateLimiter",
    "RedditRulesClient",
    "RuleSource",
    "RuleSyncService",
    "SyncReport",
    "parse_rules_to_spec",
    "project_community_rules",
]
