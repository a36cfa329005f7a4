from .base import Base
from .orm import PostPreviewORM, RedditCommunityORM, SubredditRuleORM
from .preview import (
    GateDecision,
    GateReason,
    LintRequest,
    LintResult,
    PolicyState,
    PreviewEvent,
    PreviewStats,
)
from .rule_spec import (
    LinkPolicy,
    ManualFlags,
    RuleOverride,
    RuleSource,
    RuleSpec,
    RuleSpecBase,
    apply_overrides,
    coerce_rule_spec,
    normalize_subreddit_name,
)

__all__ = [
    "Base",
    "GateDecision",
    "GateReason",
    "LinkPolicy",
    "LintRequest",
    "LintResult",
    "ManualFlags",
    "PolicyState",
    "PostPreviewORM",
    "PreviewEvent",
    "PreviewStats",
    "RedditCommunityORM",
    "RuleOverride",
    "RuleSource",
    "RuleSpec",
    "RuleSpecBase",
    "SubredditRuleORM",
    "apply_overrides",
    "coerce_rule_spec",
    "normalize_subreddit_name",
]
