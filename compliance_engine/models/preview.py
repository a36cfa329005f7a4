"""Pydantic models for lint verdicts, preview events and gate decisions."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PolicyState(str, Enum):
    """Three-valued linter verdict, ordered by severity."""

    OK = "ok"
    WARN = "warn"
    BLOCKED = "blocked"


class GateReason(str, Enum):
    PREVIEW_GATE_NOT_MET = "PREVIEW_GATE_NOT_MET"


class _PreviewModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LintRequest(_PreviewModel):
    """A candidate post submitted for linting."""

    subreddit: str
    title: str
    body: str = ""
    has_link: bool = False


class LintResult(_PreviewModel):
    """
    Outcome of linting one candidate post.

    ``violations`` are hard rule breaches (they force ``blocked``),
    ``warnings`` are advisory, and ``notes`` are community guidelines shown
    for context that never change the verdict.
    """

    policy_state: PolicyState
    violations: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)


class PreviewEvent(_PreviewModel):
    """
    Immutable record of one lint evaluation a user requested.

    Mirrors PostPreviewORM; previews hold truncated, link-redacted content
    rather than the raw post.
    """

    id: Optional[int] = None
    user_id: int
    subreddit: str
    title_preview: str
    body_preview: str
    policy_state: PolicyState
    warnings: List[str] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True, frozen=True
    )


class PreviewStats(_PreviewModel):
    """Rolling-window preview counts for one user."""

    ok_count_14d: int = Field(alias="okCount14d")
    total_previews_14d: int = Field(alias="totalPreviews14d")
    can_queue: bool
    required: int


class GateDecision(_PreviewModel):
    """Derived allow/deny decision for the post-queueing action; never persisted."""

    can_queue: bool
    required: Optional[int] = None
    current: Optional[int] = None
    reason: Optional[GateReason] = None

    @property
    def remaining(self) -> int:
        """How many more clean previews the user needs before queueing unlocks."""
        if self.can_queue or self.required is None:
            return 0
        return max(self.required - (self.current or 0), 0)
