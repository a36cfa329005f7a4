"""Denormalized community rules read-model used by the posting UI."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from compliance_engine.models.rule_spec import LinkPolicy, RuleSpec

# System defaults used when the compiled spec leaves a field unset
DEFAULT_MIN_KARMA = 0
DEFAULT_MIN_ACCOUNT_AGE_DAYS = 0
DEFAULT_MAX_TITLE_LENGTH = 300
DEFAULT_MAX_BODY_LENGTH = 10000

_PROMOTION_BY_LINK_POLICY = {
    LinkPolicy.NO_LINK: "no",
    LinkPolicy.ONE_LINK: "limited",
    LinkPolicy.OK: "yes",
    LinkPolicy.UNKNOWN: "unknown",
}


class _ReadModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EligibilityRules(_ReadModel):
    min_karma: int = DEFAULT_MIN_KARMA
    min_account_age_days: int = DEFAULT_MIN_ACCOUNT_AGE_DAYS
    verification_required: bool = False


class ContentRules(_ReadModel):
    link_policy: LinkPolicy = LinkPolicy.UNKNOWN
    promotion_allowed: str = "unknown"
    flair_required: bool = False
    required_tags: List[str] = Field(default_factory=list)
    max_title_length: int = DEFAULT_MAX_TITLE_LENGTH
    max_body_length: int = DEFAULT_MAX_BODY_LENGTH
    banned_word_count: int = 0


class CommunityRules(_ReadModel):
    eligibility: EligibilityRules = Field(default_factory=EligibilityRules)
    content: ContentRules = Field(default_factory=ContentRules)
    notes: List[str] = Field(default_factory=list)
    last_synced_at: Optional[datetime] = None


def project_community_rules(spec: RuleSpec) -> CommunityRules:
    """
    Project a RuleSpec into the community rules read-model.

    Pure function of ``spec``; every field ``spec`` leaves null falls back to
    the system default, so a community whose sources were both unavailable
    still gets a complete (if permissive) read-model.
    """
    flags = spec.manual_flags
    notes = list(flags.notes) + [n for n in spec.wiki_notes if n not in flags.notes]

    return CommunityRules(
        eligibility=EligibilityRules(
            min_karma=flags.min_karma if flags.min_karma is not None else DEFAULT_MIN_KARMA,
            min_account_age_days=(
                flags.min_account_age_days
                if flags.min_account_age_days is not None
                else DEFAULT_MIN_ACCOUNT_AGE_DAYS
            ),
            verification_required=bool(flags.verification_required),
        ),
        content=ContentRules(
            link_policy=spec.link_policy,
            promotion_allowed=_PROMOTION_BY_LINK_POLICY[spec.link_policy],
            flair_required=bool(spec.flair_required),
            required_tags=list(spec.required_tags),
            max_title_length=spec.max_title_length or DEFAULT_MAX_TITLE_LENGTH,
            max_body_length=spec.max_body_length or DEFAULT_MAX_BODY_LENGTH,
            banned_word_count=len(spec.banned_words),
        ),
        notes=notes,
        last_synced_at=spec.source.fetched_at if spec.source else None,
    )
