"""
Normalized, per-community rule specification.

A ``RuleSpec`` is the compiled constraint set the policy linter evaluates posts
against. It is stored as JSON (camelCase keys) in ``subreddit_rules.rules_json``
and carries its own provenance: ``source.automatedBase`` keeps the value the
ingestion pipeline extracted, ``overrides`` keeps what curators set by hand, and
the top-level fields are always ``automatedBase`` with ``overrides`` applied.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class LinkPolicy(str, Enum):
    """Promotional-link tolerance of a community."""

    NO_LINK = "no-link"
    ONE_LINK = "one-link"
    OK = "ok"
    UNKNOWN = "unknown"


class _RuleModel(BaseModel):
    """Shared pydantic configuration: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # Legacy documents write null where a key has a non-null default
        if not isinstance(data, dict):
            return data
        non_null = set()
        for name, info in cls.model_fields.items():
            if info.default is not None or info.default_factory is not None:
                non_null.update((name, info.alias or to_camel(name)))
        return {key: value for key, value in data.items() if value is not None or key not in non_null}


class ManualFlags(_RuleModel):
    """Attributes that free text cannot reliably express; set by curators or wiki heuristics."""

    min_karma: Optional[int] = None
    min_account_age_days: Optional[int] = None
    verification_required: bool = False
    notes: List[str] = Field(default_factory=list)


class RuleSpecBase(_RuleModel):
    """The automated part of a rule specification, without provenance or overrides."""

    banned_words: List[str] = Field(default_factory=list)
    title_regexes: List[str] = Field(default_factory=list)
    body_regexes: List[str] = Field(default_factory=list)
    link_policy: LinkPolicy = LinkPolicy.UNKNOWN
    flair_required: bool = False
    required_tags: List[str] = Field(default_factory=list)
    max_title_length: Optional[int] = None
    max_body_length: Optional[int] = None
    manual_flags: ManualFlags = Field(default_factory=ManualFlags)
    wiki_notes: List[str] = Field(default_factory=list)

    @field_validator("link_policy", mode="before")
    @classmethod
    def _coerce_link_policy(cls, value: Any) -> Any:
        # Stored documents predating the "unknown" state leave the key out or null
        if value is None:
            return LinkPolicy.UNKNOWN
        if isinstance(value, str) and value not in {p.value for p in LinkPolicy}:
            return LinkPolicy.UNKNOWN
        return value


class RuleOverride(_RuleModel):
    """
    Curator corrections. Any field left as ``None`` falls through to the automated value.

    Lists and ``manualFlags`` are replaced wholesale when overridden, never
    merged element-wise: a curator who overrides ``bannedWords`` owns the whole
    list from then on, including words they deliberately removed.
    """

    banned_words: Optional[List[str]] = None
    title_regexes: Optional[List[str]] = None
    body_regexes: Optional[List[str]] = None
    link_policy: Optional[LinkPolicy] = None
    flair_required: Optional[bool] = None
    required_tags: Optional[List[str]] = None
    max_title_length: Optional[int] = None
    max_body_length: Optional[int] = None
    manual_flags: Optional[ManualFlags] = None
    wiki_notes: Optional[List[str]] = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class RuleSource(_RuleModel):
    """Provenance of a stored rule spec."""

    fetched_at: Optional[datetime] = None
    about_rules_url: Optional[str] = None
    wiki_rules_url: Optional[str] = None
    automated_base: RuleSpecBase = Field(default_factory=RuleSpecBase)


class RuleSpec(RuleSpecBase):
    """Full rule specification with source metadata and overrides."""

    overrides: Optional[RuleOverride] = None
    source: Optional[RuleSource] = None

    def to_document(self) -> Dict[str, Any]:
        """
        Serialize to the stored JSON shape.

        Overrides are written sparsely (only the fields a curator set) so the
        stored document states exactly which fields are curator-owned.
        """
        document = self.model_dump(mode="json", by_alias=True, exclude={"overrides"})
        if self.overrides is not None:
            document["overrides"] = self.overrides.model_dump(
                mode="json", by_alias=True, exclude_none=True
            )
        else:
            document["overrides"] = None
        return document

    def base(self) -> RuleSpecBase:
        """Return the effective rule fields without provenance or overrides."""
        return RuleSpecBase.model_validate(
            self.model_dump(exclude={"overrides", "source"})
        )


def apply_overrides(
    automated: RuleSpecBase, overrides: Optional[RuleOverride]
) -> RuleSpec:
    """
    Merge curator overrides onto an automated rule spec.

    This is a shallow, field-level override: each top-level field that is
    present and non-null in ``overrides`` replaces the automated value
    entirely; every other field keeps the automated value. Lists are replaced
    wholesale rather than concatenated, so overriding ``bannedWords`` with a
    short list drops every automated entry not in it.

    Args:
        automated: Rule fields produced by the ingestion pipeline
        overrides: Curator overrides, or None

    Returns:
        A RuleSpec carrying the merged fields and the overrides themselves.
        ``source`` is left unset; callers stamp provenance.
    """
    merged: Dict[str, Any] = automated.model_dump(exclude={"overrides", "source"})
    if overrides is not None:
        for name in RuleOverride.model_fields:
            value = getattr(overrides, name)
            if value is not None:
                merged[name] = value.model_dump() if isinstance(value, BaseModel) else value
    merged["overrides"] = overrides
    return RuleSpec.model_validate(merged)


def coerce_rule_spec(raw: Optional[Dict[str, Any]]) -> RuleSpec:
    """
    Parse a stored rule document, tolerating missing keys and nulls.

    Overrides are re-applied on read so a document edited by hand (for example
    a curator patching ``overrides`` directly in the database) is honoured
    even before the next sync rewrites the merged fields.
    """
    spec = RuleSpec.model_validate(raw or {})
    if spec.overrides is None or spec.overrides.is_empty():
        return spec
    merged = apply_overrides(spec.base(), spec.overrides)
    merged.source = spec.source
    return merged


_SUBREDDIT_PREFIX = re.compile(r"^/?r/", re.IGNORECASE)
_SUBREDDIT_INVALID_CHARS = re.compile(r"[^a-z0-9_]", re.IGNORECASE)


def normalize_subreddit_name(name: str) -> str:
    """Normalize ``r/Gone_Wild`` style input to the lowercase store key ``gone_wild``."""
    stripped = _SUBREDDIT_PREFIX.sub("", (name or "").strip())
    return _SUBREDDIT_INVALID_CHARS.sub("", stripped).lower()
