"""Tests for the RuleSpec model and curator override merging."""

from datetime import datetime, timezone

import pytest

from compliance_engine.models.rule_spec import (
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


@pytest.fixture
def automated():
    return RuleSpecBase(
        banned_words=["onlyfans", "venmo", "cashapp"],
        link_policy=LinkPolicy.ONE_LINK,
        required_tags=["[F]", "[M]"],
        max_title_length=120,
        manual_flags=ManualFlags(min_karma=100),
        wiki_notes=["Verified users only"],
    )


class TestApplyOverrides:
    def test_no_overrides_keeps_automated_values(self, automated):
        spec = apply_overrides(automated, None)

        assert spec.banned_words == ["onlyfans", "venmo", "cashapp"]
        assert spec.link_policy == LinkPolicy.ONE_LINK
        assert spec.overrides is None
        assert spec.source is None

    def test_override_field_replaces_automated_value(self, automated):
        spec = apply_overrides(automated, RuleOverride(link_policy=LinkPolicy.NO_LINK))

        assert spec.link_policy == LinkPolicy.NO_LINK
        # Fields the curator did not set fall through
        assert spec.banned_words == automated.banned_words
        assert spec.max_title_length == 120

    def test_list_override_is_wholesale(self, automated):
        spec = apply_overrides(automated, RuleOverride(banned_words=["custom"]))

        assert spec.banned_words == ["custom"]

    def test_empty_list_override_clears_field(self, automated):
        spec = apply_overrides(automated, RuleOverride(required_tags=[]))

        assert spec.required_tags == []

    def test_manual_flags_override_replaces_whole_object(self, automated):
        spec = apply_overrides(
            automated, RuleOverride(manual_flags=ManualFlags(verification_required=True))
        )

        assert spec.manual_flags.verification_required is True
        assert spec.manual_flags.min_karma is None

    def test_overrides_are_kept_on_result(self, automated):
        overrides = RuleOverride(max_title_length=80)
        spec = apply_overrides(automated, overrides)

        assert spec.overrides == overrides
        assert not spec.overrides.is_empty()
        assert RuleOverride().is_empty()


class TestRuleSpecDocument:
    def test_document_uses_camel_case_and_sparse_overrides(self, automated):
        spec = apply_overrides(automated, RuleOverride(banned_words=["custom"]))
        spec.source = RuleSource(
            fetched_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            about_rules_url="https://www.reddit.com/r/test/about/rules.json",
            automated_base=automated,
        )

        document = spec.to_document()

        assert document["bannedWords"] == ["custom"]
        assert document["linkPolicy"] == "one-link"
        assert document["maxTitleLength"] == 120
        assert document["manualFlags"]["minKarma"] == 100
        assert document["overrides"] == {"bannedWords": ["custom"]}
        assert document["source"]["aboutRulesUrl"].endswith("/about/rules.json")
        assert document["source"]["automatedBase"]["bannedWords"] == ["onlyfans", "venmo", "cashapp"]

    def test_document_reads_back_to_equal_spec(self, automated):
        spec = apply_overrides(automated, RuleOverride(flair_required=True))
        spec.source = RuleSource(fetched_at=datetime(2026, 1, 2, tzinfo=timezone.utc))

        assert coerce_rule_spec(spec.to_document()) == spec

    def test_coerce_reapplies_hand_edited_overrides(self, automated):
        document = apply_overrides(automated, None).to_document()
        document["overrides"] = {"linkPolicy": "no-link"}

        spec = coerce_rule_spec(document)

        assert spec.link_policy == LinkPolicy.NO_LINK
        assert spec.overrides.link_policy == LinkPolicy.NO_LINK

    def test_coerce_tolerates_missing_keys(self):
        spec = coerce_rule_spec({"bannedWords": ["spam"]})

        assert spec.banned_words == ["spam"]
        assert spec.link_policy == LinkPolicy.UNKNOWN
        assert spec.manual_flags == ManualFlags()

    def test_coerce_maps_nulls_to_defaults(self):
        spec = coerce_rule_spec({
            "bannedWords": None,
            "flairRequired": None,
            "manualFlags": None,
            "maxTitleLength": None,
            "source": {"automatedBase": {"requiredTags": None}},
        })

        assert spec.banned_words == []
        assert spec.flair_required is False
        assert spec.manual_flags == ManualFlags()
        assert spec.max_title_length is None
        assert spec.source.fetched_at is None
        assert spec.source.automated_base.required_tags == []

    def test_null_override_fields_still_fall_through(self, automated):
        spec = coerce_rule_spec({
            **apply_overrides(automated, None).to_document(),
            "overrides": {"bannedWords": None, "flairRequired": True},
        })

        assert spec.banned_words == ["onlyfans", "venmo", "cashapp"]
        assert spec.flair_required is True

    @pytest.mark.parametrize("raw", [None, "sometimes", "links-ok"])
    def test_unrecognised_link_policy_reads_as_unknown(self, raw):
        spec = RuleSpec.model_validate({"linkPolicy": raw})

        assert spec.link_policy == LinkPolicy.UNKNOWN


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("gonewild", "gonewild"),
        ("r/GoneWild", "gonewild"),
        ("/r/Self_Promo ", "self_promo"),
        ("r/", ""),
    ],
)
def test_normalize_subreddit_name(raw, expected):
    assert normalize_subreddit_name(raw) == expected
