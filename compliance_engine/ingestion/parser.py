"""Compose the extractors into an automated RuleSpec for one community."""

import logging
from typing import Any, Dict, List, Optional

from compliance_engine.ingestion import extractors
from compliance_engine.models.rule_spec import ManualFlags, RuleSpecBase

logger = logging.getLogger(__name__)


def parse_rules_to_spec(
    rules: Optional[List[Dict[str, Any]]], wiki_content: Optional[str]
) -> RuleSpecBase:
    """
    Parse Reddit's structured rules and the rules wiki page into a RuleSpecBase.

    Either input may be empty (the source was unavailable); the result then
    simply carries fewer signals. List fields come out deduplicated
    case-insensitively with empty entries dropped, and their order is stable
    for identical input so repeated syncs produce identical documents.

    Args:
        rules: ``rules`` array of ``/about/rules.json`` (``short_name`` + ``description``)
        wiki_content: Markdown of the ``rules`` wiki page

    Returns:
        The automated rule fields, without provenance or overrides
    """
    banned_words: List[str] = []
    required_tags: List[str] = []
    link_policies = []
    flair_required = False
    max_title_length: Optional[int] = None
    max_body_length: Optional[int] = None

    for rule in rules or []:
        short_name = str(rule.get("short_name") or "")
        description = str(rule.get("description") or "")

        banned_words.extend(extractors.extract_banned_words(short_name, description))
        link_policies.append(extractors.detect_link_policy(short_name, description))
        flair_required = flair_required or extractors.detect_flair_required(short_name, description)
        required_tags.extend(extractors.extract_bracket_tags(description))

        # The first rule stating a limit wins; later restatements are usually summaries
        if max_title_length is None:
            max_title_length = extractors.extract_max_title_length(description)
        if max_body_length is None:
            max_body_length = extractors.extract_max_body_length(description)

    manual_flags = ManualFlags()
    wiki_notes: List[str] = []
    if wiki_content:
        wiki_notes = extractors.extract_wiki_notes(wiki_content)
        manual_flags = ManualFlags(
            min_karma=extractors.extract_min_karma(wiki_content),
            min_account_age_days=extractors.extract_min_account_age_days(wiki_content),
            verification_required=extractors.detect_verification_required(wiki_content),
        )

    spec = RuleSpecBase(
        banned_words=extractors.dedupe_case_insensitive(banned_words),
        link_policy=extractors.strictest_link_policy(link_policies),
        flair_required=flair_required,
        required_tags=extractors.dedupe_case_insensitive(required_tags),
        max_title_length=max_title_length,
        max_body_length=max_body_length,
        manual_flags=manual_flags,
        wiki_notes=extractors.dedupe_case_insensitive(wiki_notes),
    )
    logger.debug(
        f"Parsed {len(rules or [])} rules: {len(spec.banned_words)} banned words, "
        f"link policy {spec.link_policy.value}, {len(spec.wiki_notes)} wiki notes"
    )
    return spec
