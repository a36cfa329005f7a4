"""Evaluate candidate posts against a community's compiled RuleSpec."""

import logging
import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, List, Mapping, Optional, Pattern, Union

from pydantic import ValidationError

from compliance_engine.errors import LintValidationError
from compliance_engine.models.preview import LintRequest, LintResult, PolicyState, PreviewEvent
from compliance_engine.models.rule_spec import LinkPolicy, RuleSpec, normalize_subreddit_name
from compliance_engine.storage.protocols import PreviewEventStore, RuleStore

logger = logging.getLogger(__name__)

TITLE_PREVIEW_LIMIT = 200
BODY_PREVIEW_LIMIT = 500
MAX_GUIDELINE_NOTES = 2
MAX_GUIDELINE_NOTE_LENGTH = 100

_LINK_TOKEN = re.compile(
    r"(?:https?://|www\.)[^\s<>()\[\]]+"
    r"|\b[a-z0-9][a-z0-9-]*\.(?:com|net|org|io|ly|me|co|tv|gg|link|xyz|fans|site)\b(?:/[^\s<>()\[\]]*)?",
    re.IGNORECASE,
)
_FLAIR_PATTERN = re.compile(r"\[[^\]]+\]|\([^)]+\)")
_UPVOTE_BEGGING = re.compile(r"\bupvotes?\b", re.IGNORECASE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> Optional[Pattern[str]]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.warning(f"Skipping invalid rule pattern {pattern!r}: {e}")
        return None


def count_links(text: str) -> int:
    """Number of link-looking tokens (URLs or bare domains) in ``text``."""
    return len(_LINK_TOKEN.findall(text or ""))


def redact_preview(text: str, limit: int) -> str:
    """Replace links with ``[link]`` and truncate to ``limit`` characters."""
    redacted = _LINK_TOKEN.sub("[link]", text or "")
    if len(redacted) <= limit:
        return redacted
    return redacted[: max(limit - 3, 0)] + "..."


def _account_age_warning(days: int) -> str:
    if days >= 30:
        months = round(days / 30)
        return f"This community requires {months}+ month old accounts"
    return f"This community requires {days}+ day old accounts"


def evaluate_post(spec: RuleSpec, title: str, body: str, has_link: bool) -> LintResult:
    """
    Evaluate one post against a RuleSpec. Pure; performs no I/O.

    Hard breaches (banned words, pattern matches, link policy) are reported
    as violations and force ``blocked``. Everything else is advisory and can
    at most produce ``warn``. Wiki notes are returned as ``notes`` and never
    affect the verdict.
    """
    violations: List[str] = []
    warnings: List[str] = []
    title_lower = title.lower()
    body_lower = body.lower()

    for word in spec.banned_words:
        needle = word.lower()
        if needle and (needle in title_lower or needle in body_lower):
            violations.append(f'Contains banned term "{word}"')

    for field_name, patterns, text in (
        ("Title", spec.title_regexes, title),
        ("Body", spec.body_regexes, body),
    ):
        for pattern in patterns:
            regex = _compile(pattern)
            if regex is not None and regex.search(text):
                violations.append(f"{field_name} matches prohibited pattern /{pattern}/")

    if spec.link_policy == LinkPolicy.NO_LINK and has_link:
        violations.append("Link policy (no-link): this community does not allow links")
    elif spec.link_policy == LinkPolicy.ONE_LINK:
        links = count_links(body)
        if links > 1:
            violations.append(
                f"Link policy (one-link): found {links} links in the body, this community allows one"
            )
        elif links == 1:
            warnings.append("Link policy (one-link): this community allows a single promotional link")

    if spec.required_tags and not any(tag in title for tag in spec.required_tags):
        warnings.append(f"Missing required tag: title should include one of {', '.join(spec.required_tags)}")

    if spec.max_title_length is not None and len(title) > spec.max_title_length:
        warnings.append(f"Title too long: {len(title)} characters (maximum {spec.max_title_length})")
    if spec.max_body_length is not None and len(body) > spec.max_body_length:
        warnings.append(f"Body too long: {len(body)} characters (maximum {spec.max_body_length})")

    if spec.flair_required and not _FLAIR_PATTERN.search(title):
        warnings.append("This community may require post flair or tags")

    flags = spec.manual_flags
    if flags.min_karma:
        warnings.append(f"This community requires {flags.min_karma}+ karma")
    if flags.min_account_age_days:
        warnings.append(_account_age_warning(flags.min_account_age_days))
    if flags.verification_required:
        warnings.append("This community requires verification before posting")

    if _UPVOTE_BEGGING.search(title) or _UPVOTE_BEGGING.search(body):
        warnings.append("Asking for upvotes may hurt engagement")

    notes = [
        f"Community guideline: {note}"
        for note in spec.wiki_notes[:MAX_GUIDELINE_NOTES]
        if len(note) < MAX_GUIDELINE_NOTE_LENGTH
    ]

    if violations:
        state = PolicyState.BLOCKED
    elif warnings:
        state = PolicyState.WARN
    else:
        state = PolicyState.OK

    return LintResult(policy_state=state, violations=violations, warnings=warnings, notes=notes)


class PolicyLinter:
    """
    Lints candidate posts and records each evaluation in the preview event log.

    Reads RuleSpecs, never writes them. Its only coupling to the preview gate
    is the events it appends.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        event_store: Optional[PreviewEventStore] = None,
        prometheus_exporter=None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Args:
            rule_store: Source of compiled RuleSpecs
            event_store: Preview event log; when None, evaluations are not recorded
            prometheus_exporter: Optional Prometheus exporter for metrics
            clock: Returns the current time; stamps recorded events
        """
        self.rule_store = rule_store
        self.event_store = event_store
        self.prometheus_exporter = prometheus_exporter
        self.clock = clock

    def lint(self, request: Union[LintRequest, Mapping[str, Any]], user_id: Optional[int] = None) -> LintResult:
        """
        Lint a candidate post.

        Args:
            request: The candidate post, as a LintRequest or a mapping of its fields
            user_id: Requesting user; when given, a preview event is recorded

        Returns:
            LintResult with the verdict, violations, warnings and guideline notes

        Raises:
            LintValidationError: Malformed input, raised before any store access
            StoreUnavailableError: The rule store or event log failed
        """
        request = self._validate(request)
        name = normalize_subreddit_name(request.subreddit)

        spec = self.rule_store.get_rule_spec(name)
        if spec is None:
            # Absence of rules is neither a block nor a clean pass
            result = LintResult(
                policy_state=PolicyState.WARN,
                warnings=[f"No rules on file for r/{name}"],
            )
        else:
            result = evaluate_post(spec, request.title, request.body, request.has_link)

        logger.debug(f"Linted post for r/{name}: {result.policy_state.value} "
                     f"({len(result.violations)} violations, {len(result.warnings)} warnings)")

        if user_id is not None and self.event_store is not None:
            self.event_store.insert_preview_event(
                PreviewEvent(
                    user_id=user_id,
                    subreddit=name,
                    title_preview=redact_preview(request.title, TITLE_PREVIEW_LIMIT),
                    body_preview=redact_preview(request.body, BODY_PREVIEW_LIMIT),
                    policy_state=result.policy_state,
                    warnings=result.violations + result.warnings,
                    created_at=self.clock(),
                )
            )

        if self.prometheus_exporter:
            self.prometheus_exporter.record_lint_verdict(result.policy_state.value)
        return result

    @staticmethod
    def _validate(request: Union[LintRequest, Mapping[str, Any]]) -> LintRequest:
        if not isinstance(request, LintRequest):
            try:
                request = LintRequest.model_validate(request)
            except ValidationError as e:
                raise LintValidationError(f"Invalid lint request: {e.errors()[0]['msg']}") from e

        if not normalize_subreddit_name(request.subreddit):
            raise LintValidationError("Invalid lint request: subreddit is required")
        return request
