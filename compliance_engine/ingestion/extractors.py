"""
Heuristic extractors over free-text community rules.

Each extractor takes raw text and returns a typed value (an empty list,
``None`` or ``False`` when it finds nothing). They never raise: a rule text
the heuristics cannot read simply contributes nothing, and the linter treats
the missing field as unknown rather than as a constraint.
"""

import logging
import re
from functools import wraps
from typing import Callable, Iterable, List, Optional, TypeVar

from compliance_engine.models.rule_spec import LinkPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

WIKI_NOTE_LIMIT = 10

_BANNED_RULE_NAME = re.compile(r"banned|prohibited|forbidden|not allowed", re.IGNORECASE)
_BANNED_TERMS = re.compile(
    r"(?:banned|prohibited|forbidden|not allowed)(?:\s+(?:words?|terms?|phrases?))?\s*:\s*([^.!?\n]+)",
    re.IGNORECASE,
)
_LINK_RULE_NAME = re.compile(r"link|promo|spam|advertis", re.IGNORECASE)
_NO_LINK = re.compile(r"\bno\s+(?:self[- ]?)?(?:links?|promotion|promo|advertising)\b", re.IGNORECASE)
_ONE_LINK = re.compile(r"\b(?:one|single|1)\s+(?:promotional\s+)?link\b", re.IGNORECASE)
_FLAIR_RULE_NAME = re.compile(r"flair|tag", re.IGNORECASE)
_FLAIR_REQUIRED = re.compile(r"\brequired\b|\bmust\b|\bmandatory\b", re.IGNORECASE)
# Markdown links ("[text](url)") are not tags
_BRACKET_TAG = re.compile(r"\[[^\[\]\n]{1,30}\](?!\()")
_LENGTH_LIMIT = r"(?:maximum|max\.?|limit(?:ed)?(?:\s+to)?|exceed|at most|no more than|up to)"
_TITLE_LENGTH = re.compile(r"title[^\n]{0,20}?" + _LENGTH_LIMIT + r"[^\d\n]{0,10}?(\d+)", re.IGNORECASE)
_BODY_LENGTH = re.compile(
    r"(?:body|post|content|text)[^\n]{0,20}?" + _LENGTH_LIMIT + r"[^\d\n]{0,10}?(\d+)", re.IGNORECASE
)

_WIKI_NOTE_KEYWORDS = ("karma", "account age", "verification", "verified")
_MIN_KARMA = re.compile(
    r"(?:minimum|min\b\.?|at least|requires?|required|need)[^\d\n]{0,20}?(\d[\d,]*)[^\n]{0,10}?karma",
    re.IGNORECASE,
)
_ACCOUNT_AGE = re.compile(
    r"(?:account|profile)[^\d\n]{0,20}?(\d+)\s*-?\s*(days?|weeks?|months?|years?)\b",
    re.IGNORECASE,
)
_ACCOUNT_AGE_BEFORE = re.compile(
    r"(\d+)\s*-?\s*(days?|weeks?|months?|years?)[\s-]*old\s+(?:reddit\s+)?(?:account|profile)",
    re.IGNORECASE,
)
_DAYS_PER_UNIT = {"day": 1, "week": 7, "month": 30, "year": 365}
_VERIFICATION = re.compile(r"verification|verified", re.IGNORECASE)

_LINK_POLICY_STRICTNESS = {
    LinkPolicy.UNKNOWN: 0,
    LinkPolicy.OK: 1,
    LinkPolicy.ONE_LINK: 2,
    LinkPolicy.NO_LINK: 3,
}


def safe_extractor(default: Callable[[], T]) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator that turns any unexpected error in an extractor into its empty result.

    Args:
        default: Factory for the value returned when the extractor fails
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.warning(f"Extractor {func.__name__} failed, treating as no signal: {e}")
                return default()
        return wrapper
    return decorator


@safe_extractor(list)
def extract_banned_words(short_name: str, description: str) -> List[str]:
    """
    Terms listed after "banned:", "prohibited:", "not allowed:" and the like.

    Only rules whose short name is about banned content are considered, and a
    colon is required after the keyword so prose such as "banned users will
    be reported" does not turn into banned words.
    """
    if not _BANNED_RULE_NAME.search(short_name or ""):
        return []

    words: List[str] = []
    for match in _BANNED_TERMS.finditer(description or ""):
        for term in re.split(r"[,;]", match.group(1)):
            term = term.strip().strip("\"'").lower()
            if len(term) > 2:
                words.append(term)
    return words


@safe_extractor(lambda: None)
def detect_link_policy(short_name: str, description: str) -> Optional[LinkPolicy]:
    """
    Link tolerance stated by a link/promotion rule, or None for unrelated rules.

    A link-related rule that states neither "no links" nor "one link" yields
    ``LinkPolicy.OK``.
    """
    if not _LINK_RULE_NAME.search(short_name or ""):
        return None

    text = f"{short_name}\n{description or ''}"
    if _NO_LINK.search(text):
        return LinkPolicy.NO_LINK
    if _ONE_LINK.search(text):
        return LinkPolicy.ONE_LINK
    return LinkPolicy.OK


def strictest_link_policy(policies: Iterable[Optional[LinkPolicy]]) -> LinkPolicy:
    """Combine per-rule link policies; the most restrictive one wins."""
    result = LinkPolicy.UNKNOWN
    for policy in policies:
        if policy is not None and _LINK_POLICY_STRICTNESS[policy] > _LINK_POLICY_STRICTNESS[result]:
            result = policy
    return result


@safe_extractor(lambda: False)
def detect_flair_required(short_name: str, description: str) -> bool:
    if not _FLAIR_RULE_NAME.search(short_name or ""):
        return False
    return bool(_FLAIR_REQUIRED.search(f"{short_name}\n{description or ''}"))


@safe_extractor(list)
def extract_bracket_tags(text: str) -> List[str]:
    """Literal bracket tokens such as ``[F]`` or ``[OC]``, in order of appearance."""
    return _BRACKET_TAG.findall(text or "")


@safe_extractor(lambda: None)
def extract_max_title_length(text: str) -> Optional[int]:
    match = _TITLE_LENGTH.search(text or "")
    return int(match.group(1)) if match else None


@safe_extractor(lambda: None)
def extract_max_body_length(text: str) -> Optional[int]:
    match = _BODY_LENGTH.search(text or "")
    return int(match.group(1)) if match else None


@safe_extractor(list)
def extract_wiki_notes(text: str, limit: int = WIKI_NOTE_LIMIT) -> List[str]:
    """Up to ``limit`` distinct wiki lines about karma, account age or verification."""
    candidates = []
    for line in (text or "").splitlines():
        stripped = line.strip()
        if stripped and any(keyword in stripped.lower() for keyword in _WIKI_NOTE_KEYWORDS):
            candidates.append(stripped)
    return dedupe_case_insensitive(candidates)[:limit]


@safe_extractor(lambda: None)
def extract_min_karma(text: str) -> Optional[int]:
    match = _MIN_KARMA.search(text or "")
    return int(match.group(1).replace(",", "")) if match else None


@safe_extractor(lambda: None)
def extract_min_account_age_days(text: str) -> Optional[int]:
    """
    Minimum account age in days.

    The unit is taken from the same match as the number: "account must be
    3 months old" is 90 days, "30 day old account" is 30.
    """
    match = _ACCOUNT_AGE.search(text or "") or _ACCOUNT_AGE_BEFORE.search(text or "")
    if not match:
        return None
    unit = match.group(2).lower().rstrip("s")
    return int(match.group(1)) * _DAYS_PER_UNIT[unit]


@safe_extractor(lambda: False)
def detect_verification_required(text: str) -> bool:
    return bool(_VERIFICATION.search(text or ""))


def dedupe_case_insensitive(items: Iterable[Optional[str]]) -> List[str]:
    """Drop empty strings and case-insensitive duplicates, keeping first occurrences in order."""
    seen = set()
    result = []
    for item in items:
        if not item:
            continue
        key = item.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(item.strip())
    return result
