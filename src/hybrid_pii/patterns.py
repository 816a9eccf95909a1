"""Pattern detector — regular expressions for structured PII and credentials.

These run on every call, with or without the model.  They catch the
deterministic stuff: emails, phones, SSNs, cards, dates and API keys.

Matches are reported in pattern order and are NOT de-duplicated here;
overlapping hits from different patterns are resolved by the reconciler.
"""

from __future__ import annotations
import logging
import re
from typing import Iterable

from .types import Entity, EntityType

logger = logging.getLogger(__name__)

# Compiled at import: a broken pattern fails loudly here, never at scan time.
_PATTERNS: list[tuple[EntityType, re.Pattern]] = [
    (EntityType.EMAIL, re.compile(
        r"[A-Z0-9._%+\-]+@[A-Z0-9.\-]+\.[A-Z]{2,}",
        re.IGNORECASE,
    )),

    # Phone with optional country code and "x123" / "ext. 123" extension
    (EntityType.PHONE, re.compile(
        r"(?<!\d)"
        r"(?:\+?1[\s.\-]?)?"
        r"\(?\d{3}\)?[\s.\-]?\d{3}[\s.\-]?\d{4}"
        r"(?:\s*(?:x|ext\.?)\s*\d{1,6})?"
        r"(?!\d)",
        re.IGNORECASE,
    )),

    (EntityType.SSN, re.compile(
        r"\d{3}-\d{2}-\d{4}",
        re.IGNORECASE,
    )),

    # Credit card: 13 to 19 digits, optionally grouped by spaces or hyphens
    (EntityType.CREDIT_CARD, re.compile(
        r"\b(?:\d[ \-]?){12,18}\d\b",
        re.IGNORECASE,
    )),

    (EntityType.DATE, re.compile(
        r"\b(?:\d{4}-\d{2}-\d{2}|\d{2}/\d{2}/\d{4}|\d{2}-\d{2}-\d{4})\b",
        re.IGNORECASE,
    )),

    (EntityType.AWS_KEY, re.compile(
        r"AKIA[0-9A-Z]{16}",
        re.IGNORECASE,
    )),

    # OpenAI-style secret key
    (EntityType.API_KEY, re.compile(
        r"sk-[A-Za-z0-9]{48}",
        re.IGNORECASE,
    )),

    (EntityType.GITHUB_TOKEN, re.compile(
        r"ghp_[A-Za-z0-9]{36}",
        re.IGNORECASE,
    )),

    (EntityType.STRIPE_KEY, re.compile(
        r"(?:sk|pk|rk)_(?:live|test)_[A-Za-z0-9]{24,99}",
        re.IGNORECASE,
    )),

    # Fallback for anything that looks like an opaque token
    (EntityType.SECRET, re.compile(
        r"\b[A-Za-z0-9]{32,64}\b",
        re.IGNORECASE,
    )),
]


def pattern_types() -> list[EntityType]:
    """Entity types in the order their patterns run."""
    return [entity_type for entity_type, _ in _PATTERNS]


def scan_patterns(text: str) -> list[Entity]:
    """Run all patterns against text, keeping each match's offsets."""
    matches: list[Entity] = []
    for entity_type, pattern in _PATTERNS:
        for m in pattern.finditer(text):
            matches.append(Entity(
                text=m.group(),
                label=entity_type,
                start=m.start(),
                end=m.end(),
                source="pattern",
            ))
    logger.debug(f"patterns: {len(matches)} matches in {len(text)} chars")
    return matches


def detect_patterns(text: str) -> list[tuple[EntityType, str]]:
    """Run all patterns against text.  Returns (type, matched text) pairs."""
    return [(m.label, m.text) for m in scan_patterns(text)]


def locate_matches(
    matches: Iterable[tuple[EntityType, str]],
    text: str,
) -> list[Entity]:
    """Turn (type, matched text) pairs back into spans over text.

    Repeated values are located left to right, so the n-th report of a
    value lands on its n-th occurrence.  Pairs that cannot be found in
    text, or that outnumber their value's occurrences, are skipped.
    """
    cursors: dict[tuple[EntityType, str], int] = {}
    located: list[Entity] = []
    for entity_type, value in matches:
        if not value:
            continue
        idx = text.find(value, cursors.get((entity_type, value), 0))
        if idx == -1:
            logger.debug(f"patterns: dropping unlocatable {entity_type.value} match")
            continue
        cursors[entity_type, value] = idx + len(value)
        located.append(Entity(
            text=value,
            label=entity_type,
            start=idx,
            end=idx + len(value),
            source="pattern",
        ))
    return located
