"""Span assembler — per-token BIO labels to merged, validated entities.

Pipeline:
    1. raw spans     every labelled token with a usable offset
    2. merge         adjacent runs joined by type-specific gap rules
    3. length        drop runs too short for their type
    4. reconstruct   re-slice the original text, trim, shape-check

The tagger output is treated as a hint, not a contract: anything that
does not fit (bad offsets, odd shapes, stray fragments) is dropped.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import Sequence

from .tokenizer import split_words, word_index
from .types import BioLabel, Entity, EntityType, TokenOffset

logger = logging.getLogger(__name__)

STRATEGIES = ("gap", "bio")

_MAX_GAP: dict[EntityType, int] = {
    EntityType.SSN: 10,
    EntityType.PHONE: 15,
    EntityType.CREDIT_CARD: 8,
    EntityType.DATE: 3,
    EntityType.ADDRESS: 20,
    EntityType.PERSON: 8,
    EntityType.EMAIL: 3,
}
_DEFAULT_MAX_GAP = 5

_MIN_LENGTH: dict[EntityType, int] = {
    EntityType.SSN: 5,
    EntityType.PHONE: 5,
    EntityType.CREDIT_CARD: 3,
    EntityType.EMAIL: 3,
    EntityType.PERSON: 4,
    EntityType.DATE: 6,
    EntityType.ADDRESS: 8,
}
_DEFAULT_MIN_LENGTH = 3

# Cross-type neighbours that may share a run, with their own gap limit
_CROSS_TYPE_GAP: dict[tuple[EntityType, EntityType], int] = {
    (EntityType.EMAIL, EntityType.PERSON): 5,
    (EntityType.PERSON, EntityType.EMAIL): 5,
    (EntityType.CREDIT_CARD, EntityType.PHONE): 3,
    (EntityType.PHONE, EntityType.CREDIT_CARD): 3,
}

# (more specific, less specific)
_SPECIFICITY = frozenset({
    (EntityType.EMAIL, EntityType.PERSON),
    (EntityType.CREDIT_CARD, EntityType.PHONE),
})

# Word pieces the decoder is known to emit as bogus names
_DECODER_FRAGMENTS = ("nders",)


@dataclass(frozen=True, slots=True)
class _Run:
    label: EntityType
    start: int
    end: int


def max_gap(entity_type: EntityType) -> int:
    return _MAX_GAP.get(entity_type, _DEFAULT_MAX_GAP)


def min_length(entity_type: EntityType) -> int:
    return _MIN_LENGTH.get(entity_type, _DEFAULT_MIN_LENGTH)


def should_merge(current: EntityType, following: EntityType, gap: int) -> bool:
    """Whether a span `gap` characters after a `current` run joins it."""
    if gap > max_gap(current):
        return False
    if current == following:
        return True
    limit = _CROSS_TYPE_GAP.get((current, following))
    return limit is not None and gap <= limit


def more_specific(candidate: EntityType, than: EntityType) -> bool:
    return (candidate, than) in _SPECIFICITY


# ── Step 1 ───────────────────────────────────────────────────────────

def raw_spans(
    token_labels: Sequence[BioLabel | None],
    token_offsets: Sequence[TokenOffset],
) -> list[tuple[BioLabel, TokenOffset]]:
    """Labelled tokens that carry a usable source span, in token order."""
    spans = []
    for label, offset in zip(token_labels, token_offsets):
        if label is None or label is BioLabel.OUTSIDE:
            continue
        if not offset.resolvable:
            continue
        spans.append((label, offset))
    return spans


# ── Step 2 ───────────────────────────────────────────────────────────

def _merge_by_gap(spans: list[tuple[BioLabel, TokenOffset]]) -> list[_Run]:
    ordered = sorted(spans, key=lambda s: s[1].start)
    runs: list[_Run] = []
    i = 0
    while i < len(ordered):
        label, offset = ordered[i]
        run = _Run(label.entity_type, offset.start, offset.end)
        j = i + 1
        while j < len(ordered):
            next_label, next_offset = ordered[j]
            next_type = next_label.entity_type
            if not should_merge(run.label, next_type, next_offset.start - run.end):
                break
            run = replace(
                run,
                label=next_type if more_specific(next_type, run.label) else run.label,
                end=max(run.end, next_offset.end),
            )
            j += 1
        runs.append(run)
        i = j
    return runs


def fold_to_words(
    token_labels: Sequence[BioLabel | None],
    token_offsets: Sequence[TokenOffset],
    original_text: str,
) -> tuple[list[BioLabel], list[TokenOffset]]:
    """Lift sub-token labels onto the whole source words they belong to.

    A labelled sub-token marks its own word and any later word it still
    covers; when several land on one word the last non-O label wins.
    Returns one label and one offset per word.
    """
    words = split_words(original_text)
    labels = [BioLabel.OUTSIDE] * len(words)
    for label, offset, w in zip(token_labels, token_offsets, word_index(token_offsets, original_text)):
        if w < 0 or label is None or label is BioLabel.OUTSIDE:
            continue
        labels[w] = label
        w += 1
        while w < len(words) and words[w].start < offset.end:
            labels[w] = label
            w += 1
    return labels, words


def _merge_by_bio(
    token_labels: Sequence[BioLabel | None],
    token_offsets: Sequence[TokenOffset],
) -> list[_Run]:
    """Strict BIO walk: Begin opens, matching Inside extends, Outside closes.

    An Inside with nothing of its type to continue becomes its own run.
    """
    runs: list[_Run] = []
    current: _Run | None = None
    for label, offset in zip(token_labels, token_offsets):
        if label is None or label is BioLabel.OUTSIDE:
            if current is not None:
                runs.append(current)
                current = None
            continue
        if not offset.resolvable:
            continue
        entity_type = label.entity_type
        if label.is_inside and current is not None and current.label == entity_type:
            current = replace(current, end=max(current.end, offset.end))
            continue
        if current is not None:
            runs.append(current)
        current = _Run(entity_type, offset.start, offset.end)
    if current is not None:
        runs.append(current)
    return runs


# ── Step 4 ───────────────────────────────────────────────────────────

def _digits(text: str) -> int:
    return sum(c.isdigit() for c in text)


def _has_letter(text: str) -> bool:
    return any(c.isalpha() for c in text)


def _valid_person(text: str) -> bool:
    lowered = text.lower()
    return (
        len(text) >= 3
        and _has_letter(text)
        and not any(lowered.startswith(f) or lowered.endswith(f) for f in _DECODER_FRAGMENTS)
    )


def _valid_phone(text: str) -> bool:
    return len(text) >= 5 and _digits(text) >= 3


def _valid_ssn(text: str) -> bool:
    digits = _digits(text)
    return (
        len(text) >= 3
        and digits >= 2
        and "(" not in text and ")" not in text
        and digits >= int(len(text) * 0.4)
    )


def _valid_email(text: str) -> bool:
    return len(text) >= 3 and ("@" in text or _has_letter(text))


def _valid_address(text: str) -> bool:
    return len(text) >= 5 and _has_letter(text)


def _valid_credit_card(text: str) -> bool:
    return _digits(text) >= 3


_VALIDATORS = {
    EntityType.PERSON: _valid_person,
    EntityType.PHONE: _valid_phone,
    EntityType.SSN: _valid_ssn,
    EntityType.EMAIL: _valid_email,
    EntityType.ADDRESS: _valid_address,
    EntityType.CREDIT_CARD: _valid_credit_card,
}


def is_valid_content(text: str, entity_type: EntityType) -> bool:
    """Shape check for a trimmed entity text."""
    validator = _VALIDATORS.get(entity_type)
    if validator is None:
        return len(text) >= 2
    return validator(text)


def reconstruct(run: _Run, original_text: str) -> Entity | None:
    """Re-slice a run from the source, trimmed to its non-blank core."""
    if not (0 <= run.start < run.end <= len(original_text)):
        return None
    raw = original_text[run.start:run.end]
    text = raw.strip()
    if not text:
        return None
    if not is_valid_content(text, run.label):
        return None
    start = run.start + (len(raw) - len(raw.lstrip()))
    return Entity(text=text, label=run.label, start=start, end=start + len(text), source="model")


# ── Entry point ──────────────────────────────────────────────────────

def assemble(
    token_labels: Sequence[BioLabel | None],
    token_offsets: Sequence[TokenOffset],
    original_text: str,
    *,
    strategy: str = "gap",
) -> list[Entity]:
    """Turn per-token labels into entities over original_text.

    token_labels and token_offsets are aligned by position; extra entries
    on either side are ignored.  strategy selects the merge pass: "gap"
    (adjacency heuristics over sub-tokens) or "bio" (labels folded onto
    whole words, then strict Begin/Inside sequencing).
    """
    if strategy == "gap":
        runs = _merge_by_gap(raw_spans(token_labels, token_offsets))
    elif strategy == "bio":
        runs = _merge_by_bio(*fold_to_words(token_labels, token_offsets, original_text))
    else:
        raise ValueError(f"unknown merge strategy {strategy!r}, expected one of {STRATEGIES}")

    entities: list[Entity] = []
    for run in runs:
        if run.end - run.start < min_length(run.label):
            continue
        entity = reconstruct(run, original_text)
        if entity is not None:
            entities.append(entity)

    logger.debug(f"assembler: {len(runs)} runs -> {len(entities)} entities ({strategy})")
    return entities
