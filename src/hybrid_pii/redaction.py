"""Entities to (original text, placeholder) pairs, applying them, and undoing them."""

from __future__ import annotations
import re
from collections import deque
from typing import Iterable

from .types import Entity, EntityType, ReplacementPair

_BIO_PREFIX = re.compile(r"^[BI]-")


def placeholder(label: EntityType | str) -> str:
    """Format "[Type]", dropping any leading B-/I- tag prefix."""
    name = label.value if isinstance(label, EntityType) else str(label)
    return f"[{_BIO_PREFIX.sub('', name)}]"


def to_replacement_pairs(entities: Iterable[Entity]) -> list[ReplacementPair]:
    """Project entities to replacement pairs, keeping their order."""
    return [(e.text, placeholder(e.label)) for e in entities]


def apply_redactions(text: str, entities: Iterable[Entity]) -> str:
    """Replace each entity span with its placeholder.

    Applied right-to-left so earlier offsets stay valid.  Entities must
    not overlap (reconciled output never does).
    """
    result = text
    for entity in sorted(entities, key=lambda e: e.start, reverse=True):
        result = result[:entity.start] + placeholder(entity.label) + result[entity.end:]
    return result


def restore(text: str, pairs: Iterable[ReplacementPair]) -> str:
    """Put original values back where their placeholders stand.

    The n-th pair for a placeholder fills the n-th occurrence of that
    placeholder, so pairs must be in text order (as the detector returns
    them).  Lossy: occurrences beyond the pairs given, including a
    placeholder that was already in the source text, are left as is.
    """
    pending: dict[str, deque[str]] = {}
    for original, marker in pairs:
        pending.setdefault(marker, deque()).append(original)
    if not pending:
        return text

    # Longest placeholders first to avoid partial matches
    markers = sorted(pending, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(m) for m in markers))

    def _swap(m: re.Match) -> str:
        queue = pending[m.group()]
        return queue.popleft() if queue else m.group()

    return pattern.sub(_swap, text)
