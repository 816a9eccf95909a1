"""Hybrid reconciler — choose between pattern and model detections per type.

Structured identifiers (emails, phones, SSNs, cards) are matched more
reliably by an exact pattern than by a statistical tagger; free-form
names and addresses are the opposite.  Dates are taken from both.
"""

from __future__ import annotations
import logging
from typing import Iterable, Sequence

from .types import Entity, EntityType

logger = logging.getLogger(__name__)

PATTERN_PREFERRED = frozenset({
    EntityType.EMAIL,
    EntityType.PHONE,
    EntityType.SSN,
    EntityType.CREDIT_CARD,
})
MODEL_PREFERRED = frozenset({
    EntityType.PERSON,
    EntityType.ADDRESS,
})
UNION = frozenset({
    EntityType.DATE,
})


def choose_for_type(
    entity_type: EntityType,
    pattern_entities: list[Entity],
    model_entities: list[Entity],
) -> list[Entity]:
    """Pick the detections to keep for one entity type."""
    if entity_type in MODEL_PREFERRED:
        return model_entities or pattern_entities
    if entity_type in UNION:
        return union_without_overlap(pattern_entities, model_entities)
    # PATTERN_PREFERRED, and anything unlisted
    return pattern_entities or model_entities


def union_without_overlap(primary: list[Entity], secondary: list[Entity]) -> list[Entity]:
    """All of primary, plus each secondary entity that overlaps none of primary."""
    combined = list(primary)
    for entity in secondary:
        if not any(entity.overlaps(kept) for kept in primary):
            combined.append(entity)
    return combined


def resolve_overlaps(entities: Iterable[Entity]) -> list[Entity]:
    """Reduce to a non-overlapping list sorted by start.

    Walks entities by start offset.  When one overlaps an accepted entity,
    the longer text wins; on a tie the accepted one stays.
    """
    accepted: list[Entity] = []
    for entity in sorted(entities, key=lambda e: e.start):
        clash = next((i for i, kept in enumerate(accepted) if entity.overlaps(kept)), None)
        if clash is None:
            accepted.append(entity)
        elif len(entity.text) > len(accepted[clash].text):
            accepted[clash] = entity
    # A winner never starts before the entity it displaced, so order holds
    return accepted


def reconcile(
    pattern_entities: Sequence[Entity],
    model_entities: Sequence[Entity],
    original_text: str,
) -> list[Entity]:
    """Merge both detectors into the final, non-overlapping entity list."""
    patterns = [e for e in pattern_entities if e.in_bounds(original_text)]
    models = [e for e in model_entities if e.in_bounds(original_text)]
    dropped = len(pattern_entities) + len(model_entities) - len(patterns) - len(models)
    if dropped:
        logger.debug(f"reconcile: discarded {dropped} out-of-range entities")

    # First-seen order keeps the result deterministic
    types = list(dict.fromkeys(e.label for e in [*patterns, *models]))

    chosen: list[Entity] = []
    for entity_type in types:
        chosen.extend(choose_for_type(
            entity_type,
            [e for e in patterns if e.label == entity_type],
            [e for e in models if e.label == entity_type],
        ))

    final = resolve_overlaps(chosen)
    logger.debug(
        f"reconcile: {len(patterns)} pattern + {len(models)} model -> {len(final)} entities"
    )
    return final
