"""Detector — the main API.  Hybrid: patterns always, the tagging model when loaded.

Usage:
    from hybrid_pii import PIIDetector, DetectorConfig

    detector = PIIDetector.load(DetectorConfig(model_path="pii.onnx"))
    detector.detect("Email jane@acme.com")       # [Entity(text='jane@acme.com', ...)]
    detector.replacement_pairs("Email jane@acme.com")
    # [('jane@acme.com', '[Email]')]

    # From async code, keep inference off the event loop:
    detector = await PIIDetector.aload(config)
    entities = await detector.adetect(text)

Loading happens once, up front, and yields either a ModelHandle or an
Unavailable marker.  A detector built on Unavailable still runs the
pattern layer, so callers always get a well-formed (possibly partial)
result and never an exception.
"""

from __future__ import annotations
import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Union

from .assembler import STRATEGIES, assemble
from .patterns import scan_patterns
from .reconcile import reconcile
from .redaction import apply_redactions, to_replacement_pairs
from .tagger import MAX_LENGTH, OnnxTagger, SequenceTagger, pad_window
from .tokenizer import OffsetTokenizer, load_tokenizer
from .types import BioLabel, Entity, EntityType, RedactionResult, ReplacementPair

logger = logging.getLogger(__name__)

DEFAULT_TOKENIZER = "boltuix/NeuroBERT-Mini"


def default_model() -> str | None:
    """Model path from HYBRID_PII_MODEL, read when a config is built."""
    return os.environ.get("HYBRID_PII_MODEL") or None


def default_tokenizer() -> str:
    return os.environ.get("HYBRID_PII_TOKENIZER") or DEFAULT_TOKENIZER


@dataclass
class DetectorConfig:
    """Configuration for the PIIDetector."""
    use_model: bool = True            # enable the tagging model
    model_path: str | None = field(default_factory=default_model)
    tokenizer: str = field(default_factory=default_tokenizer)  # hub id or local directory
    max_length: int = MAX_LENGTH      # model window, in tokens
    merge_strategy: str = "gap"       # "gap" | "bio"
    # Entity types to always skip (e.g. don't redact dates)
    skip_types: set[EntityType] = field(default_factory=set)
    # Allow-list: values that should NEVER be redacted
    allow_list: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.merge_strategy not in STRATEGIES:
            raise ValueError(
                f"unknown merge strategy {self.merge_strategy!r}, expected one of {STRATEGIES}"
            )
        if self.max_length <= 0:
            raise ValueError(f"max_length must be positive, got {self.max_length}")
        self.skip_types = {EntityType(t) for t in self.skip_types}
        self.allow_list = set(self.allow_list)


@dataclass(frozen=True)
class ModelHandle:
    """A loaded tokenizer + tagger pair, shared read-only across calls."""
    tokenizer: OffsetTokenizer
    tagger: SequenceTagger


@dataclass(frozen=True)
class Unavailable:
    """The model could not be loaded; detection falls back to patterns."""
    reason: str


ModelState = Union[ModelHandle, Unavailable]


def load_model(config: DetectorConfig) -> ModelState:
    """Load tagger and tokenizer.  Never raises; failures become Unavailable."""
    if not config.use_model:
        return Unavailable("model disabled")
    if not config.model_path:
        return Unavailable("no model path configured")
    try:
        tagger = OnnxTagger(config.model_path)
        tokenizer = load_tokenizer(config.tokenizer)
    except Exception as e:
        logger.warning(f"detector: model unavailable, using patterns only: {e}")
        return Unavailable(str(e))
    return ModelHandle(tokenizer=tokenizer, tagger=tagger)


async def load_model_async(config: DetectorConfig) -> ModelState:
    """load_model on a worker thread."""
    return await asyncio.to_thread(load_model, config)


class PIIDetector:
    """Hybrid PII detector.

    Layer 1: Patterns (emails, phones, SSNs, cards, dates, keys)
    Layer 2: BIO tagging model (names, addresses, plus a second opinion)
    Then per-type reconciliation and overlap resolution.

    Holds no per-call state; one instance may serve concurrent calls.
    """

    def __init__(
        self,
        model: ModelState | None = None,
        config: DetectorConfig | None = None,
    ) -> None:
        self.config = config or DetectorConfig()
        self.model: ModelState = model if model is not None else Unavailable("not loaded")

    @classmethod
    def load(cls, config: DetectorConfig | None = None) -> PIIDetector:
        """Factory — loads the model described by config."""
        config = config or DetectorConfig()
        return cls(load_model(config), config)

    @classmethod
    async def aload(cls, config: DetectorConfig | None = None) -> PIIDetector:
        config = config or DetectorConfig()
        return cls(await load_model_async(config), config)

    @property
    def available(self) -> bool:
        """True when the tagging model is loaded."""
        return isinstance(self.model, ModelHandle)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect(self, text: str) -> list[Entity]:
        """Detect PII in text.  Returns non-overlapping entities sorted by start."""
        if not text:
            return []
        pattern_entities = scan_patterns(text)
        model_entities = self._model_entities(text)
        return self._finish(pattern_entities, model_entities, text)

    async def adetect(self, text: str) -> list[Entity]:
        """Like detect, with model inference on a worker thread."""
        if not text:
            return []
        pattern_entities = scan_patterns(text)
        model_entities: list[Entity] = []
        if self.available:
            model_entities = await asyncio.to_thread(self._model_entities, text)
        return self._finish(pattern_entities, model_entities, text)

    def replacement_pairs(self, text: str) -> list[ReplacementPair]:
        """(original text, "[Type]") pairs for the host's renderer."""
        return to_replacement_pairs(self.detect(text))

    async def areplacement_pairs(self, text: str) -> list[ReplacementPair]:
        return to_replacement_pairs(await self.adetect(text))

    def redact(self, text: str) -> RedactionResult:
        """Detect and replace every entity with its placeholder."""
        entities = self.detect(text)
        return RedactionResult(
            text=apply_redactions(text, entities),
            entities=entities,
            replacements=to_replacement_pairs(entities),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _model_entities(self, text: str) -> list[Entity]:
        model = self.model
        if not isinstance(model, ModelHandle):
            return []

        max_length = self.config.max_length
        try:
            token_ids, attention_mask, offsets = model.tokenizer.tokenize_with_offsets(text)
            if not token_ids:
                return []
            input_ids, mask = pad_window(token_ids, attention_mask, max_length)
            predictions = model.tagger(input_ids, mask)
        except Exception as e:
            logger.warning(f"detector: inference failed, using patterns only: {e}")
            return []

        if len(token_ids) > max_length:
            logger.debug(f"detector: truncated {len(token_ids)} tokens to {max_length}")
        count = min(len(token_ids), max_length, len(predictions))
        labels = [BioLabel.from_id(int(p)) for p in predictions[:count]]
        return assemble(labels, offsets[:count], text, strategy=self.config.merge_strategy)

    def _finish(
        self,
        pattern_entities: list[Entity],
        model_entities: list[Entity],
        text: str,
    ) -> list[Entity]:
        entities = reconcile(pattern_entities, model_entities, text)
        return [
            e for e in entities
            if e.label not in self.config.skip_types and e.text not in self.config.allow_list
        ]
