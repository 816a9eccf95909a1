"""hybrid-pii — PII span extraction from a pattern matcher and a BIO tagging model."""

from .detector import (
    PIIDetector, DetectorConfig,
    ModelHandle, Unavailable,
    load_model, load_model_async,
)
from .patterns import detect_patterns, scan_patterns, locate_matches
from .tokenizer import OffsetTokenizer, load_tokenizer
from .tagger import OnnxTagger, SequenceTagger, pad_window
from .assembler import assemble
from .reconcile import reconcile, resolve_overlaps
from .redaction import to_replacement_pairs, apply_redactions, restore
from .config import create_detector, load_config, load_from_yaml
from .types import BioLabel, Entity, EntityType, RedactionResult, TokenOffset

__all__ = [
    "PIIDetector", "DetectorConfig",
    "ModelHandle", "Unavailable",
    "load_model", "load_model_async",
    "detect_patterns", "scan_patterns", "locate_matches",
    "OffsetTokenizer", "load_tokenizer",
    "OnnxTagger", "SequenceTagger", "pad_window",
    "assemble",
    "reconcile", "resolve_overlaps",
    "to_replacement_pairs", "apply_redactions", "restore",
    "create_detector", "load_config", "load_from_yaml",
    "BioLabel", "Entity", "EntityType", "RedactionResult", "TokenOffset",
]
__version__ = "0.1.0"
