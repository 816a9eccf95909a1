"""YAML/dict config loader for hybrid-pii.

Supports loading from a YAML file or a plain dict (for embedding
in a larger host application config).

Example YAML:

    hybrid_pii:
      use_model: true
      model_path: ~/models/pii-tagger.onnx
      tokenizer: boltuix/NeuroBERT-Mini
      max_length: 128
      merge_strategy: gap        # "gap" or "bio"
      skip_types:
        - Date
      allow_list:
        - support@example.com
"""

from __future__ import annotations
from pathlib import Path
from typing import Any

import yaml

from .detector import DetectorConfig, PIIDetector, default_model, default_tokenizer
from .tagger import MAX_LENGTH


def load_config(data: dict[str, Any]) -> DetectorConfig:
    """Normalize a config dict (from YAML or inline)."""
    # Support nested under "hybrid_pii" key or flat
    if "hybrid_pii" in data:
        data = data["hybrid_pii"] or {}

    model_path = data.get("model_path", default_model())
    if model_path:
        model_path = str(Path(model_path).expanduser())

    return DetectorConfig(
        use_model=data.get("use_model", True),
        model_path=model_path,
        tokenizer=data.get("tokenizer") or default_tokenizer(),
        max_length=int(data.get("max_length", MAX_LENGTH)),
        merge_strategy=data.get("merge_strategy", "gap"),
        skip_types=set(data.get("skip_types") or []),
        allow_list=set(data.get("allow_list") or []),
    )


def load_from_yaml(path: str | Path) -> DetectorConfig:
    """Load config from a YAML file."""
    with open(Path(path).expanduser()) as f:
        return load_config(yaml.safe_load(f) or {})


def create_detector(config: DetectorConfig | dict[str, Any] | None = None) -> PIIDetector:
    """Create a detector from a config object or dict, loading the model once."""
    if isinstance(config, dict):
        config = load_config(config)
    return PIIDetector.load(config)
