"""Model boundary: fixed-length token windows in, one label id per position out.

The model itself is opaque.  Anything callable as
``tagger(input_ids, attention_mask) -> label ids`` will do; OnnxTagger
adapts an exported token-classification model through ONNX Runtime.
"""

from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Protocol, Sequence

import numpy as np

logger = logging.getLogger(__name__)

MAX_LENGTH = 128


class SequenceTagger(Protocol):
    def __call__(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
        """Return one label id per position of the (1, L) window."""
        ...


def pad_window(
    token_ids: Sequence[int],
    attention_mask: Sequence[int],
    max_length: int = MAX_LENGTH,
) -> tuple[np.ndarray, np.ndarray]:
    """Truncate or zero-pad to max_length.  Returns int32 arrays of shape (1, L)."""
    ids = np.zeros((1, max_length), dtype=np.int32)
    mask = np.zeros((1, max_length), dtype=np.int32)
    n = min(len(token_ids), max_length)
    ids[0, :n] = np.asarray(token_ids[:n], dtype=np.int32)
    mask[0, :n] = np.asarray(attention_mask[:n], dtype=np.int32)
    return ids, mask


def as_label_ids(output: np.ndarray) -> np.ndarray:
    """Normalise model output to a flat vector of label ids.

    Accepts ids shaped (L,) or (1, L), or logits shaped (1, L, C).
    """
    output = np.asarray(output)
    if output.ndim == 3:
        output = output.argmax(axis=-1)
    return output.reshape(-1).astype(np.int64)


class OnnxTagger:
    """Token-classification model served by ONNX Runtime."""

    def __init__(self, model_path: str | Path, *, output_name: str = "predictions") -> None:
        import onnxruntime as ort

        model_path = Path(model_path).expanduser()
        if not model_path.exists():
            raise FileNotFoundError(f"ONNX model not found at {model_path}")

        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        cpu_count = os.cpu_count() or 4
        sess_options.intra_op_num_threads = min(4, cpu_count)
        sess_options.log_severity_level = 3

        available = set(ort.get_available_providers())
        providers = [
            p for p in ("CUDAExecutionProvider", "CPUExecutionProvider") if p in available
        ]
        self._session = ort.InferenceSession(str(model_path), sess_options, providers=providers)

        outputs = [o.name for o in self._session.get_outputs()]
        self._output_name = output_name if output_name in outputs else outputs[0]
        self._input_names = {i.name for i in self._session.get_inputs()}
        logger.info(f"tagger: loaded {model_path.name} (output {self._output_name!r})")

    def __call__(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
        feed = {"input_ids": input_ids, "attention_mask": attention_mask}
        feed = {k: v for k, v in feed.items() if k in self._input_names}
        (output,) = self._session.run([self._output_name], feed)
        return as_label_ids(output)
