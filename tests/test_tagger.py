"""Tests for the ONNX Runtime tagger adapter, on a tiny generated graph."""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

onnx = pytest.importorskip("onnx")
pytest.importorskip("onnxruntime")
from onnx import TensorProto, helper

from hybrid_pii import BioLabel, OnnxTagger, pad_window

NUM_LABELS = len(BioLabel)


def _logits_model(path):
    """input_ids only, emitting (1, L, 13) logits that favour B-PER for any non-pad id."""
    weights = [0.0] * NUM_LABELS
    weights[list(BioLabel).index(BioLabel.B_PERSON)] = 1.0
    graph = helper.make_graph(
        [
            helper.make_node("Cast", ["input_ids"], ["ids_f"], to=TensorProto.FLOAT),
            helper.make_node("Unsqueeze", ["ids_f", "axes"], ["ids_3d"]),
            helper.make_node("Mul", ["ids_3d", "weights"], ["logits"]),
        ],
        "tiny_tagger",
        [helper.make_tensor_value_info("input_ids", TensorProto.INT32, [1, "seq"])],
        [helper.make_tensor_value_info("logits", TensorProto.FLOAT, [1, "seq", NUM_LABELS])],
        initializer=[
            helper.make_tensor("axes", TensorProto.INT64, [1], [2]),
            helper.make_tensor("weights", TensorProto.FLOAT, [NUM_LABELS], weights),
        ],
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    onnx.save(model, str(path))
    return path


def test_onnx_tagger_runs_logits_model(tmp_path):
    tagger = OnnxTagger(_logits_model(tmp_path / "tiny.onnx"))
    ids, mask = pad_window([101, 1000, 102], [1, 1, 1], max_length=8)
    # attention_mask is not a graph input and "predictions" is not an output
    labels = tagger(ids, mask)
    assert labels.tolist() == [1, 1, 1, 0, 0, 0, 0, 0]
    assert BioLabel.from_id(int(labels[0])) is BioLabel.B_PERSON


def test_onnx_tagger_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        OnnxTagger(tmp_path / "absent.onnx")
