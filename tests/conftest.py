"""Shared fakes: a WordPiece-style tokenizer and a tagger that labels by piece."""

import os
import re
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from hybrid_pii import BioLabel, DetectorConfig, ModelHandle, OffsetTokenizer, PIIDetector

CLS, SEP, PAD = 101, 102, 0


class FakeWordPiece:
    """Lower-cases, splits words into 4-char pieces, marks continuations with ##."""

    all_special_ids = [PAD, CLS, SEP]

    def __init__(self) -> None:
        self.vocab: dict[str, int] = {}
        self.pieces: dict[int, str] = {CLS: "[CLS]", SEP: "[SEP]", PAD: "[PAD]"}

    def _id(self, piece: str) -> int:
        if piece not in self.vocab:
            token_id = 1000 + len(self.vocab)
            self.vocab[piece] = token_id
            self.pieces[token_id] = piece
        return self.vocab[piece]

    def encode(self, text: str) -> list[int]:
        ids = [CLS]
        for word in re.findall(r"\w+|[^\w\s]", text):
            word = word.lower()
            for k in range(0, len(word), 4):
                chunk = word[k:k + 4]
                ids.append(self._id(chunk if k == 0 else "##" + chunk))
        ids.append(SEP)
        return ids

    def decode(self, token_ids: list[int]) -> str:
        return " ".join(self.pieces[i] for i in token_ids)


class PieceTagger:
    """Labels every position whose piece appears in `labels`; everything else O."""

    def __init__(self, backend: FakeWordPiece, labels: dict[str, BioLabel]) -> None:
        self.backend = backend
        self.labels = labels
        self.calls = 0

    def __call__(self, input_ids: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
        self.calls += 1
        table = list(BioLabel)
        out = np.zeros(input_ids.shape[1], dtype=np.int32)
        for i, token_id in enumerate(input_ids[0]):
            if not attention_mask[0, i]:
                continue
            label = self.labels.get(self.backend.pieces.get(int(token_id), ""))
            if label is not None:
                out[i] = table.index(label)
        return out


@pytest.fixture
def wordpiece():
    return FakeWordPiece()


@pytest.fixture
def make_detector(wordpiece):
    """Build a ready detector whose tagger labels the given pieces."""
    def _make(labels=None, tagger=None, **config):
        tagger = tagger or PieceTagger(wordpiece, labels or {})
        model = ModelHandle(tokenizer=OffsetTokenizer(wordpiece), tagger=tagger)
        return PIIDetector(model, DetectorConfig(**config))
    return _make
