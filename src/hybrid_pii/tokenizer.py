"""Offset tokenizer: sub-word ids plus their spans in the source text.

Segmentation and id encoding are delegated to a Hugging Face tokenizer.
The decoded pieces do not reliably round-trip to the input (case folding,
merged punctuation, "##" continuation markers), so offsets are rebuilt by
walking a cursor through the original string.
"""

from __future__ import annotations
import bisect
import logging
import re
from typing import Protocol, Sequence

from .types import TokenOffset

logger = logging.getLogger(__name__)

SPECIAL = "[SPECIAL]"


class TokenizerBackend(Protocol):
    """The slice of a Hugging Face tokenizer that we rely on."""

    all_special_ids: list[int]

    def encode(self, text: str) -> list[int]: ...

    def decode(self, token_ids: list[int]) -> str: ...


class OffsetTokenizer:
    """Wraps a sub-word tokenizer and recovers per-token character offsets."""

    __slots__ = ("_backend", "_special_ids")

    def __init__(self, backend: TokenizerBackend) -> None:
        self._backend = backend
        self._special_ids = frozenset(getattr(backend, "all_special_ids", ()) or ())

    def tokenize_with_offsets(
        self, text: str,
    ) -> tuple[list[int], list[int], list[TokenOffset]]:
        """Encode text.  Returns (token_ids, attention_mask, token_offsets).

        There is exactly one offset per id.  Special tokens and pieces that
        cannot be found in text get (-1, -1).  Offsets never move backwards.
        """
        token_ids = list(self._backend.encode(text))
        attention_mask = [1] * len(token_ids)

        offsets: list[TokenOffset] = []
        cursor = 0
        unresolved = 0
        for token_id in token_ids:
            if token_id in self._special_ids:
                offsets.append(TokenOffset(SPECIAL))
                continue

            clean = _clean(self._backend.decode([token_id]))
            if not clean:
                offsets.append(TokenOffset(SPECIAL))
                continue

            offset = _locate(text, clean, cursor)
            if offset.resolvable:
                cursor = offset.end
            else:
                unresolved += 1
            offsets.append(offset)

        if unresolved:
            logger.debug(f"tokenizer: {unresolved}/{len(token_ids)} tokens without offsets")
        return token_ids, attention_mask, offsets


def _clean(piece: str) -> str:
    """Strip continuation markers and decoder-inserted spaces."""
    return piece.replace(" ", "").replace("##", "")


def _locate(text: str, clean: str, cursor: int) -> TokenOffset:
    m = re.compile(re.escape(clean), re.IGNORECASE).search(text, cursor)
    if m:
        return TokenOffset(text[m.start():m.end()], m.start(), m.end())

    # Decoder artifact: settle for the first character we can place
    for char in clean:
        idx = text.find(char, cursor)
        if idx != -1:
            return TokenOffset(char, idx, idx + 1)

    return TokenOffset(clean)


# Pre-tokenization: whole emails, word runs, and the punctuation that
# glues structured values together
_WORD = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}|\w+|[.,@-]")


def split_words(text: str) -> list[TokenOffset]:
    """The source words that sub-tokens fold back onto, in order."""
    return [TokenOffset(m.group(), m.start(), m.end()) for m in _WORD.finditer(text)]


def word_index(offsets: Sequence[TokenOffset], text: str) -> list[int]:
    """Map each sub-token to the source word it came from.

    Returns one index into split_words(text) per offset; -1 for tokens
    without a source span or starting outside any word.
    """
    words = split_words(text)
    word_starts = [w.start for w in words]

    mapping: list[int] = []
    for offset in offsets:
        if not offset.resolvable:
            mapping.append(-1)
            continue
        i = bisect.bisect_right(word_starts, offset.start) - 1
        mapping.append(i if i >= 0 and offset.start < words[i].end else -1)
    return mapping


def load_tokenizer(name_or_path: str) -> OffsetTokenizer:
    """Load a Hugging Face tokenizer by hub id or local directory."""
    from transformers import AutoTokenizer

    backend = AutoTokenizer.from_pretrained(name_or_path)
    logger.info(f"tokenizer: loaded {name_or_path}")
    return OffsetTokenizer(backend)
