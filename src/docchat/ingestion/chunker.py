"""Byte-bounded text chunking.

Text is split into *units* (sentences or words) which are greedily packed
into chunks whose UTF-8 encoding never exceeds ``ChunkingPolicy.max_bytes``.
A unit that alone exceeds the budget is broken into the next finer unit:
sentence → words → truncated word.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


class ChunkingPolicy(BaseModel):
    """How a document is cut into chunks.

    Attributes
    ----------
    max_bytes:
        Upper bound on the UTF-8 length of every chunk.
    unit:
        ``"sentence"`` packs whole sentences, ``"word"`` packs words.
    min_chars:
        Chunks with fewer characters are dropped as noise.
    strict:
        Drop any chunk that still exceeds ``max_bytes`` after splitting.
    """

    model_config = ConfigDict(frozen=True)

    max_bytes: int = Field(default=12_000, gt=0)
    unit: Literal["sentence", "word"] = "sentence"
    min_chars: int = Field(default=10, ge=0)
    strict: bool = False

    @classmethod
    def byte_strict(cls) -> ChunkingPolicy:
        """Hard 8 KB cap built from words."""
        return cls(max_bytes=8_000, unit="word", min_chars=10, strict=True)

    @classmethod
    def large_chunks(cls) -> ChunkingPolicy:
        """Fewer, larger sentence-based chunks to cut per-call overhead."""
        return cls(max_bytes=12_000, unit="sentence", min_chars=10, strict=False)


class Chunk(BaseModel):
    """A contiguous, byte-bounded segment of a document."""

    model_config = ConfigDict(frozen=True)

    text: str
    index: int
    byte_length: int


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to single spaces and strip the ends."""
    return _WHITESPACE.sub(" ", text).strip()


def byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def truncate_to_bytes(text: str, max_bytes: int) -> str:
    """Longest prefix of *text* whose UTF-8 encoding fits in *max_bytes*."""
    return text.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")


def _pack(
    units: list[str],
    joiner: str,
    max_bytes: int,
    explode: Callable[[str], list[str]],
) -> list[str]:
    """Greedily join *units*; oversized units go through *explode*."""
    out: list[str] = []
    current = ""
    for unit in units:
        candidate = f"{current}{joiner}{unit}" if current else unit
        if byte_length(candidate) <= max_bytes:
            current = candidate
            continue

        if current:
            out.append(current)
            current = ""

        if byte_length(unit) <= max_bytes:
            current = unit
            continue

        pieces = explode(unit)
        if pieces:
            out.extend(pieces[:-1])
            current = pieces[-1]

    if current:
        out.append(current)
    return out


def split_text(text: str, policy: ChunkingPolicy) -> list[str]:
    """Split already-normalised *text* into chunk strings.

    Parameters
    ----------
    text:
        Document text, typically the output of :func:`normalize_text`.
    policy:
        Byte budget, unit and noise threshold.

    Returns
    -------
    list[str]
        Chunks in document order. Empty input yields an empty list.
    """
    if not text.strip():
        return []

    budget = policy.max_bytes

    def truncate_word(word: str) -> list[str]:
        logger.debug("Truncating %d-byte word to %d bytes", byte_length(word), budget)
        return [truncate_to_bytes(word, budget)]

    def split_words(sentence: str) -> list[str]:
        return _pack(sentence.split(), " ", budget, truncate_word)

    if policy.unit == "sentence":
        units = [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]
        raw = _pack(units, " ", budget, split_words)
    else:
        raw = split_words(text)

    chunks: list[str] = []
    for piece in raw:
        piece = piece.strip()
        if len(piece) < policy.min_chars:
            continue
        if policy.strict and byte_length(piece) > budget:
            logger.warning("Dropping chunk of %d bytes (budget %d)", byte_length(piece), budget)
            continue
        chunks.append(piece)
    return chunks


def chunk_text(text: str, policy: ChunkingPolicy) -> list[Chunk]:
    """Normalise *text* and return indexed :class:`Chunk` objects."""
    pieces = split_text(normalize_text(text), policy)
    return [Chunk(text=p, index=i, byte_length=byte_length(p)) for i, p in enumerate(pieces)]
