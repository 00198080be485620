"""Unit tests for byte-bounded chunking."""

from __future__ import annotations

import pytest

from docchat.ingestion.chunker import (
    ChunkingPolicy,
    byte_length,
    chunk_text,
    normalize_text,
    split_text,
    truncate_to_bytes,
)


class TestHelpers:
    def test_normalize_collapses_whitespace(self) -> None:
        assert normalize_text("  Alpha.\n\n\tBeta.  ") == "Alpha. Beta."

    def test_byte_length_counts_utf8(self) -> None:
        assert byte_length("é") == 2
        assert byte_length("abc") == 3

    def test_truncate_never_splits_a_code_point(self) -> None:
        out = truncate_to_bytes("é" * 10, 5)
        assert out == "éé"
        assert byte_length(out) <= 5


class TestPolicies:
    def test_byte_strict_preset(self) -> None:
        p = ChunkingPolicy.byte_strict()
        assert (p.max_bytes, p.unit, p.strict) == (8000, "word", True)

    def test_large_chunks_preset(self) -> None:
        p = ChunkingPolicy.large_chunks()
        assert (p.max_bytes, p.unit, p.strict) == (12000, "sentence", False)

    def test_policy_is_frozen(self) -> None:
        p = ChunkingPolicy.large_chunks()
        with pytest.raises(Exception):
            p.max_bytes = 10  # type: ignore[misc]


class TestChunkText:
    def test_short_text_is_one_chunk(self) -> None:
        chunks = chunk_text("Alpha. Beta. Gamma.", ChunkingPolicy.large_chunks())
        assert len(chunks) == 1
        assert chunks[0].text == "Alpha. Beta. Gamma."
        assert chunks[0].index == 0

    def test_empty_and_whitespace_input(self) -> None:
        assert chunk_text("", ChunkingPolicy.large_chunks()) == []
        assert chunk_text("   \n\t ", ChunkingPolicy.byte_strict()) == []

    def test_every_chunk_within_budget(self) -> None:
        text = " ".join(f"Sentence number {i} talks about widgets." for i in range(2000))
        for policy in (ChunkingPolicy.byte_strict(), ChunkingPolicy.large_chunks()):
            chunks = chunk_text(text, policy)
            assert len(chunks) > 1
            assert all(c.byte_length <= policy.max_bytes for c in chunks)

    def test_indexes_are_consecutive(self) -> None:
        text = "word " * 5000
        chunks = chunk_text(text, ChunkingPolicy.byte_strict())
        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_multibyte_text_respects_bytes_not_chars(self) -> None:
        policy = ChunkingPolicy(max_bytes=100, unit="word", min_chars=0)
        chunks = chunk_text("héllo wörld " * 50, policy)
        assert all(byte_length(c.text) <= 100 for c in chunks)

    def test_sentence_punctuation_kept(self) -> None:
        policy = ChunkingPolicy(max_bytes=12, unit="sentence", min_chars=0)
        assert split_text("Hi there. Okay then.", policy) == ["Hi there.", "Okay then."]

    def test_short_pieces_dropped(self) -> None:
        policy = ChunkingPolicy(max_bytes=12, unit="sentence", min_chars=5)
        assert split_text("Hi. Okay then.", policy) == ["Okay then."]

    def test_oversized_sentence_falls_back_to_words(self) -> None:
        policy = ChunkingPolicy(max_bytes=20, unit="sentence", min_chars=0)
        pieces = split_text("one two three four five six seven.", policy)
        assert pieces == ["one two three four", "five six seven."]

    def test_oversized_word_is_truncated(self) -> None:
        policy = ChunkingPolicy(max_bytes=50, unit="word", min_chars=0)
        pieces = split_text("x" * 120, policy)
        assert pieces == ["x" * 50]

    def test_concatenation_preserves_words(self) -> None:
        text = " ".join(f"w{i}" for i in range(3000))
        chunks = chunk_text(text, ChunkingPolicy(max_bytes=200, unit="word", min_chars=0))
        assert " ".join(c.text for c in chunks) == text
