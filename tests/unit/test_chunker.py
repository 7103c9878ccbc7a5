"""Unit tests for the TextChunker overlapping-window splitter."""

from __future__ import annotations

import pytest

from autoreply.services.chunker import ChunkUnit, TextChunker
from autoreply.utils.errors import InvalidConfigurationError


def _reconstruct(chunker: TextChunker, chunks: list[str]) -> str:
    if not chunks:
        return ""
    return chunks[0] + "".join(chunker.strip_overlap(c) for c in chunks[1:])


class TestConfiguration:
    def test_overlap_equal_to_size_rejected(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            TextChunker(max_unit_size=10, overlap=10)

    def test_overlap_larger_than_size_rejected(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            TextChunker(max_unit_size=10, overlap=15)

    def test_negative_overlap_rejected(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            TextChunker(max_unit_size=10, overlap=-1)

    def test_zero_size_rejected(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            TextChunker(max_unit_size=0, overlap=0)

    def test_unknown_unit_rejected(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            TextChunker(max_unit_size=10, overlap=0, unit="tokens")

    def test_defaults(self) -> None:
        chunker = TextChunker()
        assert chunker.max_unit_size == 1200
        assert chunker.overlap == 100
        assert chunker.unit is ChunkUnit.CHARACTERS

    def test_unit_accepts_string(self) -> None:
        assert TextChunker(10, 2, "words").unit is ChunkUnit.WORDS


class TestCharacterChunking:
    def test_25_chars_no_overlap_gives_10_10_5(self) -> None:
        chunker = TextChunker(max_unit_size=10, overlap=0)
        text = "abcdefghijklmnopqrstuvwxy"
        chunks = chunker.split(text)
        assert [len(c) for c in chunks] == [10, 10, 5]
        assert "".join(chunks) == text

    def test_empty_text_returns_empty_list(self) -> None:
        assert TextChunker(10, 2).split("") == []

    def test_whitespace_only_returns_empty_list(self) -> None:
        assert TextChunker(10, 2).split("   \n\t  ") == []

    def test_short_text_single_chunk(self) -> None:
        assert TextChunker(100, 10).split("Open 9 to 5.") == ["Open 9 to 5."]

    def test_exact_size_single_chunk(self) -> None:
        assert TextChunker(5, 2).split("abcde") == ["abcde"]

    def test_overlap_shared_between_neighbours(self) -> None:
        chunks = TextChunker(max_unit_size=10, overlap=3).split("0123456789abcdefghij")
        assert chunks[0] == "0123456789"
        assert chunks[1].startswith("789")

    def test_round_trip_with_overlap(self) -> None:
        chunker = TextChunker(max_unit_size=10, overlap=2)
        text = "The quick brown fox jumps over the lazy dog. " * 3
        chunks = chunker.split(text)
        assert len(chunks) > 1
        assert _reconstruct(chunker, chunks) == text

    def test_no_chunk_exceeds_size(self) -> None:
        chunks = TextChunker(max_unit_size=7, overlap=3).split("x" * 100)
        assert all(len(c) <= 7 for c in chunks)

    def test_no_blank_chunks(self) -> None:
        text = "menu" + " " * 30 + "prices"
        chunks = TextChunker(max_unit_size=10, overlap=0).split(text)
        assert chunks
        assert all(c.strip() for c in chunks)

    def test_long_whitespace_run_round_trips(self) -> None:
        chunker = TextChunker(max_unit_size=10, overlap=0)
        text = "abcdefghij" + " " * 10 + "klmno"
        chunks = chunker.split(text)
        assert all(c.strip() for c in chunks)
        assert _reconstruct(chunker, chunks) == text

    def test_long_whitespace_run_round_trips_with_overlap(self) -> None:
        chunker = TextChunker(max_unit_size=10, overlap=3)
        text = "abcdefghij" + " " * 14 + "klmnopqrst"
        chunks = chunker.split(text)
        assert all(c.strip() for c in chunks)
        assert _reconstruct(chunker, chunks) == text

    def test_trailing_whitespace_joins_last_chunk(self) -> None:
        chunker = TextChunker(max_unit_size=5, overlap=1)
        text = "hello world" + "\n" * 12
        chunks = chunker.split(text)
        assert chunks[-1].endswith("\n" * 12)
        assert all(c.strip() for c in chunks)
        assert _reconstruct(chunker, chunks) == text

    def test_terminates_with_minimal_advance(self) -> None:
        chunks = TextChunker(max_unit_size=2, overlap=1).split("abcdef")
        assert chunks == ["ab", "bc", "cd", "de", "ef"]


class TestWordChunking:
    def test_words_counted_as_units(self) -> None:
        chunker = TextChunker(max_unit_size=3, overlap=0, unit=ChunkUnit.WORDS)
        chunks = chunker.split("one two three four five six seven")
        assert chunks == ["one two three ", "four five six ", "seven"]

    def test_round_trip_preserves_whitespace(self) -> None:
        chunker = TextChunker(max_unit_size=4, overlap=1, unit=ChunkUnit.WORDS)
        text = "  Latte $4.\nCappuccino  $4.50\n\nMocha $5 and free wifi all day"
        chunks = chunker.split(text)
        assert len(chunks) > 1
        assert _reconstruct(chunker, chunks) == text

    def test_overlap_repeats_trailing_words(self) -> None:
        chunker = TextChunker(max_unit_size=3, overlap=1, unit="words")
        chunks = chunker.split("a b c d e")
        assert chunks == ["a b c ", "c d e"]
