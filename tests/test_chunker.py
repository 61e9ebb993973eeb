"""
Unit tests for the fixed-window text chunker.

Tests coverage of the input, exact overlap between neighbours, handling of
short and empty text, and configuration validation.
"""

import pytest

from pdfchat.config import ProcessingConfig
from pdfchat.models import Chunk
from pdfchat.processors.chunker import TextChunker


class TestTextChunker:
    """Test suite for TextChunker."""

    @pytest.fixture
    def chunker(self):
        """Small windows so tests stay readable."""
        return TextChunker(chunk_size=10, chunk_overlap=3)

    @pytest.fixture
    def sample_text(self):
        return "The quick brown fox jumps over the lazy dog near the river bank."

    def test_initialization(self, chunker):
        """Test chunker initialization."""
        assert chunker.chunk_size == 10
        assert chunker.chunk_overlap == 3
        assert chunker.step == 7

    def test_from_config(self):
        """Test building a chunker from processing configuration."""
        chunker = TextChunker.from_config(ProcessingConfig(chunk_size=1000, chunk_overlap=200))

        assert chunker.chunk_size == 1000
        assert chunker.chunk_overlap == 200

    @pytest.mark.parametrize("size,overlap", [(0, 0), (-5, 0), (10, 10), (10, 12), (10, -1)])
    def test_invalid_configuration(self, size, overlap):
        """Test that impossible window settings are rejected."""
        with pytest.raises(ValueError):
            TextChunker(chunk_size=size, chunk_overlap=overlap)

    def test_empty_text(self, chunker):
        """Test that empty text produces no chunks."""
        assert chunker.split_text("") == []
        assert chunker.create_chunks("", "doc") == []

    def test_short_text_single_chunk(self, chunker):
        """Test text shorter than one window."""
        assert chunker.split_text("short") == ["short"]

    def test_exact_window_single_chunk(self, chunker):
        """Text exactly one window long is not split."""
        assert chunker.split_text("0123456789") == ["0123456789"]

    def test_spans_cover_input_without_gaps(self, chunker, sample_text):
        """Test that consecutive spans leave no gaps and reach the end."""
        spans = chunker.compute_spans(len(sample_text))

        assert spans[0][0] == 0
        assert spans[-1][1] == len(sample_text)
        for (_, previous_end), (next_start, _) in zip(spans, spans[1:]):
            assert next_start < previous_end

    def test_consecutive_chunks_share_exact_overlap(self, chunker, sample_text):
        """Test that neighbours share exactly `chunk_overlap` characters."""
        chunks = chunker.split_text(sample_text)

        assert len(chunks) > 2
        for previous, following in zip(chunks, chunks[1:]):
            assert previous[-3:] == following[:3]

        spans = chunker.compute_spans(len(sample_text))
        for (_, previous_end), (next_start, _) in zip(spans, spans[1:]):
            assert previous_end - next_start == 3

    def test_reassembly_reproduces_input(self, chunker, sample_text):
        """Dropping the overlap from every chunk after the first rebuilds the text."""
        chunks = chunker.split_text(sample_text)
        rebuilt = chunks[0] + "".join(chunk[chunker.chunk_overlap:] for chunk in chunks[1:])

        assert rebuilt == sample_text

    def test_final_chunk_kept_when_short(self):
        """Test that a short trailing chunk is never dropped."""
        chunker = TextChunker(chunk_size=4, chunk_overlap=1)
        chunks = chunker.split_text("abcdefghij")

        assert chunks == ["abcd", "defg", "ghij"]

        chunks = chunker.split_text("abcdefghijk")
        assert chunks == ["abcd", "defg", "ghij", "jk"]

    def test_all_but_last_chunk_are_full_size(self, chunker, sample_text):
        """Only the final window may be shorter than chunk_size."""
        chunks = chunker.split_text(sample_text)

        assert all(len(chunk) == 10 for chunk in chunks[:-1])
        assert 0 < len(chunks[-1]) <= 10

    def test_deterministic(self, chunker, sample_text):
        """Identical input and configuration give identical output."""
        assert chunker.create_chunks(sample_text, "doc") == chunker.create_chunks(sample_text, "doc")

    def test_create_chunks_metadata(self, chunker, sample_text):
        """Test chunk ids, indices and offsets."""
        chunks = chunker.create_chunks(sample_text, "report")

        assert all(isinstance(chunk, Chunk) for chunk in chunks)
        assert chunks[0].chunk_id == "report_chunk_0000"
        assert chunks[1].chunk_id == "report_chunk_0001"
        assert [chunk.index for chunk in chunks] == list(range(len(chunks)))
        for chunk in chunks:
            assert sample_text[chunk.start:chunk.end] == chunk.text

    def test_chunks_are_immutable(self, chunker):
        """Chunks cannot be modified after creation."""
        chunk = chunker.create_chunks("some document text", "doc")[0]

        with pytest.raises(Exception):
            chunk.text = "changed"

    def test_zero_overlap(self):
        """Zero overlap tiles the text."""
        chunker = TextChunker(chunk_size=3, chunk_overlap=0)

        assert chunker.split_text("abcdefgh") == ["abc", "def", "gh"]

    def test_default_window(self):
        """Default settings cut 1000-character windows every 800 characters."""
        chunker = TextChunker()
        text = "x" * 2500

        spans = chunker.compute_spans(len(text))
        assert spans == [(0, 1000), (800, 1800), (1600, 2500)]
