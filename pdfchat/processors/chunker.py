"""
Fixed-window text chunker.

Splits extracted document text into overlapping character windows that
together cover the whole input.
"""

import logging
from typing import List, Tuple

from ..models import Chunk
from ..config import ProcessingConfig

logger = logging.getLogger(__name__)


class TextChunker:
    """
    Splits text into fixed-size windows with a constant overlap.

    Windows start every `chunk_size - chunk_overlap` characters. The last
    window is the first one that reaches the end of the text, so it may be
    shorter than `chunk_size`.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap cannot be negative")
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @classmethod
    def from_config(cls, config: ProcessingConfig) -> "TextChunker":
        return cls(chunk_size=config.chunk_size, chunk_overlap=config.chunk_overlap)

    @property
    def step(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def compute_spans(self, length: int) -> List[Tuple[int, int]]:
        """
        Compute the `(start, end)` window offsets for a text of `length` chars.

        Args:
            length: Length of the text

        Returns:
            Ordered list of half-open spans covering `[0, length)`
        """
        spans = []
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            spans.append((start, end))
            if end >= length:
                break
            start += self.step

        return spans

    def split_text(self, text: str) -> List[str]:
        """Split text into overlapping window strings."""
        return [text[start:end] for start, end in self.compute_spans(len(text))]

    def create_chunks(self, text: str, document_id: str = "doc") -> List[Chunk]:
        """
        Split text into Chunk objects.

        Args:
            text: Raw extracted text
            document_id: Identifier used as the chunk id prefix

        Returns:
            List of chunks in document order
        """
        chunks = [
            Chunk(
                chunk_id=self._create_chunk_id(document_id, index),
                text=text[start:end],
                index=index,
                start=start,
                end=end
            )
            for index, (start, end) in enumerate(self.compute_spans(len(text)))
        ]

        logger.debug(
            f"Split {len(text)} characters into {len(chunks)} chunks "
            f"(size={self.chunk_size}, overlap={self.chunk_overlap})"
        )
        return chunks

    @staticmethod
    def _create_chunk_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}_chunk_{chunk_index:04d}"
