"""Document text processing: extraction and chunking."""

from .chunker import TextChunker
from .pdf_processor import PDFTextExtractor, load_document_text

__all__ = [
    'TextChunker',
    'PDFTextExtractor',
    'load_document_text',
]
