"""
PDF text extraction for document ingestion.

Uses PyPDF2 to pull the text out of every page. The extracted text is joined
into one string and handed to the chunker; layout is not preserved.
"""

import logging
import re
from pathlib import Path
from typing import List

try:
    import PyPDF2
except ImportError:
    raise ImportError("PyPDF2 is required for PDF processing. Install with: pip install PyPDF2>=3.0.0")

from ..config import ProcessingConfig
from ..errors import ExtractionError

logger = logging.getLogger(__name__)


class PDFTextExtractor:
    """
    Extracts plain text from PDF files.

    Features:
    - Text extraction from all pages, joined with a single space
    - Whitespace normalisation of PDF extraction artifacts
    - File size and encryption validation
    """

    def __init__(self, config: ProcessingConfig):
        self.config = config
        self.supported_formats = ['pdf']

    def extract_text(self, file_path: str) -> str:
        """
        Extract text content from all pages of the PDF.

        Args:
            file_path: Path to the PDF file

        Returns:
            Extracted text of all pages joined with spaces

        Raises:
            ExtractionError: If the file is missing, too large, encrypted,
                unreadable, or contains no text
        """
        path = Path(file_path)
        if not path.exists():
            raise ExtractionError(f"PDF file not found: {file_path}", file_path=file_path)

        if path.suffix.lower() != '.pdf':
            raise ExtractionError(
                f"Invalid file extension. Expected .pdf, got {path.suffix}",
                file_path=file_path
            )

        if self._is_file_too_large(path):
            raise ExtractionError(
                f"File too large. Maximum size: {self.config.max_file_size_mb}MB",
                file_path=file_path
            )

        try:
            with open(file_path, 'rb') as file:
                reader = PyPDF2.PdfReader(file)

                if reader.is_encrypted:
                    raise ExtractionError(
                        "Cannot extract content from encrypted PDF",
                        file_path=file_path
                    )

                page_texts = self._extract_pages(reader)

        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(
                f"Failed to extract content from PDF: {str(e)}",
                file_path=file_path,
                cause=e
            )

        if not page_texts:
            raise ExtractionError(
                "No text content could be extracted from PDF",
                file_path=file_path
            )

        text = self.clean_text(" ".join(page_texts))
        logger.info(f"Extracted {len(text)} characters from {len(page_texts)} pages of {path.name}")
        return text

    def _extract_pages(self, reader) -> List[str]:
        page_texts = []

        for page_num, page in enumerate(reader.pages, 1):
            try:
                page_text = page.extract_text() or ""
            except Exception as e:
                logger.warning(f"Could not extract text from page {page_num}: {e}")
                continue

            if page_text.strip():
                page_texts.append(page_text)

        return page_texts

    @staticmethod
    def clean_text(text: str) -> str:
        """
        Collapse whitespace runs left behind by PDF text extraction.

        Args:
            text: Raw extracted text

        Returns:
            Cleaned text
        """
        text = re.sub(r'\s+', ' ', text)
        text = re.sub(r'\s+([\.!?,;:])', r'\1', text)
        return text.strip()

    def _is_file_too_large(self, path: Path) -> bool:
        max_size_bytes = self.config.max_file_size_mb * 1024 * 1024
        return path.stat().st_size > max_size_bytes


def load_document_text(file_path: str, config: ProcessingConfig) -> str:
    """
    Read the text of a document for ingestion.

    PDF files go through PDFTextExtractor; anything else is read as UTF-8
    plain text.

    Raises:
        ExtractionError: If the document cannot be read or is empty
    """
    path = Path(file_path)
    if path.suffix.lower() == '.pdf':
        return PDFTextExtractor(config).extract_text(file_path)

    try:
        text = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise ExtractionError(f"Failed to read text file: {str(e)}", file_path=file_path, cause=e)

    if not text.strip():
        raise ExtractionError("Document contains no text", file_path=file_path)
    return text
