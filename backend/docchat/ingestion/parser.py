"""PDF parsing into page-level text extracts."""

import io
import logging
from typing import Protocol

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from backend.docchat.errors import DocumentParseError
from backend.docchat.models.chunks import PageText

logger = logging.getLogger(__name__)


class DocumentParser(Protocol):
    """Protocol for converting raw file bytes into pages."""

    def parse(self, data: bytes) -> list[PageText]:
        """Parse raw bytes into page texts, in page order.

        Raises:
            DocumentParseError: If the file is malformed
        """
        ...


class PdfParser:
    """pypdf-backed parser. One PageText per PDF page, empty pages included."""

    def parse(self, data: bytes) -> list[PageText]:
        """Extract the text of every page."""
        if not data:
            raise DocumentParseError("Empty file")

        try:
            reader = PdfReader(io.BytesIO(data))
            pages = [
                PageText(page_number=number, text=page.extract_text() or "")
                for number, page in enumerate(reader.pages, start=1)
            ]
        except (PyPdfError, ValueError, KeyError, TypeError) as e:
            raise DocumentParseError(f"Malformed PDF: {e}") from e

        if not pages:
            raise DocumentParseError("PDF has no pages")

        logger.debug(f"Parsed PDF with {len(pages)} pages")
        return pages
