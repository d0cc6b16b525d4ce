"""Fast embedded-text extraction with pdfplumber."""

import asyncio
from io import BytesIO
from typing import List, NamedTuple, Optional

import pdfplumber

from policy_intake.core.exceptions import DocumentParseError
from policy_intake.utils.logging import get_logger
from policy_intake.utils.text import PAGE_BREAK, normalize_whitespace

LOGGER = get_logger(__name__)


class FastText(NamedTuple):
    text: str
    pages_scanned: int


class PDFTextExtractor:
    """Reads the embedded text layer page by page, line by line.

    Pages without a text layer contribute an empty string. Only the first
    ``page_limit`` pages are read (all pages when ``None``).
    """

    def __init__(self, page_limit: Optional[int] = 4):
        self.page_limit = page_limit

    def extract_text(self, pdf_bytes: bytes) -> FastText:
        """Blocking extraction; see ``extract`` for the async variant.

        Raises:
            DocumentParseError: If the bytes cannot be opened as a PDF
        """
        try:
            pdf = pdfplumber.open(BytesIO(pdf_bytes))
        except Exception as e:
            raise DocumentParseError(f"Could not open PDF: {e}", original_error=e) from e

        pages: List[str] = []
        with pdf:
            selected = pdf.pages if self.page_limit is None else pdf.pages[: self.page_limit]
            for page_number, page in enumerate(selected, start=1):
                try:
                    page_text = page.extract_text() or ""
                except Exception as e:
                    LOGGER.warning(
                        "Page text extraction failed",
                        extra={"page_number": page_number, "error": str(e)},
                    )
                    page_text = ""
                pages.append(normalize_whitespace(page_text))

        text = normalize_whitespace(PAGE_BREAK.join(pages)).strip()
        return FastText(text=text, pages_scanned=len(pages))

    async def extract(self, pdf_bytes: bytes) -> FastText:
        return await asyncio.to_thread(self.extract_text, pdf_bytes)
