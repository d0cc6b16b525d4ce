"""Turns a stored PDF into plain text, choosing between fast parsing and OCR."""

import time
from typing import Optional

from policy_intake.core.exceptions import (
    AcquisitionError,
    DocumentParseError,
    OCRTimeoutError,
)
from policy_intake.services.acquisition.pdf_text_extractor import PDFTextExtractor
from policy_intake.services.ocr.ocr_base import BaseOCRService
from policy_intake.services.storage.blob_store import BaseBlobStore
from policy_intake.utils.logging import get_logger
from policy_intake.utils.text import normalize_whitespace

LOGGER = get_logger(__name__)

TEXT_MODES = ("fast", "ocr", "auto")


class AcquiredText:
    """Text of one document and how it was obtained.

    Attributes:
        text: Normalized document text
        via: ``fast`` or ``ocr``
        pages_scanned: Pages read by the fast parser, ``None`` for OCR
        elapsed_ms: Time spent acquiring the text
        cached: Whether OCR text came from the blob cache
    """

    def __init__(
        self,
        text: str,
        via: str,
        pages_scanned: Optional[int] = None,
        elapsed_ms: int = 0,
        cached: bool = False,
    ):
        self.text = text
        self.via = via
        self.pages_scanned = pages_scanned
        self.elapsed_ms = elapsed_ms
        self.cached = cached


class TextAcquisitionService:
    """Implements the ``fast`` / ``ocr`` / ``auto`` text acquisition modes."""

    def __init__(
        self,
        blob_store: BaseBlobStore,
        ocr_service: BaseOCRService,
        pdf_extractor: Optional[PDFTextExtractor] = None,
        mode: str = "auto",
        auto_ocr_threshold: int = 500,
        ocr_timeout_seconds: float = 120.0,
        ocr_poll_interval_seconds: float = 2.0,
    ):
        """Initialize the service.

        Args:
            blob_store: Source of PDF bytes and the OCR text cache
            ocr_service: Job-based OCR provider
            pdf_extractor: Embedded-text parser
            mode: Default mode when ``get_text`` is called without one
            auto_ocr_threshold: In ``auto`` mode, fast text shorter than this triggers OCR
            ocr_timeout_seconds: OCR wait ceiling
            ocr_poll_interval_seconds: Delay between OCR status polls
        """
        if mode not in TEXT_MODES:
            raise ValueError(f"Unknown text mode: {mode}")
        self.blob_store = blob_store
        self.ocr_service = ocr_service
        self.pdf_extractor = pdf_extractor or PDFTextExtractor()
        self.mode = mode
        self.auto_ocr_threshold = auto_ocr_threshold
        self.ocr_timeout_seconds = ocr_timeout_seconds
        self.ocr_poll_interval_seconds = ocr_poll_interval_seconds

    async def get_text(
        self,
        document_key: str,
        upload_id: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> AcquiredText:
        """Acquire the text of ``document_key``.

        Raises:
            AcquisitionError: If the document cannot be fetched or parsed, or OCR fails
            OCRTimeoutError: If the OCR job misses the wait ceiling
        """
        mode = mode or self.mode
        if mode not in TEXT_MODES:
            raise ValueError(f"Unknown text mode: {mode}")

        started = time.perf_counter()
        if mode == "fast":
            result = await self._fast(document_key)
        elif mode == "ocr":
            result = await self._ocr(document_key, upload_id)
        else:
            result = await self._auto(document_key, upload_id)

        result.elapsed_ms = int((time.perf_counter() - started) * 1000)
        LOGGER.info(
            "Text acquired",
            extra={
                "upload_id": upload_id,
                "mode": mode,
                "via": result.via,
                "chars": len(result.text),
                "elapsed_ms": result.elapsed_ms,
            },
        )
        return result

    async def _fast(self, document_key: str) -> AcquiredText:
        pdf_bytes = await self.blob_store.get_blob(document_key)
        fast = await self.pdf_extractor.extract(pdf_bytes)
        return AcquiredText(text=fast.text, via="fast", pages_scanned=fast.pages_scanned)

    async def _ocr(self, document_key: str, upload_id: Optional[str]) -> AcquiredText:
        cached = await self.blob_store.get_cached_text(upload_id)
        if cached:
            return AcquiredText(text=cached, via="ocr", cached=True)

        result = await self.ocr_service.extract_text(
            self.blob_store.bucket,
            document_key,
            timeout_seconds=self.ocr_timeout_seconds,
            poll_interval_seconds=self.ocr_poll_interval_seconds,
        )
        if not result.success:
            LOGGER.error(
                "OCR failed",
                extra={"upload_id": upload_id, "key": document_key, "error": result.error},
            )
            if result.timed_out:
                raise OCRTimeoutError(result.error or "OCR timed out")
            raise AcquisitionError(f"OCR failed: {result.error}")

        text = normalize_whitespace(result.text).strip()
        await self.blob_store.put_cached_text(upload_id, text)
        return AcquiredText(text=text, via="ocr")

    async def _auto(self, document_key: str, upload_id: Optional[str]) -> AcquiredText:
        try:
            fast = await self._fast(document_key)
        except DocumentParseError as e:
            LOGGER.warning(
                "Fast parse failed, falling back to OCR",
                extra={"upload_id": upload_id, "error": str(e)},
            )
            fast = AcquiredText(text="", via="fast", pages_scanned=0)

        if len(fast.text) >= self.auto_ocr_threshold:
            return fast

        ocr = await self._ocr(document_key, upload_id)
        return ocr if len(ocr.text) > len(fast.text) else fast
