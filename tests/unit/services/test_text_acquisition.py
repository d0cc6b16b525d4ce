"""Unit tests for text acquisition, the blob store and the PDF text extractor."""

from unittest.mock import MagicMock, patch

import pytest

from policy_intake.core.exceptions import (
    AcquisitionError,
    ConfigurationError,
    DocumentParseError,
    OCRTimeoutError,
)
from policy_intake.services.acquisition.pdf_text_extractor import PDFTextExtractor
from policy_intake.services.acquisition.text_acquisition_service import TextAcquisitionService
from policy_intake.services.ocr.ocr_base import OCRJobStatus
from policy_intake.services.storage.blob_store import S3BlobStore, ocr_cache_key
from policy_intake.utils.text import PAGE_BREAK
from tests.fakes import FakeBlobStore, FakeOCRService, FakePDFExtractor

FAST_TEXT = "f" * 100
OCR_TEXT = "o" * 900


def _service(fast: bytes = FAST_TEXT.encode(), ocr_lines=None, **kwargs):
    blob_store = FakeBlobStore({"uploads/u1.pdf": fast})
    ocr = FakeOCRService(lines=ocr_lines if ocr_lines is not None else [OCR_TEXT])
    service = TextAcquisitionService(
        blob_store=blob_store,
        ocr_service=ocr,
        pdf_extractor=FakePDFExtractor(),
        ocr_poll_interval_seconds=0,
        **kwargs,
    )
    return service, blob_store, ocr


class TestTextAcquisitionService:
    """Test suite for TextAcquisitionService."""

    @pytest.mark.asyncio
    async def test_auto_prefers_longer_ocr_text(self):
        service, _, _ = _service(auto_ocr_threshold=500)
        result = await service.get_text("uploads/u1.pdf", upload_id="u1", mode="auto")
        assert result.via == "ocr"
        assert result.text == OCR_TEXT

    @pytest.mark.asyncio
    async def test_auto_keeps_fast_text_above_threshold(self):
        service, _, ocr = _service(fast=("x" * 600).encode(), auto_ocr_threshold=500)
        result = await service.get_text("uploads/u1.pdf", upload_id="u1")
        assert result.via == "fast"
        assert result.pages_scanned == 1
        assert ocr.started == []

    @pytest.mark.asyncio
    async def test_auto_keeps_fast_text_when_ocr_is_shorter(self):
        service, _, _ = _service(ocr_lines=["short"], auto_ocr_threshold=500)
        result = await service.get_text("uploads/u1.pdf", upload_id="u1")
        assert result.via == "fast"
        assert result.text == FAST_TEXT

    @pytest.mark.asyncio
    async def test_auto_falls_back_to_ocr_on_parse_error(self):
        service, _, _ = _service(fast=b"%broken pdf")
        result = await service.get_text("uploads/u1.pdf", upload_id="u1")
        assert result.via == "ocr"

    @pytest.mark.asyncio
    async def test_fast_mode_propagates_parse_error(self):
        service, _, _ = _service(fast=b"%broken pdf")
        with pytest.raises(DocumentParseError):
            await service.get_text("uploads/u1.pdf", mode="fast")

    @pytest.mark.asyncio
    async def test_missing_document(self):
        service, _, _ = _service()
        with pytest.raises(AcquisitionError):
            await service.get_text("uploads/missing.pdf", mode="fast")

    @pytest.mark.asyncio
    async def test_ocr_cache_hit_skips_ocr(self):
        service, blob_store, ocr = _service()
        blob_store.blobs[ocr_cache_key("u1")] = b"cached text"

        result = await service.get_text("uploads/u1.pdf", upload_id="u1", mode="ocr")

        assert result.text == "cached text"
        assert result.cached is True
        assert ocr.started == []

    @pytest.mark.asyncio
    async def test_ocr_miss_writes_cache(self):
        service, blob_store, ocr = _service()
        result = await service.get_text("uploads/u1.pdf", upload_id="u1", mode="ocr")

        assert result.cached is False
        assert ocr.started == ["uploads/u1.pdf"]
        assert blob_store.blobs[ocr_cache_key("u1")] == OCR_TEXT.encode()

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_ignored(self):
        service, blob_store, _ = _service()
        blob_store.fail_puts = True
        result = await service.get_text("uploads/u1.pdf", upload_id="u1", mode="ocr")
        assert result.text == OCR_TEXT

    @pytest.mark.asyncio
    async def test_no_cache_without_upload_id(self):
        service, blob_store, _ = _service()
        await service.get_text("uploads/u1.pdf", mode="ocr")
        assert list(blob_store.blobs) == ["uploads/u1.pdf"]

    @pytest.mark.asyncio
    async def test_disabled_cache_is_not_written(self):
        service, blob_store, _ = _service()
        blob_store.cache_enabled = False
        await service.get_text("uploads/u1.pdf", upload_id="u1", mode="ocr")
        assert ocr_cache_key("u1") not in blob_store.blobs

    @pytest.mark.asyncio
    async def test_ocr_timeout(self):
        service, _, ocr = _service(ocr_timeout_seconds=0)
        ocr.statuses = [OCRJobStatus.PENDING]
        with pytest.raises(OCRTimeoutError):
            await service.get_text("uploads/u1.pdf", upload_id="u1", mode="ocr")

    @pytest.mark.asyncio
    async def test_ocr_failure(self):
        service, _, ocr = _service()
        ocr.statuses = [OCRJobStatus.FAILED]
        with pytest.raises(AcquisitionError) as exc_info:
            await service.get_text("uploads/u1.pdf", upload_id="u1", mode="ocr")
        assert not isinstance(exc_info.value, OCRTimeoutError)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            _service(mode="turbo")


class TestS3BlobStore:
    """Test suite for S3BlobStore."""

    def test_requires_bucket(self):
        with pytest.raises(ConfigurationError):
            S3BlobStore(bucket="", client=MagicMock())

    @pytest.mark.asyncio
    async def test_get_blob(self):
        client = MagicMock()
        client.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"%PDF"))}
        store = S3BlobStore(bucket="policies", client=client)

        assert await store.get_blob("uploads/u1.pdf") == b"%PDF"
        client.get_object.assert_called_once_with(Bucket="policies", Key="uploads/u1.pdf")

    @pytest.mark.asyncio
    async def test_get_failure_is_acquisition_error(self):
        client = MagicMock()
        client.get_object.side_effect = RuntimeError("NoSuchKey")
        store = S3BlobStore(bucket="policies", client=client)

        with pytest.raises(AcquisitionError):
            await store.get_blob("uploads/u1.pdf")
        assert await store.get_cached_text("u1") is None

    @pytest.mark.asyncio
    async def test_cache_write_sets_cache_control(self):
        client = MagicMock()
        store = S3BlobStore(bucket="policies", client=client)

        await store.put_cached_text("u1", "text")

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Key"] == "ocr_texts/u1.txt"
        assert kwargs["Body"] == b"text"
        assert kwargs["ContentType"] == "text/plain; charset=utf-8"
        assert kwargs["CacheControl"] == "max-age=31536000"


class TestPDFTextExtractor:
    """Test suite for PDFTextExtractor."""

    def test_invalid_bytes(self):
        with pytest.raises(DocumentParseError):
            PDFTextExtractor().extract_text(b"definitely not a pdf")

    def test_reads_limited_pages(self):
        broken_page = MagicMock()
        broken_page.extract_text.side_effect = RuntimeError("bad font")
        pages = [
            MagicMock(extract_text=MagicMock(return_value="Policy No:  D1")),
            broken_page,
            MagicMock(extract_text=MagicMock(return_value="IDV 100000")),
            MagicMock(extract_text=MagicMock(return_value="page four")),
        ]
        pdf = MagicMock(pages=pages)

        with patch(
            "policy_intake.services.acquisition.pdf_text_extractor.pdfplumber.open",
            return_value=pdf,
        ):
            result = PDFTextExtractor(page_limit=3).extract_text(b"%PDF-1.4")

        assert result.pages_scanned == 3
        assert result.text == PAGE_BREAK.join(["Policy No: D1", "", "IDV 100000"])
        pages[3].extract_text.assert_not_called()
