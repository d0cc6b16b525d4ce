"""Service wiring for the API. Every provider can be replaced via ``app.dependency_overrides``."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from policy_intake.config import settings
from policy_intake.core.openai_client import OpenAIChatClient
from policy_intake.core.ttl_cache import TTLCache
from policy_intake.services.acquisition.pdf_text_extractor import PDFTextExtractor
from policy_intake.services.acquisition.text_acquisition_service import TextAcquisitionService
from policy_intake.services.extraction.llm_extractor import LLMExtractionService
from policy_intake.services.extraction.orchestrator import ExtractionOrchestrator
from policy_intake.services.ocr.textract_ocr_service import TextractOCRService
from policy_intake.services.review.upload_review_service import UploadReviewService
from policy_intake.services.storage.blob_store import S3BlobStore
from policy_intake.services.storage.record_store import BaseRecordStore, InMemoryRecordStore


@lru_cache
def get_record_store() -> BaseRecordStore:
    return InMemoryRecordStore()


@lru_cache
def get_orchestrator() -> ExtractionOrchestrator:
    """Build the extraction pipeline from settings, once per process."""
    blob_store = S3BlobStore(
        bucket=settings.aws.bucket,
        region=settings.aws.region,
        cache_enabled=settings.ocr_cache_enabled,
    )
    acquisition = TextAcquisitionService(
        blob_store=blob_store,
        ocr_service=TextractOCRService(region=settings.aws.region),
        pdf_extractor=PDFTextExtractor(page_limit=settings.extraction.fast_page_limit),
        mode=settings.extraction.text_mode,
        auto_ocr_threshold=settings.extraction.auto_ocr_threshold,
        ocr_timeout_seconds=settings.extraction.ocr_timeout_sec,
        ocr_poll_interval_seconds=settings.extraction.ocr_poll_interval_sec,
    )
    llm_service = LLMExtractionService(
        client=OpenAIChatClient(
            api_key=settings.llm.api_key,
            base_url=settings.llm.api_url,
            timeout=settings.llm.timeout_ms / 1000,
        ),
        model_primary=settings.llm.model_primary,
        model_secondary=settings.llm.model_secondary,
        timeout_ms=settings.llm.timeout_ms,
        cache=TTLCache(ttl_seconds=settings.llm.cache_ttl_sec),
    )
    return ExtractionOrchestrator(
        acquisition=acquisition,
        llm_service=llm_service,
        window_max_chars=settings.extraction.window_max_chars,
        window_fallback_chars=settings.extraction.window_fallback_chars,
        window_lead_in=settings.extraction.window_lead_in,
        window_tail=settings.extraction.window_tail,
    )


async def get_review_service(
    record_store: Annotated[BaseRecordStore, Depends(get_record_store)],
    orchestrator: Annotated[ExtractionOrchestrator, Depends(get_orchestrator)],
) -> UploadReviewService:
    return UploadReviewService(record_store=record_store, orchestrator=orchestrator)
