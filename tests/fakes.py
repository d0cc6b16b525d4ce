"""In-memory stand-ins for S3, Textract and the chat completion API."""

import asyncio
import json
from typing import Any, Dict, List, Optional

from policy_intake.core.exceptions import AcquisitionError, DocumentParseError
from policy_intake.core.ttl_cache import TTLCache
from policy_intake.services.acquisition.pdf_text_extractor import FastText, PDFTextExtractor
from policy_intake.services.acquisition.text_acquisition_service import TextAcquisitionService
from policy_intake.services.extraction.llm_extractor import LLMExtractionService
from policy_intake.services.extraction.orchestrator import ExtractionOrchestrator
from policy_intake.services.ocr.ocr_base import BaseOCRService, OCRJobStatus
from policy_intake.services.storage.blob_store import BaseBlobStore

SAMPLE_POLICY_TEXT = """Private Car Package Policy - Schedule
Policy No: D217080603
Registration No: TN18BE3785
Make / Model / Variant : HYUNDAI / CRETA / SX 1.5
Fuel Type: PETROL
Period of Insurance From 21/09/2025 To 20/09/2026
Vehicle Details
Insured Declared Value IDV ₹3,80,000
Schedule of Premium
Net Premium ₹15,432
"""


def llm_payload(**overrides: Any) -> str:
    """JSON body a well-behaved model returns for ``SAMPLE_POLICY_TEXT``."""
    payload = {
        "schema_version": "1.0",
        "policy_number": "D217080603",
        "vehicle_number": "TN18BE3785",
        "insurer": "Digit",
        "issue_date": "2025-09-21",
        "expiry_date": "2026-09-20",
        "total_premium": "15,432",
        "net_od": None,
        "idv": "380000",
    }
    payload.update(overrides)
    return json.dumps(payload)


class FakeBlobStore(BaseBlobStore):
    """Dict-backed blob store."""

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None, cache_enabled: bool = True):
        super().__init__(cache_enabled=cache_enabled)
        self.blobs: Dict[str, bytes] = dict(blobs or {})
        self.fail_puts = False

    @property
    def bucket(self) -> str:
        return "test-bucket"

    async def get_blob(self, key: str) -> bytes:
        if key not in self.blobs:
            raise AcquisitionError(f"missing blob {key}")
        return self.blobs[key]

    async def put_blob(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_puts:
            raise RuntimeError("bucket is read-only")
        self.blobs[key] = data


class FakePDFExtractor(PDFTextExtractor):
    """Treats blob bytes as UTF-8 text; ``b"%broken"`` fails to parse."""

    async def extract(self, pdf_bytes: bytes) -> FastText:
        if pdf_bytes.startswith(b"%broken"):
            raise DocumentParseError("Could not open PDF")
        return FastText(text=pdf_bytes.decode("utf-8").strip(), pages_scanned=1)


class FakeOCRService(BaseOCRService):
    """OCR provider returning fixed lines after the scripted statuses."""

    def __init__(self, lines: Optional[List[str]] = None, statuses: Optional[List[OCRJobStatus]] = None):
        self.lines = lines or []
        self.statuses = list(statuses or [OCRJobStatus.SUCCEEDED])
        self.started: List[str] = []

    async def start_job(self, bucket: str, key: str) -> str:
        self.started.append(key)
        return f"job-{len(self.started)}"

    async def poll_job(self, job_id: str) -> OCRJobStatus:
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    async def fetch_lines(self, job_id: str) -> List[str]:
        return list(self.lines)

    def get_service_name(self) -> str:
        return "Fake OCR"


class FakeChatClient:
    """Stands in for ``OpenAIChatClient``; returns ``content`` or raises ``error``."""

    def __init__(self, content: str = "", error: Optional[Exception] = None, delay: float = 0.0):
        self.content = content
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, **kwargs: Any) -> str:
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.content


def build_orchestrator(
    text: str = SAMPLE_POLICY_TEXT,
    chat_client: Optional[FakeChatClient] = None,
    timeout_ms: int = 4000,
) -> ExtractionOrchestrator:
    """Pipeline over fakes with ``uploads/u1.pdf`` holding ``text``."""
    blob_store = FakeBlobStore({"uploads/u1.pdf": text.encode("utf-8")})
    acquisition = TextAcquisitionService(
        blob_store=blob_store,
        ocr_service=FakeOCRService(),
        pdf_extractor=FakePDFExtractor(),
        mode="fast",
    )
    llm_service = LLMExtractionService(
        client=chat_client or FakeChatClient(content=llm_payload()),
        model_primary="test-mini",
        model_secondary="test-large",
        timeout_ms=timeout_ms,
        cache=TTLCache(ttl_seconds=120),
    )
    return ExtractionOrchestrator(acquisition=acquisition, llm_service=llm_service)
