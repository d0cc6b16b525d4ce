"""Single entry point composing acquisition, windowing, LLM, assist and gate."""

import time
from typing import Optional

from policy_intake.schemas.extraction import (
    DebugInfo,
    PolicyExtractV1,
    validate_policy_extract,
)
from policy_intake.schemas.response import ExtractionMeta
from policy_intake.services.acquisition.text_acquisition_service import TextAcquisitionService
from policy_intake.services.extraction.evidence_gate import POLICY_NUMBER, harden
from policy_intake.services.extraction.insurer_map import to_insurer_hint
from policy_intake.services.extraction.llm_extractor import (
    MODEL_TIERS,
    LLMExtractionService,
    adapt_llm_result,
)
from policy_intake.services.extraction.regex_assist import apply_assist
from policy_intake.services.extraction.windowing import build_windows, first_anchor_offset
from policy_intake.utils.logging import get_logger
from policy_intake.utils.text import excerpt

LOGGER = get_logger(__name__)


class ExtractionOutcome:
    """Validated record plus the attempt's metadata."""

    def __init__(self, data: PolicyExtractV1, meta: ExtractionMeta):
        self.data = data
        self.meta = meta

    def to_dict(self):
        return {
            "ok": True,
            "data": self.data.to_payload(),
            "meta": self.meta.model_dump(by_alias=True),
        }


def evidence_snippet(text: str) -> Optional[str]:
    """Short excerpt around the policy-number label, else around the first anchor."""
    m = POLICY_NUMBER.search(text)
    if m:
        return excerpt(text, m.start())
    offset = first_anchor_offset(text)
    return excerpt(text, offset) if offset is not None else None


class ExtractionOrchestrator:
    """Runs one extraction attempt for one model tier.

    Stages run strictly in order. Acquisition and LLM failures abort the
    attempt (``AcquisitionError`` / ``ExtractionError``); no partial record is
    produced.
    """

    def __init__(
        self,
        acquisition: TextAcquisitionService,
        llm_service: LLMExtractionService,
        window_max_chars: int = 8000,
        window_fallback_chars: int = 4000,
        window_lead_in: int = 800,
        window_tail: int = 2200,
    ):
        self.acquisition = acquisition
        self.llm_service = llm_service
        self.window_max_chars = window_max_chars
        self.window_fallback_chars = window_fallback_chars
        self.window_lead_in = window_lead_in
        self.window_tail = window_tail

    async def extract(
        self,
        document_key: str,
        upload_id: Optional[str] = None,
        model_tier: str = "primary",
        mode: Optional[str] = None,
        insurer_hint: Optional[str] = None,
    ) -> ExtractionOutcome:
        """Extract a validated ``PolicyExtractV1`` from a stored document.

        Args:
            document_key: Blob key of the PDF
            upload_id: Upload id, used for the OCR and LLM caches
            model_tier: ``primary`` or ``secondary``
            mode: Text acquisition mode override
            insurer_hint: Free-text insurer from the upload row, if any

        Returns:
            ExtractionOutcome: Record and metadata

        Raises:
            AcquisitionError: If the document text cannot be obtained
            ExtractionError: If the LLM call fails
            ValidationError: If the final record does not validate
        """
        if model_tier not in MODEL_TIERS:
            raise ValueError(f"Unknown model tier: {model_tier}")

        started = time.perf_counter()

        acquired = await self.acquisition.get_text(document_key, upload_id=upload_id, mode=mode)
        text = acquired.text

        windowed = build_windows(
            text,
            max_chars=self.window_max_chars,
            lead_in=self.window_lead_in,
            tail=self.window_tail,
            fallback_chars=self.window_fallback_chars,
        )

        llm_result = await self.llm_service.extract(
            upload_id=upload_id,
            model_tier=model_tier,
            insurer_hint=to_insurer_hint(insurer_hint),
            windowed_text=windowed,
        )
        if not llm_result.success:
            raise llm_result.error

        debug = DebugInfo(
            pages_scanned=acquired.pages_scanned,
            evidence_snippet=evidence_snippet(text),
        )
        record = adapt_llm_result(llm_result.data, debug=debug)
        record = apply_assist(text, record)
        record = harden(record, text)
        record = validate_policy_extract(record)

        meta = ExtractionMeta(
            via=acquired.via,
            model_tag=model_tier,
            text_char_count=len(text),
            text_acquisition_ms=acquired.elapsed_ms,
            llm_ms=llm_result.elapsed_ms,
            total_ms=int((time.perf_counter() - started) * 1000),
            model=llm_result.model,
            llm_cached=llm_result.cached,
        )

        LOGGER.info(
            "Extraction complete",
            extra={
                "upload_id": upload_id,
                "model_tier": model_tier,
                "via": meta.via,
                "chars": meta.text_char_count,
                "total_ms": meta.total_ms,
                "filled": sum(1 for name in type(record).model_fields if _is_filled(record, name)),
            },
        )
        return ExtractionOutcome(data=record, meta=meta)


def _is_filled(record: PolicyExtractV1, name: str) -> bool:
    value = getattr(record, name)
    return getattr(value, "value", None) is not None
