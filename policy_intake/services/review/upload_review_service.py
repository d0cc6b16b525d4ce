"""Upload review workflow: extraction for review and confirm-save."""

from typing import Any, Dict, Optional

from policy_intake.core.exceptions import (
    DocumentNotFoundError,
    ReviewStateError,
    ValidationError,
)
from policy_intake.schemas.confirm_save import ConfirmSaveRequest, validate_confirm_save
from policy_intake.schemas.extraction import (
    ALL_FIELDS,
    SCHEMA_VERSION,
    SOURCE_RANK,
    ExtractedField,
    PolicyExtractV1,
    empty_field,
    validate_policy_extract,
)
from policy_intake.services.extraction.orchestrator import (
    ExtractionOrchestrator,
    ExtractionOutcome,
)
from policy_intake.services.storage.record_store import (
    REVIEWABLE_STATUSES,
    BaseRecordStore,
    UploadStatus,
)
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

REQUIRED_FOR_SAVE = (
    "insurer",
    "policy_number",
    "vehicle_number",
    "issue_date",
    "expiry_date",
    "total_premium",
)


def merge_field(stored: ExtractedField, incoming: Optional[ExtractedField]) -> ExtractedField:
    """Pick between a stored and an incoming field by source rank.

    ``manual`` > ``text``/``regex`` > ``merged`` > ``llm`` > ``none``; on a
    tie the incoming edit wins.
    """
    if incoming is None:
        return stored
    if SOURCE_RANK[incoming.source] >= SOURCE_RANK[stored.source]:
        return incoming
    return stored


def merge_records(
    stored: Optional[PolicyExtractV1], incoming: ConfirmSaveRequest
) -> PolicyExtractV1:
    """Merge reviewed fields into the stored extraction, field by field."""
    fields: Dict[str, ExtractedField] = {}
    for name in ALL_FIELDS:
        base = stored.field(name) if stored is not None else empty_field()
        fields[name] = merge_field(base, getattr(incoming, name))
    return PolicyExtractV1(
        schema_version=SCHEMA_VERSION,
        debug=stored.debug if stored is not None else None,
        **fields,
    )


def _text_or(field: ExtractedField, fallback: Optional[str]) -> Optional[str]:
    value = field.value
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


class UploadReviewService:
    """Runs extraction for an upload row and saves the reviewed result."""

    def __init__(self, record_store: BaseRecordStore, orchestrator: ExtractionOrchestrator):
        self.record_store = record_store
        self.orchestrator = orchestrator

    async def _require_upload(self, upload_id: str) -> Dict[str, Any]:
        upload = await self.record_store.get_upload(upload_id)
        if upload is None:
            raise DocumentNotFoundError(f"Upload {upload_id} not found")
        return upload

    async def extract_for_review(
        self,
        upload_id: str,
        model_tier: str = "primary",
        mode: Optional[str] = None,
    ) -> ExtractionOutcome:
        """Extract the upload's document and park the record for review.

        Raises:
            DocumentNotFoundError: If the upload does not exist
            AcquisitionError: If the document text cannot be obtained
            ExtractionError: If the LLM call fails
        """
        upload = await self._require_upload(upload_id)
        outcome = await self.orchestrator.extract(
            document_key=upload["document_key"],
            upload_id=upload_id,
            model_tier=model_tier,
            mode=mode,
            insurer_hint=upload.get("insurer"),
        )
        await self.record_store.update_upload(
            upload_id,
            extracted_data=outcome.data.to_payload(),
            status=UploadStatus.REVIEW,
        )
        return outcome

    async def confirm_save(self, upload_id: str, payload: Any) -> Dict[str, Any]:
        """Validate, merge and persist a reviewed extraction.

        Returns:
            Dict with the saved policy row and the merged record

        Raises:
            DocumentNotFoundError: If the upload does not exist
            ReviewStateError: If the upload is not in a reviewable state
            ValidationError: On payload errors or missing required fields
        """
        upload = await self._require_upload(upload_id)
        if upload.get("status") not in REVIEWABLE_STATUSES:
            raise ReviewStateError(
                f"Upload not in REVIEW/COMPLETED (found: {upload.get('status')})"
            )

        request = validate_confirm_save(payload)

        stored: Optional[PolicyExtractV1] = None
        if upload.get("extracted_data"):
            try:
                stored = validate_policy_extract(upload["extracted_data"])
            except ValidationError as e:
                LOGGER.warning(
                    "Stored extraction failed validation, merging edits only",
                    extra={"upload_id": upload_id, "errors": len(e.errors)},
                )

        merged = merge_records(stored, request)

        missing = [
            {"field": name, "message": "is required"}
            for name in REQUIRED_FOR_SAVE
            if merged.field(name).value is None
        ]
        if missing:
            raise ValidationError("Required fields are missing", errors=missing)

        payload_json = merged.to_payload()
        policy = {
            "insurer": payload_json["insurer"]["value"],
            "policy_number": payload_json["policy_number"]["value"],
            "vehicle_number": payload_json["vehicle_number"]["value"],
            "issue_date": payload_json["issue_date"]["value"],
            "expiry_date": payload_json["expiry_date"]["value"],
            "total_premium": payload_json["total_premium"]["value"],
            "idv": payload_json["idv"]["value"] or 0,
            "product_type": request.product_type,
            "vehicle_type": request.vehicle_type,
            "make": _text_or(merged.field("make"), "UNKNOWN"),
            "model": _text_or(merged.field("model"), None),
            "variant": _text_or(merged.field("variant"), None),
            "fuel_type": _text_or(merged.field("fuel_type"), None),
            "ncb": request.ncb,
            "net_od": request.net_od or 0,
            "manual_extras": request.manual_extras or {},
            "source": "PDF_UPLOAD",
        }

        saved = await self.record_store.insert_policy(upload_id, policy)
        await self.record_store.update_upload(
            upload_id, extracted_data=payload_json, status=UploadStatus.SAVED
        )
        LOGGER.info(
            "Policy saved from review",
            extra={"upload_id": upload_id, "policy_id": saved["id"]},
        )
        return {"policy": saved, "data": payload_json}
