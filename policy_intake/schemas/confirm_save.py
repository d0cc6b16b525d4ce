"""Confirm-save payload submitted from the review form."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from policy_intake.core.exceptions import ValidationError
from policy_intake.schemas.extraction import (
    ExtractedField,
    Source,
    check_date_field,
    check_insurer_field,
    check_money_field,
    check_string_field,
    format_validation_errors,
)
from policy_intake.services.extraction.normalizers import coerce_number


def clamp_ncb(raw: Any) -> float:
    """No-claim bonus as a percentage in [0, 100]; blank or non-numeric is 0."""
    if isinstance(raw, str):
        raw = raw.strip().rstrip("%")
    number = coerce_number(raw)
    if number is None:
        return 0
    return min(max(number, 0), 100)


class ConfirmSaveRequest(BaseModel):
    """Reviewed extraction plus the policy attributes only a human supplies.

    Extraction fields are optional here; anything omitted or null falls back
    to the stored extraction during the merge.
    """

    model_config = ConfigDict(extra="ignore", protected_namespaces=())

    schema_version: Literal["1.0"]

    insurer: Optional[ExtractedField] = None
    policy_number: Optional[ExtractedField] = None
    vehicle_number: Optional[ExtractedField] = None
    issue_date: Optional[ExtractedField] = None
    expiry_date: Optional[ExtractedField] = None
    total_premium: Optional[ExtractedField] = None
    idv: Optional[ExtractedField] = None
    make: Optional[ExtractedField] = None
    model: Optional[ExtractedField] = None
    variant: Optional[ExtractedField] = None
    fuel_type: Optional[ExtractedField] = None

    product_type: str = Field(..., min_length=1)
    vehicle_type: str = Field(..., min_length=1)
    ncb: float = 0
    net_od: Optional[float] = Field(default=None, ge=0)
    manual_extras: Optional[Dict[str, Any]] = None

    @field_validator("make", "model", "variant", "fuel_type", mode="before")
    @classmethod
    def _plain_string_is_manual(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            return {"value": text, "confidence": 1.0, "source": Source.MANUAL}
        return value

    @field_validator("product_type", "vehicle_type", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("ncb", mode="before")
    @classmethod
    def _clamp_ncb(cls, value: Any) -> float:
        return clamp_ncb(value)

    @field_validator("insurer")
    @classmethod
    def _known_insurer(cls, field: Optional[ExtractedField]) -> Optional[ExtractedField]:
        return check_insurer_field(field)

    @field_validator("policy_number", "vehicle_number", "make", "model", "variant", "fuel_type")
    @classmethod
    def _string_value(cls, field: Optional[ExtractedField]) -> Optional[ExtractedField]:
        return check_string_field(field)

    @field_validator("issue_date", "expiry_date")
    @classmethod
    def _iso_date_value(cls, field: Optional[ExtractedField]) -> Optional[ExtractedField]:
        return check_date_field(field)

    @field_validator("total_premium", "idv")
    @classmethod
    def _money_value(cls, field: Optional[ExtractedField]) -> Optional[ExtractedField]:
        return check_money_field(field)


def validate_confirm_save(payload: Any) -> ConfirmSaveRequest:
    """Validate a confirm-save body.

    Raises:
        ValidationError: With one entry per failing field
    """
    try:
        return ConfirmSaveRequest.model_validate(payload)
    except PydanticValidationError as e:
        errors = format_validation_errors(e)
        raise ValidationError(
            f"Confirm-save payload failed validation ({len(errors)} error(s))",
            errors=errors,
        ) from e
