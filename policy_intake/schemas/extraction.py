"""Canonical extraction record and its runtime validators.

Every extracted value travels as an ``ExtractedField``: the value itself plus
the confidence and the attributed source that last wrote it. A
``PolicyExtractV1`` is built once per extraction attempt and is frozen; each
pipeline stage derives a new record with ``model_copy``.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from policy_intake.core.exceptions import ValidationError

SCHEMA_VERSION = "1.0"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Source(str, Enum):
    """Who produced a field's value."""
    LLM = "llm"
    TEXT = "text"
    REGEX = "regex"
    MANUAL = "manual"
    MERGED = "merged"
    NONE = "none"


# Higher wins when two writers compete for the same field.
SOURCE_RANK: Dict[Source, int] = {
    Source.NONE: 0,
    Source.LLM: 1,
    Source.MERGED: 2,
    Source.TEXT: 3,
    Source.REGEX: 3,
    Source.MANUAL: 4,
}


class Insurer(str, Enum):
    """Insurers with dedicated handling."""
    TATA_AIG = "TATA_AIG"
    DIGIT = "DIGIT"


class ExtractedField(BaseModel):
    """A single extracted value with quality metadata.

    Attributes:
        value: Extracted value, ``None`` when missing
        confidence: Confidence score (0.0 to 1.0), always 0 for a missing value
        source: Writer that produced the current value
        note: Optional free-form reason or evidence
    """

    model_config = ConfigDict(frozen=True)

    value: Any = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source: Source = Source.NONE
    note: Optional[str] = None

    @model_validator(mode="after")
    def _null_has_zero_confidence(self) -> "ExtractedField":
        if self.value is None and self.confidence != 0:
            raise ValueError("confidence must be 0 when value is null")
        return self

    def accepts_text_upgrade(self) -> bool:
        """Only empty or model-inferred values may be replaced by document evidence."""
        return self.value is None or self.source == Source.LLM


class DebugInfo(BaseModel):
    """Small debug bag shown next to the review form."""

    model_config = ConfigDict(frozen=True)

    pages_scanned: Optional[int] = Field(default=None, ge=0)
    evidence_snippet: Optional[str] = None


def _is_money(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def check_insurer_field(field: Optional[ExtractedField]) -> Optional[ExtractedField]:
    if field is None or field.value is None or isinstance(field.value, Insurer):
        return field
    try:
        return field.model_copy(update={"value": Insurer(field.value)})
    except ValueError:
        raise ValueError(
            f"value must be one of {', '.join(i.value for i in Insurer)}"
        ) from None


def check_string_field(field: Optional[ExtractedField]) -> Optional[ExtractedField]:
    if field is not None and field.value is not None and not isinstance(field.value, str):
        raise ValueError("value must be a string")
    return field


def check_date_field(field: Optional[ExtractedField]) -> Optional[ExtractedField]:
    if field is not None and field.value is not None and not (
        isinstance(field.value, str) and _ISO_DATE.match(field.value)
    ):
        raise ValueError("value must be a date formatted YYYY-MM-DD")
    return field


def check_money_field(field: Optional[ExtractedField]) -> Optional[ExtractedField]:
    if field is not None and field.value is not None and not _is_money(field.value):
        raise ValueError("value must be a non-negative number")
    return field


class PolicyExtractV1(BaseModel):
    """The normalized, insurer-agnostic extraction record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    schema_version: Literal["1.0"]
    insurer: ExtractedField

    policy_number: ExtractedField
    vehicle_number: ExtractedField

    issue_date: ExtractedField
    expiry_date: ExtractedField

    total_premium: ExtractedField
    idv: ExtractedField

    make: Optional[ExtractedField] = None
    model: Optional[ExtractedField] = None
    variant: Optional[ExtractedField] = None
    fuel_type: Optional[ExtractedField] = None

    debug: Optional[DebugInfo] = Field(default=None, alias="__debug__")

    @field_validator("insurer")
    @classmethod
    def _known_insurer(cls, field: ExtractedField) -> ExtractedField:
        return check_insurer_field(field)

    @field_validator("policy_number", "vehicle_number", "make", "model", "variant", "fuel_type")
    @classmethod
    def _string_value(cls, field: Optional[ExtractedField]) -> Optional[ExtractedField]:
        return check_string_field(field)

    @field_validator("issue_date", "expiry_date")
    @classmethod
    def _iso_date_value(cls, field: ExtractedField) -> ExtractedField:
        return check_date_field(field)

    @field_validator("total_premium", "idv")
    @classmethod
    def _money_value(cls, field: ExtractedField) -> ExtractedField:
        return check_money_field(field)

    def field(self, name: str) -> ExtractedField:
        """Return a field by name, treating an absent optional field as empty."""
        current = getattr(self, name)
        return current if current is not None else empty_field()

    def with_fields(self, **updates: ExtractedField) -> "PolicyExtractV1":
        """Derive a new record with some fields replaced."""
        return self.model_copy(update=updates)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict as stored by the caller."""
        return self.model_dump(mode="json", by_alias=True)


REQUIRED_FIELDS = (
    "insurer",
    "policy_number",
    "vehicle_number",
    "issue_date",
    "expiry_date",
    "total_premium",
    "idv",
)
OPTIONAL_FIELDS = ("make", "model", "variant", "fuel_type")
ALL_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS
MONEY_FIELDS = ("total_premium", "idv")
DATE_FIELDS = ("issue_date", "expiry_date")


def empty_field() -> ExtractedField:
    return ExtractedField(value=None, confidence=0.0, source=Source.NONE)


def make_field(value: Any, confidence: float, source: Source) -> ExtractedField:
    """Wrap a value, forcing the null/zero-confidence invariant."""
    if value is None:
        return empty_field()
    return ExtractedField(value=value, confidence=confidence, source=source)


def format_validation_errors(exc: PydanticValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic errors into ``{"field", "message"}`` pairs."""
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        message = error.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": ".".join(loc) or "__root__", "message": message})
    return errors


def validate_policy_extract(payload: Any) -> PolicyExtractV1:
    """Validate any extraction payload against ``PolicyExtractV1``.

    Records built through ``model_copy`` skip validation, so model instances
    are dumped and re-validated too.

    Raises:
        ValidationError: With one entry per failing field
    """
    if isinstance(payload, PolicyExtractV1):
        payload = payload.model_dump(by_alias=True)
    try:
        return PolicyExtractV1.model_validate(payload)
    except PydanticValidationError as e:
        errors = format_validation_errors(e)
        raise ValidationError(
            f"Extraction record failed validation ({len(errors)} error(s))",
            errors=errors,
        ) from e


class LLMExtractResult(BaseModel):
    """Strict shape the model must return; every key present, possibly null."""

    model_config = ConfigDict(extra="forbid")

    schema_version: Literal["1.0"]
    policy_number: Optional[str]
    vehicle_number: Optional[str]
    insurer: Optional[str]
    issue_date: Optional[str]
    expiry_date: Optional[str]
    total_premium: Optional[float]
    net_od: Optional[float]
    idv: Optional[float]
