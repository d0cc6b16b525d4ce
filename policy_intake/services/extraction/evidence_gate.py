"""Final anti-hallucination pass over an extraction record.

The gate first re-derives the core fields straight from the raw document
text, overwriting whatever is there. Then every gated field whose value does
not literally occur in the compacted text is reset to an empty field. Each
reset is an ``EvidenceViolation``: logged, never raised.
"""

import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Set, Tuple

from policy_intake.schemas.extraction import (
    DATE_FIELDS,
    MONEY_FIELDS,
    ExtractedField,
    Insurer,
    PolicyExtractV1,
    Source,
    empty_field,
)
from policy_intake.services.extraction.insurer_map import legal_name_present
from policy_intake.services.extraction.normalizers import (
    DATE_PATTERN,
    DATE_TOKEN,
    coerce_number,
    to_iso,
)
from policy_intake.utils.logging import get_logger
from policy_intake.utils.text import compact_for_evidence, normalize_reg_no

LOGGER = get_logger(__name__)

GATED_FIELDS = (
    "policy_number",
    "vehicle_number",
    "issue_date",
    "expiry_date",
    "total_premium",
    "idv",
    "insurer",
)

GATE_CONFIDENCE = 0.9

POLICY_NUMBER = re.compile(
    r"\bpolicy\s*(?:no\.?|number)\s*[:\-]?\s*([A-Z0-9][A-Z0-9\-/]*)", re.IGNORECASE
)
VEHICLE_NUMBER = re.compile(
    r"\b(?:registration|regn)\.?\s*(?:no\.?|number)\s*[:\-]?\s*"
    r"([A-Z]{2}[\s\-]*\d{1,2}[\s\-]*[A-Z]{1,3}[\s\-]*\d{3,4})\b",
    re.IGNORECASE,
)
IDV = re.compile(
    r"\b(?:IDV|Insured\s*Declared\s*Value)\b[\s:₹]*([0-9][0-9,.]*)", re.IGNORECASE
)
TOTAL_PREMIUM = re.compile(
    r"\b(?:total|gross|final)\s*(?:premium|payable)\b\s*[:\-]?\s*(?:₹|Rs\.?|INR)?\s*([0-9][0-9,.]*)",
    re.IGNORECASE,
)
ISSUE_DATE = re.compile(
    rf"\bissued?\s*(?:date)?\s*[:\-]?\s*({DATE_PATTERN})\b", re.IGNORECASE
)
EXPIRY_DATE = re.compile(
    rf"\b(?:expiry|valid\s*up\s*to|to)\s*(?:date)?\s*[:\-]?\s*({DATE_PATTERN})\b",
    re.IGNORECASE,
)


class EvidenceViolation(NamedTuple):
    """A field the gate emptied because its value was not found in the text."""
    field: str
    value: Any
    source: Source


def _policy_number(raw: str) -> Optional[str]:
    value = raw.strip()
    return value if re.search(r"\d", value) else None


def _money(raw: str) -> Optional[Any]:
    return coerce_number(raw.rstrip(".,"))


# Field -> (pattern, converter). The first match that converts wins.
REDERIVATIONS: Dict[str, Tuple[re.Pattern, Callable[[str], Optional[Any]]]] = {
    "policy_number": (POLICY_NUMBER, _policy_number),
    "vehicle_number": (VEHICLE_NUMBER, normalize_reg_no),
    "issue_date": (ISSUE_DATE, to_iso),
    "expiry_date": (EXPIRY_DATE, to_iso),
    "total_premium": (TOTAL_PREMIUM, _money),
    "idv": (IDV, _money),
}


def rederive(field_name: str, text: str) -> Optional[Any]:
    """Re-derive one field from the raw text, or ``None``."""
    pattern, convert = REDERIVATIONS[field_name]
    for m in pattern.finditer(text):
        value = convert(m.group(1))
        if value:
            return value
    return None


class _Evidence:
    """Pre-computed haystacks for one document."""

    def __init__(self, text: str):
        self.text = text
        self.compact = compact_for_evidence(text)
        self.compact_money = self.compact.replace(",", "")
        self._dates: Optional[Set[str]] = None

    @property
    def iso_dates(self) -> Set[str]:
        if self._dates is None:
            self._dates = {
                iso for iso in (to_iso(m.group(1)) for m in DATE_TOKEN.finditer(self.text)) if iso
            }
        return self._dates

    def contains(self, field_name: str, value: Any) -> bool:
        if value is None:
            return False
        if field_name == "insurer":
            try:
                return legal_name_present(Insurer(value), self.text)
            except ValueError:
                return False
        if field_name in DATE_FIELDS:
            iso = to_iso(value) if isinstance(value, str) else None
            if not iso:
                return False
            return iso in self.iso_dates or compact_for_evidence(iso) in self.compact
        if field_name in MONEY_FIELDS:
            number = coerce_number(value)
            if number is None:
                return False
            return str(number) in self.compact_money
        needle = compact_for_evidence(str(value))
        return bool(needle) and needle in self.compact


def harden_with_violations(
    record: PolicyExtractV1, full_text: str
) -> Tuple[PolicyExtractV1, List[EvidenceViolation]]:
    """Gate ``record`` against ``full_text`` and report every emptied field."""
    evidence = _Evidence(full_text or "")
    updates: Dict[str, ExtractedField] = {}
    violations: List[EvidenceViolation] = []

    for name in GATED_FIELDS:
        current = record.field(name)

        if name in REDERIVATIONS:
            derived = rederive(name, evidence.text)
            if derived is not None:
                current = ExtractedField(
                    value=derived,
                    confidence=GATE_CONFIDENCE,
                    source=Source.TEXT,
                    note="evidence_gate",
                )

        if current.value is None:
            updates[name] = empty_field()
            continue

        if not evidence.contains(name, current.value):
            violations.append(EvidenceViolation(name, current.value, current.source))
            LOGGER.info(
                "Evidence violation, field nulled",
                extra={"field": name, "source": current.source.value},
            )
            updates[name] = empty_field()
            continue

        value = current.value
        if name in DATE_FIELDS:
            value = to_iso(value)
        elif name in MONEY_FIELDS:
            value = coerce_number(value)
        elif name == "insurer":
            value = Insurer(value)

        updates[name] = ExtractedField(
            value=value,
            confidence=max(current.confidence, GATE_CONFIDENCE),
            source=Source.TEXT,
            note=current.note,
        )

    return record.with_fields(**updates), violations


def harden(record: PolicyExtractV1, full_text: str) -> PolicyExtractV1:
    """Return ``record`` with every ungrounded gated field emptied."""
    hardened, _ = harden_with_violations(record, full_text)
    return hardened
