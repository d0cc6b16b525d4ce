"""Label-anchored regex rules that fill or upgrade fields from the full text.

Rules are grouped per field in a fixed order. For each field the first rule
that yields a value wins, and that value is written only when the field is
empty or still sourced from the model (see ``ExtractedField.accepts_text_upgrade``).
A rule is a pure function ``(text) -> value | None``.
"""

import re
from typing import Any, Callable, List, NamedTuple, Optional, Tuple

from policy_intake.schemas.extraction import (
    ExtractedField,
    PolicyExtractV1,
    Source,
)
from policy_intake.services.extraction.insurer_map import find_legal_insurer
from policy_intake.services.extraction.normalizers import (
    is_iso_date,
    money_from_digits,
    to_iso,
)
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

_DMY = r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"
_DATE_ANY = re.compile(rf"({_DMY})")
_DATE_WORD = re.compile(rf"\b({_DMY})\b")

ISSUE_LABELED = re.compile(
    r"\b(?:Policy\s*Issue\s*Date|Date\s*of\s*Issue|Commencement\s*Date|Policy\s*Start\s*Date|Start\s*Date)\b"
    r"[^0-9A-Za-z]{0,10}"
    r"([0-9]{1,2}[/\-.\s][A-Za-z]{3,9}[/\-.\s][0-9]{2,4}"
    r"|[0-9]{1,2}[/\-.\s][0-9]{1,2}[/\-.\s][0-9]{2,4}"
    r"|[0-9]{1,2}\s+[A-Za-z]{3,9}\s+[0-9]{2,4})",
    re.IGNORECASE,
)
FROM_TO = re.compile(
    r"\b(?:Period\s+of\s+Insurance|Policy\s*Period)?[^A-Za-z0-9]{0,10}\bFrom\b[^0-9A-Za-z]{0,10}"
    r"([0-9]{1,2}[/\-.\s][A-Za-z]{3,9}|[0-9]{1,2}[/\-.\s][0-9]{1,2})[/\-.\s]([0-9]{2,4}|[A-Za-z]{3,9})"
    r"[^0-9A-Za-z]{0,30}\bTo\b[^0-9A-Za-z]{0,10}"
    r"([0-9]{1,2}[/\-.\s][A-Za-z]{3,9}|[0-9]{1,2}[/\-.\s][0-9]{1,2})[/\-.\s]([0-9]{2,4}|[A-Za-z]{3,9})",
    re.IGNORECASE,
)
PERIOD_TO = re.compile(
    r"\b(?:Period\s*(?:of\s*Insurance)?|Policy\s*Period)\b[^0-9A-Za-z]{0,10}"
    r"([0-9]{1,2}[/\-.\s][0-9]{1,2}[/\-.\s][0-9]{2,4})"
    r"[^0-9A-Za-z]{0,10}\bto\b[^0-9A-Za-z]{0,10}"
    r"([0-9]{1,2}[/\-.\s][0-9]{1,2}[/\-.\s][0-9]{2,4})",
    re.IGNORECASE,
)
VALID_FROM = re.compile(r"\bValid\s*From\b", re.IGNORECASE)
EXPIRY_LABELED = re.compile(
    rf"\b(?:Policy\s*Expiry|Expiry\s*Date|End\s*Date)\b[^0-9]{{0,20}}({_DMY})",
    re.IGNORECASE,
)
COVERAGE_HEADER = re.compile(
    r"Coverage\s*Details[\s\S]{0,150}?Valid\s*From[\s\S]{0,80}?Valid\s*Till",
    re.IGNORECASE,
)

IDV = re.compile(
    r"\b(?:Insured\s*Declared\s*Value|IDV)\b[^0-9]{0,20}([0-9][0-9,]{4,})",
    re.IGNORECASE,
)
TOTAL_PREMIUM = re.compile(
    r"\b(?:Total\s+Premium|Final\s*/?\s*Gross\s*Premium)\b[^0-9]{0,20}([0-9][0-9,]{2,})",
    re.IGNORECASE,
)
NET_PREMIUM = re.compile(r"\bNet\s*Premium\b[^0-9]{0,20}([0-9][0-9,]{2,})", re.IGNORECASE)

MMV_LINE = re.compile(r"Make\s*/\s*Model\s*/\s*Variant\s*[:\-]?\s*([^\r\n]+)", re.IGNORECASE)


def _single_label(label: str) -> re.Pattern:
    # Not part of a "Make / Model / Variant" header.
    return re.compile(
        rf"(?<!/)(?<!/ )\b{label}\b(?!\s*/)\s*[:\-]?[ \t]*([^\r\n]*)(?:\r?\n([^\r\n]*))?",
        re.IGNORECASE,
    )


MAKE_LABEL = _single_label("Make")
MODEL_LABEL = _single_label("Model")
VARIANT_LABEL = _single_label("Variant")
FUEL_TYPE = re.compile(r"\bFuel\s*Type\s*[:\-]?\s*([A-Za-z0-9 /-]{2,20})", re.IGNORECASE)

BAD_PHRASES = (
    "every mile a safe one",
    "tata aig",
    "insurance",
    "policy",
    "receipt",
    "premium",
    "gst",
)

KNOWN_MAKES = (
    "MARUTI SUZUKI", "MARUTI", "TATA MOTORS", "TATA", "MAHINDRA", "HYUNDAI", "HONDA",
    "TOYOTA", "VOLKSWAGEN", "SKODA", "KIA", "NISSAN", "RENAULT", "FORD", "CHEVROLET",
    "JEEP", "MG", "BMW", "MERCEDES-BENZ", "MERCEDES", "AUDI", "VOLVO", "FIAT",
)


# --- token heuristics ---------------------------------------------------------

def clean_token(raw: str) -> str:
    token = re.sub(r"^\s*/\s*", "", raw or "")
    token = re.sub(r"\s*/\s*$", "", token)
    return re.sub(r"\s{2,}", " ", token).strip()


def _has_bad_phrase(token: str) -> bool:
    lowered = token.lower()
    return any(phrase in lowered for phrase in BAD_PHRASES)


def looks_like_make(token: str) -> bool:
    if not token or not 2 <= len(token) <= 40 or _has_bad_phrase(token):
        return False
    return bool(re.search(r"[a-z0-9]", token, re.I) and re.search(r"[aeiou0-9]", token, re.I))


def looks_like_model_or_variant(token: str) -> bool:
    if not token or token == "/" or len(token) > 40 or _has_bad_phrase(token):
        return False
    return bool(re.search(r"[a-z0-9]", token, re.I))


def _first_non_empty(*candidates: Optional[str]) -> str:
    for candidate in candidates:
        value = (candidate or "").strip()
        if value and value not in ("/", "-"):
            return value
    return ""


# --- date rules ---------------------------------------------------------------

def issue_labeled(text: str) -> Optional[str]:
    m = ISSUE_LABELED.search(text)
    return to_iso(m.group(1)) if m else None


def issue_from_to(text: str) -> Optional[str]:
    m = FROM_TO.search(text)
    return to_iso(f"{m.group(1)} {m.group(2)}") if m else None


def issue_period_to(text: str) -> Optional[str]:
    m = PERIOD_TO.search(text)
    return to_iso(m.group(1)) if m else None


def issue_valid_from(text: str, lookahead: int = 160) -> Optional[str]:
    m = VALID_FROM.search(text)
    if not m:
        return None
    d = _DATE_ANY.search(text[m.end():m.end() + lookahead])
    return to_iso(d.group(1)) if d else None


def issue_coverage_table(text: str) -> Optional[str]:
    """Walk the lines below a "Coverage Details / Valid From / Valid Till" header.

    The first dated row below the header gives the start date. An "Own Damage
    Cover" row wins only when it comes before any other dated row.
    """
    lines = [line.strip() for line in re.split(r"\r?\n", text)]
    lines = [line for line in lines if line]

    header_idx = -1
    for i, line in enumerate(lines):
        if re.match(r"^coverage\s*details$", line, re.I):
            block = " ".join(lines[i:i + 5])
            if re.search(r"valid\s*from", block, re.I) and re.search(r"valid\s*till", block, re.I):
                header_idx = i
                break
    if header_idx == -1:
        return None

    for i in range(header_idx + 1, min(len(lines), header_idx + 80)):
        line = lines[i]
        if re.search(r"valid\s*from|valid\s*till", line, re.I):
            continue
        if re.search(r"own\s*damage\s*cover", line, re.I):
            for j in range(i + 1, min(len(lines), i + 6)):
                d = _DATE_ANY.search(lines[j])
                if d:
                    return to_iso(d.group(1))
        d = _DATE_ANY.search(line)
        if d:
            return to_iso(d.group(1))
    return None


def expiry_labeled(text: str) -> Optional[str]:
    m = EXPIRY_LABELED.search(text)
    return to_iso(m.group(1)) if m else None


def expiry_from_to(text: str) -> Optional[str]:
    m = FROM_TO.search(text)
    return to_iso(f"{m.group(3)} {m.group(4)}") if m else None


def expiry_period_to(text: str) -> Optional[str]:
    m = PERIOD_TO.search(text)
    return to_iso(m.group(2)) if m else None


def expiry_coverage_table(text: str, span: int = 6000) -> Optional[str]:
    m = COVERAGE_HEADER.search(text)
    if not m:
        return None
    dates = _DATE_WORD.findall(text[m.start():m.start() + span])
    return to_iso(dates[1]) if len(dates) >= 2 else None


# --- money and insurer rules ----------------------------------------------------

def idv_labeled(text: str) -> Optional[int]:
    m = IDV.search(text)
    return money_from_digits(m.group(1)) if m else None


def total_premium_labeled(text: str) -> Optional[int]:
    m = TOTAL_PREMIUM.search(text)
    return money_from_digits(m.group(1)) if m else None


def net_premium_labeled(text: str) -> Optional[int]:
    m = NET_PREMIUM.search(text)
    return money_from_digits(m.group(1)) if m else None


def insurer_legal_name(text: str):
    return find_legal_insurer(text)


# --- make / model / variant rules ---------------------------------------------

def _mmv_parts(text: str) -> List[str]:
    m = MMV_LINE.search(text)
    if not m:
        return []
    parts = [clean_token(part) for part in m.group(1).split("/")]
    return [part for part in parts if looks_like_model_or_variant(part)]


def make_from_mmv_line(text: str) -> Optional[str]:
    parts = _mmv_parts(text)
    return parts[0] if parts and looks_like_make(parts[0]) else None


def model_from_mmv_line(text: str) -> Optional[str]:
    parts = _mmv_parts(text)
    return parts[1] if len(parts) > 1 else None


def variant_from_mmv_line(text: str) -> Optional[str]:
    parts = _mmv_parts(text)
    return parts[2] if len(parts) > 2 else None


def _labeled_value(pattern: re.Pattern, text: str, accept: Callable[[str], bool]) -> Optional[str]:
    m = pattern.search(text)
    if not m:
        return None
    value = clean_token(_first_non_empty(m.group(1), m.group(2)))
    return value if accept(value) else None


def make_labeled(text: str) -> Optional[str]:
    return _labeled_value(MAKE_LABEL, text, looks_like_make)


def model_labeled(text: str) -> Optional[str]:
    return _labeled_value(MODEL_LABEL, text, looks_like_model_or_variant)


def variant_labeled(text: str) -> Optional[str]:
    return _labeled_value(VARIANT_LABEL, text, looks_like_model_or_variant)


def fuel_type_labeled(text: str) -> Optional[str]:
    m = FUEL_TYPE.search(text)
    if not m:
        return None
    return m.group(1).strip().upper() or None


class AssistRule(NamedTuple):
    name: str
    extract: Callable[[str], Any]
    confidence: float


# Field order matters only for readability; rule order within a field is precedence.
FIELD_RULES: Tuple[Tuple[str, Tuple[AssistRule, ...]], ...] = (
    ("issue_date", (
        AssistRule("issue_labeled", issue_labeled, 0.9),
        AssistRule("issue_from_to", issue_from_to, 0.9),
        AssistRule("issue_period_to", issue_period_to, 0.9),
        AssistRule("issue_valid_from", issue_valid_from, 0.9),
        AssistRule("issue_coverage_table", issue_coverage_table, 0.9),
    )),
    ("expiry_date", (
        AssistRule("expiry_labeled", expiry_labeled, 0.9),
        AssistRule("expiry_from_to", expiry_from_to, 0.9),
        AssistRule("expiry_period_to", expiry_period_to, 0.9),
        AssistRule("expiry_coverage_table", expiry_coverage_table, 0.9),
    )),
    ("idv", (
        AssistRule("idv_labeled", idv_labeled, 0.9),
    )),
    ("total_premium", (
        AssistRule("total_premium_labeled", total_premium_labeled, 0.9),
        AssistRule("net_premium_labeled", net_premium_labeled, 0.9),
    )),
    ("insurer", (
        AssistRule("insurer_legal_name", insurer_legal_name, 0.95),
    )),
    ("make", (
        AssistRule("make_from_mmv_line", make_from_mmv_line, 0.85),
        AssistRule("make_labeled", make_labeled, 0.85),
    )),
    ("model", (
        AssistRule("model_from_mmv_line", model_from_mmv_line, 0.85),
        AssistRule("model_labeled", model_labeled, 0.85),
    )),
    ("variant", (
        AssistRule("variant_from_mmv_line", variant_from_mmv_line, 0.8),
        AssistRule("variant_labeled", variant_labeled, 0.8),
    )),
    ("fuel_type", (
        AssistRule("fuel_type_labeled", fuel_type_labeled, 0.85),
    )),
)


def first_match(rules: Tuple[AssistRule, ...], text: str) -> Optional[Tuple[AssistRule, Any]]:
    """Run ``rules`` in order and return the first one that yields a value.

    A rule that raises is logged and skipped.
    """
    for rule in rules:
        try:
            value = rule.extract(text)
        except Exception as e:
            LOGGER.warning("Assist rule failed", extra={"rule": rule.name, "error": str(e)})
            continue
        if value is not None:
            return rule, value
    return None


def split_make_model(model_value: str) -> Optional[Tuple[str, str]]:
    """Recover ``(make, model)`` from a model string such as ``"VOLKSWAGEN / VIRTUS"``."""
    raw = (model_value or "").strip()
    if "/" in raw:
        parts = [part.strip() for part in raw.split("/") if part.strip()]
        if len(parts) >= 2 and looks_like_make(parts[0]):
            return parts[0], " / ".join(parts[1:])
        return None

    upper = raw.upper()
    for make in KNOWN_MAKES:
        if upper.startswith(make) and (len(upper) == len(make) or not upper[len(make)].isalnum()):
            rest = re.sub(r"^[\s/\-:]+", "", raw[len(make):]).strip()
            return (make, rest) if rest else None
    return None


def apply_assist(full_text: str, record: PolicyExtractV1) -> PolicyExtractV1:
    """Fill empty or model-sourced fields from label-anchored matches in ``full_text``.

    Never raises; a field no rule matches is left untouched.
    """
    text = full_text or ""
    updates = {}

    for field_name, rules in FIELD_RULES:
        if not record.field(field_name).accepts_text_upgrade():
            continue
        hit = first_match(rules, text)
        if hit is None:
            continue
        rule, value = hit
        updates[field_name] = ExtractedField(
            value=value, confidence=rule.confidence, source=Source.TEXT, note=rule.name
        )

    result = record.with_fields(**updates) if updates else record

    make = result.field("make")
    model = result.field("model")
    model_locked_on_entry = not record.field("model").accepts_text_upgrade()
    if make.accepts_text_upgrade() and isinstance(model.value, str) and not model_locked_on_entry:
        try:
            split = split_make_model(model.value)
        except Exception as e:
            LOGGER.warning("Make/model split failed", extra={"error": str(e)})
            split = None
        if split:
            result = result.with_fields(
                make=ExtractedField(value=split[0], confidence=0.9, source=Source.TEXT, note="make_model_split"),
                model=ExtractedField(value=split[1], confidence=0.9, source=Source.TEXT, note="make_model_split"),
            )

    expiry = result.field("expiry_date")
    if isinstance(expiry.value, str) and not is_iso_date(expiry.value):
        iso = to_iso(expiry.value)
        if iso:
            result = result.with_fields(
                expiry_date=ExtractedField(
                    value=iso,
                    confidence=expiry.confidence,
                    source=expiry.source,
                    note=expiry.note,
                )
            )

    if updates:
        LOGGER.debug("Regex assist applied", extra={"fields": ",".join(sorted(updates))})
    return result
