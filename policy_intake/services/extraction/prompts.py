"""Extraction prompt and the strict JSON schema bound to the completion."""

from typing import Optional

from policy_intake.schemas.extraction import Insurer

MOTOR_POLICY_SYSTEM_PROMPT = """
You are an extraction engine. Follow these rules, no exceptions:
- OUTPUT MUST MATCH THE JSON SCHEMA EXACTLY.
- NEVER GUESS. If a field is not explicitly present in pdfText, set it to null.
- Use only characters that appear in pdfText (ignore formatting like spaces and dashes).
- Dates must be YYYY-MM-DD if present, else null.
- Vehicle Reg must match Indian formats like KA01AB1234 or with spaces/dashes found in pdfText.
- If multiple candidates exist, pick the one closest to the labels listed below.
- If confidence < 0.6, return null.

Label hints:
- Policy Number: near "Policy No", "Policy Number"
- Registration Number: near "Registration No", "Regn No"
- Issue Date: near "Issue Date", "Date of Issue"
- Expiry Date: near "Expiry Date", "Valid up to"
- Total Premium: near "Gross/Final/Total Premium", "Total Payable"
- Net OD Premium: near "Net Own Damage Premium", "Net OD"
- IDV: near "Insured Declared Value", "IDV"
""".strip()

_INSURER_NOTES = {
    Insurer.TATA_AIG: "The document is expected to be a TATA AIG motor policy schedule.",
    Insurer.DIGIT: "The document is expected to be a Go Digit motor policy schedule.",
}

_NULLABLE_STRING = {"type": ["string", "null"]}

MOTOR_POLICY_JSON_SCHEMA = {
    "name": "MotorPolicySchema",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "schema_version": {"type": "string", "enum": ["1.0"]},
            "policy_number": _NULLABLE_STRING,
            "vehicle_number": _NULLABLE_STRING,
            "insurer": _NULLABLE_STRING,
            "issue_date": {"type": ["string", "null"], "description": "YYYY-MM-DD if known"},
            "expiry_date": {"type": ["string", "null"], "description": "YYYY-MM-DD if known"},
            # Money comes back as text and is coerced locally.
            "total_premium": _NULLABLE_STRING,
            "net_od": _NULLABLE_STRING,
            "idv": _NULLABLE_STRING,
        },
        "required": [
            "schema_version",
            "policy_number",
            "vehicle_number",
            "insurer",
            "issue_date",
            "expiry_date",
            "total_premium",
            "net_od",
            "idv",
        ],
    },
}


def build_system_prompt(insurer_hint: Optional[Insurer] = None) -> str:
    """Return the deterministic instruction set, with an insurer note when hinted."""
    if insurer_hint is None:
        return MOTOR_POLICY_SYSTEM_PROMPT
    return f"{MOTOR_POLICY_SYSTEM_PROMPT}\n\n{_INSURER_NOTES[Insurer(insurer_hint)]}"
