"""Insurer codes, their legal names and free-text hint mapping."""

import re
from typing import Dict, Optional, Pattern

from policy_intake.schemas.extraction import Insurer

LEGAL_NAMES: Dict[Insurer, Pattern[str]] = {
    Insurer.TATA_AIG: re.compile(
        r"\bTATA\s*AIG\s*GENERAL\s*INSURANCE\s*COMPANY\s*LIMITED\b", re.IGNORECASE
    ),
    Insurer.DIGIT: re.compile(
        r"\bGO\s*DIGIT\s*GENERAL\s*INSURANCE\s*LIMITED\b", re.IGNORECASE
    ),
}


def to_insurer_hint(raw: Optional[str]) -> Optional[Insurer]:
    """Map free text such as ``"Tata-AIG General"`` to an insurer code."""
    if not raw:
        return None
    letters = re.sub(r"[^A-Z]", "", str(raw).upper())
    if "TATA" in letters and "AIG" in letters:
        return Insurer.TATA_AIG
    if "DIGIT" in letters:
        return Insurer.DIGIT
    return None


def find_legal_insurer(text: str) -> Optional[Insurer]:
    """Return the insurer whose full legal name appears in ``text``."""
    for insurer, pattern in LEGAL_NAMES.items():
        if pattern.search(text or ""):
            return insurer
    return None


def legal_name_present(insurer: Insurer, text: str) -> bool:
    pattern = LEGAL_NAMES.get(Insurer(insurer))
    return bool(pattern and pattern.search(text or ""))
