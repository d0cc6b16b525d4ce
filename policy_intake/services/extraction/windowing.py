"""Anchor-centred slicing of document text to bound LLM input size."""

import re
from typing import List, Optional, Pattern, Tuple

from policy_intake.utils.text import normalize_whitespace

WINDOW_SEPARATOR = "\n\n---\n\n"

# Ordered; only the first hit of each anchor opens a window.
ANCHORS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("vehicle_details", re.compile(r"Vehicle Details", re.IGNORECASE)),
    ("vehicle_idv_banner", re.compile(r"YOUR VEHICLE IDV", re.IGNORECASE)),
    ("idv_label", re.compile(r"Insured Declared Value.*IDV", re.IGNORECASE)),
    ("premium_schedule", re.compile(r"Schedule of Premium", re.IGNORECASE)),
    ("premium", re.compile(r"Premium", re.IGNORECASE)),
    ("policy_no", re.compile(r"Policy No", re.IGNORECASE)),
    ("registration_no", re.compile(r"Registration No", re.IGNORECASE)),
)


def first_anchor_offset(text: str) -> Optional[int]:
    """Offset of the earliest anchor hit in ``text``, if any."""
    offsets = [m.start() for _, rx in ANCHORS for m in [rx.search(text)] if m]
    return min(offsets) if offsets else None


def build_windows(
    full_text: str,
    max_chars: int = 8000,
    lead_in: int = 800,
    tail: int = 2200,
    fallback_chars: int = 4000,
) -> str:
    """Slice ``full_text`` around the field anchors.

    Each anchor's first match yields ``text[start - lead_in : start + tail]``.
    Identical windows are dropped, the rest joined with ``WINDOW_SEPARATOR``
    and the result truncated to ``max_chars``. With no anchor hit the first
    ``fallback_chars`` characters are returned.
    """
    text = normalize_whitespace(full_text or "")

    chunks: List[str] = []
    for _name, rx in ANCHORS:
        m = rx.search(text)
        if not m:
            continue
        start = max(0, m.start() - lead_in)
        end = min(len(text), m.start() + tail)
        chunk = text[start:end]
        if chunk not in chunks:
            chunks.append(chunk)

    if not chunks:
        return text[:fallback_chars][:max_chars]

    return WINDOW_SEPARATOR.join(chunks)[:max_chars]
