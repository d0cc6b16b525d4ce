"""Text normalization helpers shared by acquisition, windowing and the gate."""

import re

PAGE_BREAK = "\n\n===PAGE_BREAK===\n\n"

_ZERO_WIDTH = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
_MULTI_SPACE = re.compile(r" {2,}")
_SPACE_OR_HYPHEN = re.compile(r"[\s\-]+")


def normalize_whitespace(text: str) -> str:
    """Collapse non-breaking spaces, zero-width characters and space runs.

    Newlines are preserved because the regex rules are line-aware.
    """
    if not text:
        return ""
    text = text.replace("\u00a0", " ")
    text = _ZERO_WIDTH.sub("", text)
    return _MULTI_SPACE.sub(" ", text)


def normalize_reg_no(raw: str) -> str:
    """KA 01-AB 1234 -> KA01AB1234"""
    return _SPACE_OR_HYPHEN.sub("", raw or "").upper()


def compact_for_evidence(text: str) -> str:
    """Uppercase and strip all whitespace and hyphens.

    This is the haystack every evidence check searches.
    """
    return _SPACE_OR_HYPHEN.sub("", (text or "").upper())


def excerpt(text: str, index: int, radius: int = 80) -> str:
    """Return a single-line excerpt of ``text`` centred on ``index``."""
    start = max(0, index - radius)
    end = min(len(text), index + radius)
    return re.sub(r"\s+", " ", text[start:end]).strip()
