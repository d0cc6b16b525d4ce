"""Unit tests for anchor windowing."""

from policy_intake.services.extraction.windowing import (
    WINDOW_SEPARATOR,
    build_windows,
    first_anchor_offset,
)


def test_no_anchor_returns_leading_fallback():
    text = "abcdefghij" * 1000
    assert build_windows(text) == text[:4000]


def test_no_anchor_short_text_is_returned_whole():
    assert build_windows("short scanned page") == "short scanned page"


def test_output_never_exceeds_max_chars():
    filler = "lorem ipsum dolor sit amet " * 400
    text = "\n".join(
        [filler, "Vehicle Details", filler, "Schedule of Premium", filler, "Policy No: X1", filler]
    )
    assert len(build_windows(text)) <= 8000
    assert len(build_windows(text, max_chars=500)) <= 500


def test_window_is_centred_on_anchor():
    text = ("x" * 5000) + "Policy No: D217080603" + ("y" * 5000)
    window = build_windows(text, lead_in=10, tail=40)
    assert window.startswith("x" * 10 + "Policy No")
    assert len(window) == 50


def test_identical_windows_are_deduplicated():
    text = "Premium Policy No Registration No"
    window = build_windows(text)
    assert WINDOW_SEPARATOR not in window
    assert window == text


def test_first_anchor_offset():
    assert first_anchor_offset("header\nRegistration No: TN18") == 7
    assert first_anchor_offset("nothing here") is None
