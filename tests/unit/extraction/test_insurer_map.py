"""Tests for insurer hint mapping and legal-name lookup."""

import pytest

from policy_intake.schemas.extraction import Insurer
from policy_intake.services.extraction.insurer_map import (
    find_legal_insurer,
    legal_name_present,
    to_insurer_hint,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Tata-AIG General", Insurer.TATA_AIG),
        ("tata aig", Insurer.TATA_AIG),
        ("TATA_AIG", Insurer.TATA_AIG),
        ("Go Digit", Insurer.DIGIT),
        ("DIGIT", Insurer.DIGIT),
        ("Tata Motors", None),
        ("ICICI Lombard", None),
        ("", None),
        (None, None),
    ],
)
def test_to_insurer_hint(raw, expected):
    assert to_insurer_hint(raw) == expected


def test_find_legal_insurer():
    text = "Issued by Go Digit General Insurance Limited, Bengaluru"
    assert find_legal_insurer(text) == Insurer.DIGIT
    assert find_legal_insurer("Digit policy schedule") is None


def test_legal_name_present_ignores_spacing_and_case():
    text = "TATA AIG general insurance  company limited"
    assert legal_name_present(Insurer.TATA_AIG, text) is True
    assert legal_name_present(Insurer.DIGIT, text) is False
