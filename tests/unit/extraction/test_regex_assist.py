"""Unit tests for the label-anchored regex assist."""

import pytest

from policy_intake.schemas.extraction import (
    SCHEMA_VERSION,
    ExtractedField,
    Insurer,
    PolicyExtractV1,
    Source,
    empty_field,
)
from policy_intake.services.extraction import regex_assist
from policy_intake.services.extraction.regex_assist import (
    AssistRule,
    apply_assist,
    first_match,
    split_make_model,
)


def _record(**fields) -> PolicyExtractV1:
    base = {
        name: empty_field()
        for name in (
            "insurer", "policy_number", "vehicle_number", "issue_date", "expiry_date",
            "total_premium", "idv", "make", "model", "variant", "fuel_type",
        )
    }
    base.update(fields)
    return PolicyExtractV1(schema_version=SCHEMA_VERSION, **base)


def _llm(value, confidence=0.9):
    return ExtractedField(value=value, confidence=confidence, source=Source.LLM)


class TestDateRules:
    """Test suite for issue/expiry rules."""

    def test_issue_labeled(self):
        assert regex_assist.issue_labeled("Policy Issue Date: 21-Sep-2025") == "2025-09-21"

    def test_from_to_gives_both_dates(self):
        text = "Period of Insurance From 21/09/2025 To 20/09/2026"
        assert regex_assist.issue_from_to(text) == "2025-09-21"
        assert regex_assist.expiry_from_to(text) == "2026-09-20"

    def test_period_to(self):
        text = "Policy Period: 01/04/2025 to 31/03/2026"
        assert regex_assist.issue_period_to(text) == "2025-04-01"
        assert regex_assist.expiry_period_to(text) == "2026-03-31"

    def test_valid_from_lookahead(self):
        assert regex_assist.issue_valid_from("Valid From\n00:00 hrs of 05/06/2025") == "2025-06-05"

    def test_expiry_labeled(self):
        assert regex_assist.expiry_labeled("Policy Expiry: 20/09/2026") == "2026-09-20"

    def test_coverage_table_first_date_after_header(self):
        text = "\n".join(
            [
                "Coverage Details",
                "Valid From",
                "Valid Till",
                "Third Party Cover",
                "01/01/2024",
                "Own Damage Cover",
                "05/02/2025",
                "04/02/2026",
            ]
        )
        assert regex_assist.issue_coverage_table(text) == "2024-01-01"
        assert regex_assist.expiry_coverage_table(text) == "2025-02-05"

    def test_coverage_table_own_damage_row_first(self):
        text = "\n".join(
            [
                "Coverage Details",
                "Valid From",
                "Valid Till",
                "Own Damage Cover",
                "05/02/2025",
                "Third Party Cover",
                "01/01/2024",
            ]
        )
        assert regex_assist.issue_coverage_table(text) == "2025-02-05"

    def test_coverage_table_own_damage_first(self):
        text = "Coverage Details\nValid From\nValid Till\nOwn Damage Cover\n05/02/2025\n04/02/2026"
        assert regex_assist.issue_coverage_table(text) == "2025-02-05"
        assert regex_assist.expiry_coverage_table(text) == "2026-02-04"


class TestMoneyAndInsurerRules:
    """Test suite for money and insurer rules."""

    def test_idv(self):
        assert regex_assist.idv_labeled("Insured Declared Value (IDV) : 3,80,000") == 380000

    def test_total_premium(self):
        assert regex_assist.total_premium_labeled("Total Premium Rs. 18,210") == 18210
        assert regex_assist.total_premium_labeled("Final / Gross Premium 18,210") == 18210

    def test_net_premium_fallback(self):
        assert regex_assist.net_premium_labeled("Net Premium ₹15,432") == 15432

    def test_insurer_legal_name(self):
        text = "Issued by Go Digit General Insurance Limited"
        assert regex_assist.insurer_legal_name(text) == Insurer.DIGIT


class TestVehicleRules:
    """Test suite for make/model/variant/fuel rules."""

    def test_mmv_line(self):
        text = "Make / Model / Variant : HYUNDAI / CRETA / SX 1.5\nFuel Type: PETROL"
        assert regex_assist.make_from_mmv_line(text) == "HYUNDAI"
        assert regex_assist.model_from_mmv_line(text) == "CRETA"
        assert regex_assist.variant_from_mmv_line(text) == "SX 1.5"
        assert regex_assist.fuel_type_labeled(text) == "PETROL"

    def test_single_labels_on_next_line(self):
        text = "Make\nMARUTI\nModel: SWIFT\nVariant - VXI"
        assert regex_assist.make_labeled(text) == "MARUTI"
        assert regex_assist.model_labeled(text) == "SWIFT"
        assert regex_assist.variant_labeled(text) == "VXI"

    def test_bad_phrases_are_rejected(self):
        assert regex_assist.make_labeled("Make: TATA AIG Insurance") is None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("VOLKSWAGEN / VIRTUS", ("VOLKSWAGEN", "VIRTUS")),
            ("MARUTI SUZUKI SWIFT DZIRE", ("MARUTI SUZUKI", "SWIFT DZIRE")),
            ("KIA - SELTOS", ("KIA", "SELTOS")),
            ("KIAX", None),
            ("MARUTI", None),
            ("SWIFT", None),
        ],
    )
    def test_split_make_model(self, raw, expected):
        assert split_make_model(raw) == expected


class TestApplyAssist:
    """Test suite for the upgrade-only reducer."""

    def test_fills_empty_and_upgrades_llm_fields(self, sample_text):
        record = _record(total_premium=_llm(99999), idv=_llm(1))
        result = apply_assist(sample_text, record)

        assert result.total_premium.value == 15432
        assert result.total_premium.source == Source.TEXT
        assert result.total_premium.note == "net_premium_labeled"
        assert result.idv.value == 380000
        assert result.issue_date.value == "2025-09-21"
        assert result.expiry_date.value == "2026-09-20"
        assert result.make.value == "HYUNDAI"
        assert result.fuel_type.value == "PETROL"

    @pytest.mark.parametrize("source", [Source.TEXT, Source.REGEX, Source.MANUAL, Source.MERGED])
    def test_never_downgrades_non_llm_fields(self, sample_text, source):
        locked = ExtractedField(value=1234, confidence=0.7, source=source)
        result = apply_assist(sample_text, _record(total_premium=locked))
        assert result.total_premium == locked

    def test_unmatched_field_is_untouched(self):
        record = _record(policy_number=_llm("D1"))
        assert apply_assist("nothing useful", record) == record

    def test_make_split_from_llm_model(self):
        record = _record(model=_llm("VOLKSWAGEN / VIRTUS"))
        result = apply_assist("no vehicle labels", record)
        assert result.make.value == "VOLKSWAGEN"
        assert result.model.value == "VIRTUS"
        assert result.make.note == "make_model_split"

    def test_make_split_skipped_for_locked_model(self):
        manual_model = ExtractedField(value="VOLKSWAGEN / VIRTUS", confidence=1.0, source=Source.MANUAL)
        result = apply_assist("no vehicle labels", _record(model=manual_model))
        assert result.make.value is None
        assert result.model == manual_model

    def test_first_match_skips_failing_rule(self):
        def boom(text):
            raise RuntimeError("bad rule")

        rules = (
            AssistRule("boom", boom, 0.9),
            AssistRule("miss", lambda text: None, 0.9),
            AssistRule("hit", lambda text: "value", 0.8),
        )
        rule, value = first_match(rules, "text")
        assert rule.name == "hit"
        assert value == "value"
