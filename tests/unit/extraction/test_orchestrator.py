"""Tests for the end-to-end extraction pipeline over in-memory fakes."""

import pytest

from policy_intake.core.exceptions import ExtractionError
from policy_intake.schemas.extraction import Source
from policy_intake.services.extraction.orchestrator import evidence_snippet
from tests.fakes import FakeChatClient, build_orchestrator, llm_payload


@pytest.mark.asyncio
async def test_pipeline_produces_gated_record(orchestrator):
    outcome = await orchestrator.extract("uploads/u1.pdf", upload_id="u1", model_tier="primary")
    record = outcome.data

    assert record.policy_number.value == "D217080603"
    assert record.vehicle_number.value == "TN18BE3785"
    assert record.total_premium.value == 15432
    assert record.idv.value == 380000
    assert record.issue_date.value == "2025-09-21"
    assert record.expiry_date.value == "2026-09-20"
    assert all(
        record.field(name).source == Source.TEXT
        for name in ("policy_number", "vehicle_number", "total_premium", "idv")
    )
    assert record.insurer.value is None
    assert record.make.value == "HYUNDAI"
    assert record.variant.value == "SX 1.5"
    assert "D217080603" in record.debug.evidence_snippet


@pytest.mark.asyncio
async def test_meta_reports_the_attempt(orchestrator):
    outcome = await orchestrator.extract("uploads/u1.pdf", upload_id="u1", model_tier="secondary")
    meta = outcome.to_dict()["meta"]

    assert meta["via"] == "fast"
    assert meta["modelTag"] == "secondary"
    assert meta["model"] == "test-large"
    assert meta["textCharCount"] > 0
    assert meta["totalMs"] >= meta["llmMs"]


@pytest.mark.asyncio
async def test_second_attempt_hits_llm_cache(orchestrator):
    await orchestrator.extract("uploads/u1.pdf", upload_id="u1")
    outcome = await orchestrator.extract("uploads/u1.pdf", upload_id="u1")
    assert outcome.meta.llm_cached is True
    assert outcome.meta.llm_ms == 0


@pytest.mark.asyncio
async def test_llm_failure_aborts_without_record():
    orchestrator = build_orchestrator(chat_client=FakeChatClient(content="not json"))
    with pytest.raises(ExtractionError) as exc_info:
        await orchestrator.extract("uploads/u1.pdf", upload_id="u1", model_tier="secondary")
    assert exc_info.value.code == "secondary_invalid_json"


@pytest.mark.asyncio
async def test_unknown_tier(orchestrator):
    with pytest.raises(ValueError):
        await orchestrator.extract("uploads/u1.pdf", model_tier="tertiary")


@pytest.mark.asyncio
async def test_model_guess_missing_from_text_is_nulled():
    orchestrator = build_orchestrator(
        text="Scanned schedule\nSome unrelated header",
        chat_client=FakeChatClient(content=llm_payload()),
    )
    outcome = await orchestrator.extract("uploads/u1.pdf", upload_id="u1")
    payload = outcome.data.to_payload()
    for name in ("policy_number", "vehicle_number", "issue_date", "expiry_date", "total_premium", "idv"):
        assert payload[name] == {"value": None, "confidence": 0.0, "source": "none", "note": None}


def test_evidence_snippet_falls_back_to_anchor():
    text = ("intro " * 50) + "Schedule of Premium\nNet 100"
    snippet = evidence_snippet(text)
    assert "Schedule of Premium" in snippet
    assert evidence_snippet("no anchors at all") is None
