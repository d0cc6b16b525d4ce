"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from policy_intake.main import app
from policy_intake.services.extraction.orchestrator import ExtractionOrchestrator
from policy_intake.services.review.upload_review_service import UploadReviewService
from policy_intake.services.storage.record_store import InMemoryRecordStore, UploadStatus
from tests.fakes import SAMPLE_POLICY_TEXT, build_orchestrator


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_POLICY_TEXT


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    """Store with one freshly uploaded document under ``u1``."""
    return InMemoryRecordStore(
        uploads={
            "u1": {
                "id": "u1",
                "document_key": "uploads/u1.pdf",
                "status": UploadStatus.UPLOADED,
                "extracted_data": None,
                "insurer": None,
            }
        }
    )


@pytest.fixture
def orchestrator() -> ExtractionOrchestrator:
    return build_orchestrator()


@pytest.fixture
def review_service(record_store, orchestrator) -> UploadReviewService:
    return UploadReviewService(record_store=record_store, orchestrator=orchestrator)
