"""Key-value store for upload and policy rows, keyed by upload id."""

import copy
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class UploadStatus:
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    SAVED = "SAVED"
    FAILED = "FAILED"


REVIEWABLE_STATUSES = (UploadStatus.REVIEW, UploadStatus.COMPLETED)


class BaseRecordStore(ABC):
    """Storage for upload rows and the canonical policy rows saved from them."""

    @abstractmethod
    async def get_upload(self, upload_id: str) -> Optional[Dict[str, Any]]:
        """Return the upload row or ``None``."""

    @abstractmethod
    async def update_upload(self, upload_id: str, **changes: Any) -> Dict[str, Any]:
        """Apply ``changes`` to an existing upload row and return it."""

    @abstractmethod
    async def insert_policy(self, upload_id: str, policy: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a canonical policy row and return it with its id."""


class InMemoryRecordStore(BaseRecordStore):
    """Process-local store used by the default app wiring and the tests."""

    def __init__(self, uploads: Optional[Dict[str, Dict[str, Any]]] = None):
        self._uploads: Dict[str, Dict[str, Any]] = copy.deepcopy(uploads or {})
        self._policies: List[Dict[str, Any]] = []

    async def add_upload(
        self,
        upload_id: str,
        document_key: str,
        status: str = UploadStatus.UPLOADED,
        **fields: Any,
    ) -> Dict[str, Any]:
        row = {
            "id": upload_id,
            "document_key": document_key,
            "status": status,
            "extracted_data": None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            **fields,
        }
        self._uploads[upload_id] = row
        return copy.deepcopy(row)

    async def get_upload(self, upload_id: str) -> Optional[Dict[str, Any]]:
        row = self._uploads.get(upload_id)
        return copy.deepcopy(row) if row is not None else None

    async def update_upload(self, upload_id: str, **changes: Any) -> Dict[str, Any]:
        row = self._uploads[upload_id]
        row.update(copy.deepcopy(changes))
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        return copy.deepcopy(row)

    async def insert_policy(self, upload_id: str, policy: Dict[str, Any]) -> Dict[str, Any]:
        row = {"id": len(self._policies) + 1, "upload_id": upload_id, **copy.deepcopy(policy)}
        self._policies.append(row)
        return copy.deepcopy(row)

    @property
    def policies(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._policies)
