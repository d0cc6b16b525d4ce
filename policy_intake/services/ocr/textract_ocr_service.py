"""Amazon Textract asynchronous text detection."""

import asyncio
from typing import Any, List

from policy_intake.services.ocr.ocr_base import BaseOCRService, OCRJobStatus
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

_STATUS_MAP = {
    "IN_PROGRESS": OCRJobStatus.PENDING,
    "SUCCEEDED": OCRJobStatus.SUCCEEDED,
    "FAILED": OCRJobStatus.FAILED,
    # Partial output is treated as a failed job.
    "PARTIAL_SUCCESS": OCRJobStatus.FAILED,
}


class TextractOCRService(BaseOCRService):
    """Textract ``start_document_text_detection`` / ``get_document_text_detection`` wrapper.

    boto3 is blocking, so each call runs in a worker thread.
    """

    def __init__(self, region: str = "ap-south-1", client: Any = None):
        if client is None:
            import boto3

            client = boto3.client("textract", region_name=region)
        self.client = client

    def get_service_name(self) -> str:
        return "Amazon Textract"

    async def start_job(self, bucket: str, key: str) -> str:
        response = await asyncio.to_thread(
            self.client.start_document_text_detection,
            DocumentLocation={"S3Object": {"Bucket": bucket, "Name": key}},
        )
        job_id = response.get("JobId")
        if not job_id:
            raise RuntimeError("start_document_text_detection returned no JobId")
        return job_id

    async def poll_job(self, job_id: str) -> OCRJobStatus:
        response = await asyncio.to_thread(
            self.client.get_document_text_detection, JobId=job_id, MaxResults=1
        )
        status = response.get("JobStatus", "")
        if status in ("FAILED", "PARTIAL_SUCCESS"):
            LOGGER.warning(
                "Textract job ended unsuccessfully",
                extra={"job_id": job_id, "status": status, "status_message": response.get("StatusMessage")},
            )
        return _STATUS_MAP.get(status, OCRJobStatus.PENDING)

    async def fetch_lines(self, job_id: str) -> List[str]:
        lines: List[str] = []
        next_token = None
        while True:
            kwargs = {"JobId": job_id}
            if next_token:
                kwargs["NextToken"] = next_token
            response = await asyncio.to_thread(self.client.get_document_text_detection, **kwargs)
            for block in response.get("Blocks", []):
                if block.get("BlockType") == "LINE" and block.get("Text"):
                    lines.append(block["Text"])
            next_token = response.get("NextToken")
            if not next_token:
                return lines
