"""Base OCR service interface for pluggable asynchronous OCR providers."""

import asyncio
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)


class OCRJobStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OCRResult:
    """OCR extraction result container.

    Attributes:
        text: Extracted text content, lines joined in document order
        metadata: Additional metadata (job id, line count, elapsed time)
        success: Whether extraction was successful
        error: Optional error message
        timed_out: Whether the job missed the wait ceiling
    """

    def __init__(
        self,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        success: bool = True,
        error: Optional[str] = None,
        timed_out: bool = False,
    ):
        self.text = text
        self.metadata = metadata or {}
        self.success = success
        self.error = error
        self.timed_out = timed_out

    @classmethod
    def failure(cls, error: str, timed_out: bool = False, **metadata: Any) -> "OCRResult":
        return cls(text="", metadata=metadata, success=False, error=error, timed_out=timed_out)

    def to_dict(self) -> Dict[str, Any]:
        """Convert OCR result to dictionary.

        Returns:
            Dict[str, Any]: Dictionary representation of OCR result
        """
        result = {
            "text": self.text,
            "metadata": self.metadata,
            "success": self.success,
        }
        if self.error:
            result["error"] = self.error
            result["timed_out"] = self.timed_out
        return result


class BaseOCRService(ABC):
    """Abstract base class for job-based OCR providers.

    Implementations submit a job for a stored document, report its status and
    return recognized lines once it has succeeded.
    """

    @abstractmethod
    async def start_job(self, bucket: str, key: str) -> str:
        """Submit an OCR job for ``bucket/key`` and return its job id."""

    @abstractmethod
    async def poll_job(self, job_id: str) -> OCRJobStatus:
        """Return the current status of ``job_id``."""

    @abstractmethod
    async def fetch_lines(self, job_id: str) -> List[str]:
        """Return every recognized line of a succeeded job, in document order."""

    @abstractmethod
    def get_service_name(self) -> str:
        """Get the name of the OCR service."""

    async def extract_text(
        self,
        bucket: str,
        key: str,
        timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 2.0,
    ) -> OCRResult:
        """Run a job for ``bucket/key`` to completion.

        Submission and polling errors come back as an unsuccessful result.
        """
        started = time.monotonic()
        try:
            job_id = await self.start_job(bucket, key)
        except Exception as e:
            LOGGER.error(
                "OCR job submission failed",
                extra={"service": self.get_service_name(), "key": key, "error": str(e)},
            )
            return OCRResult.failure(f"job submission failed: {e}", key=key)

        LOGGER.info(
            "OCR job started",
            extra={"service": self.get_service_name(), "job_id": job_id, "key": key},
        )

        result = await poll_until_complete(
            poll=lambda: self.poll_job(job_id),
            fetch=lambda: self.fetch_lines(job_id),
            timeout_seconds=timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )
        result.metadata.update(
            {
                "job_id": job_id,
                "service": self.get_service_name(),
                "elapsed_seconds": round(time.monotonic() - started, 3),
            }
        )
        return result


async def poll_until_complete(
    poll: Callable[[], Awaitable[OCRJobStatus]],
    fetch: Callable[[], Awaitable[List[str]]],
    timeout_seconds: float,
    poll_interval_seconds: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> OCRResult:
    """Poll a job until it is terminal or ``timeout_seconds`` have elapsed.

    The caller's task is suspended between polls. On timeout the job is left
    running server-side and a ``timed_out`` failure is returned.

    Args:
        poll: Returns the job status
        fetch: Returns recognized lines once the job succeeded
        timeout_seconds: Wait ceiling
        poll_interval_seconds: Delay between polls
        clock: Monotonic clock
        sleep: Awaitable sleep

    Returns:
        OCRResult: Lines joined with newlines, or a failure
    """
    deadline = clock() + timeout_seconds
    attempts = 0

    while True:
        attempts += 1
        try:
            status = await poll()
        except Exception as e:
            return OCRResult.failure(f"status poll failed: {e}", attempts=attempts)

        if status == OCRJobStatus.SUCCEEDED:
            break
        if status == OCRJobStatus.FAILED:
            return OCRResult.failure("OCR job failed", attempts=attempts)
        if clock() >= deadline:
            return OCRResult.failure(
                f"OCR job did not finish within {timeout_seconds}s",
                timed_out=True,
                attempts=attempts,
            )
        await sleep(poll_interval_seconds)

    try:
        lines = await fetch()
    except Exception as e:
        return OCRResult.failure(f"fetching OCR lines failed: {e}", attempts=attempts)

    return OCRResult(
        text="\n".join(lines),
        metadata={"attempts": attempts, "line_count": len(lines)},
    )
