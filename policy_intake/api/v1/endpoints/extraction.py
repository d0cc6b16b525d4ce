from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from policy_intake.api.dependencies import get_review_service
from policy_intake.core.exceptions import (
    AcquisitionError,
    ConfigurationError,
    DocumentNotFoundError,
    ExtractionError,
    ValidationError,
)
from policy_intake.schemas.response import ErrorResponse, ExtractionResponse, ExtractRequest
from policy_intake.services.review.upload_review_service import UploadReviewService
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/{upload_id}/extract",
    response_model=ExtractionResponse,
    responses={
        status.HTTP_404_NOT_FOUND: {"description": "Upload not found"},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    },
    summary="Extract policy fields for review",
    operation_id="extract_upload",
)
async def extract_upload(
    upload_id: str,
    service: Annotated[UploadReviewService, Depends(get_review_service)],
    body: Optional[ExtractRequest] = Body(default=None),
):
    """Run one extraction attempt with the requested model tier.

    A failed attempt returns no partial record; retry with the other tier or
    fall back to manual entry.
    """
    body = body or ExtractRequest()
    try:
        outcome = await service.extract_for_review(upload_id, model_tier=body.model, mode=body.mode)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ExtractionError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=ErrorResponse(code=e.code, hint=e.hint, detail=e.detail).model_dump(),
        )
    except AcquisitionError as e:
        LOGGER.warning("Text acquisition failed", extra={"upload_id": upload_id, "error": str(e)})
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorResponse(
                code="acquisition_failed",
                hint=str(e),
                detail={"error_type": type(e).__name__},
            ).model_dump(),
        )
    except ValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=ErrorResponse(
                code=f"{body.model}_invalid_record",
                hint=str(e),
                detail={"errors": e.errors},
            ).model_dump(),
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return outcome.to_dict()
