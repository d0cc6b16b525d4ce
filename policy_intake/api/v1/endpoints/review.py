from typing import Annotated, Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from policy_intake.api.dependencies import get_review_service
from policy_intake.core.exceptions import (
    DocumentNotFoundError,
    ReviewStateError,
    ValidationError,
)
from policy_intake.schemas.response import ConfirmSaveResponse, FieldErrorResponse
from policy_intake.services.review.upload_review_service import UploadReviewService

router = APIRouter()


@router.post(
    "/{upload_id}/confirm-save",
    response_model=ConfirmSaveResponse,
    responses={
        status.HTTP_404_NOT_FOUND: {"description": "Upload not found"},
        status.HTTP_409_CONFLICT: {"description": "Upload is not reviewable"},
        status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": FieldErrorResponse},
    },
    summary="Confirm a reviewed extraction and save the policy",
    operation_id="confirm_save_upload",
)
async def confirm_save(
    upload_id: str,
    service: Annotated[UploadReviewService, Depends(get_review_service)],
    payload: Dict[str, Any] = Body(...),
):
    """Merge the reviewed fields with the stored extraction and write the policy row."""
    try:
        result = await service.confirm_save(upload_id, payload)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ReviewStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=FieldErrorResponse(message=str(e), errors=e.errors).model_dump(),
        )

    return ConfirmSaveResponse(
        policy_id=result["policy"]["id"],
        status="SAVED",
        data=result["data"],
    )
