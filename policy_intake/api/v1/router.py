from fastapi import APIRouter

from policy_intake.api.v1.endpoints import extraction, review

# Create API router
api_router = APIRouter()

api_router.include_router(extraction.router, prefix="/uploads", tags=["Extraction"])
api_router.include_router(review.router, prefix="/uploads", tags=["Review"])

__all__ = ["api_router"]
