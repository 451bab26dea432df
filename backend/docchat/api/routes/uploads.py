"""Upload-provider callback - schedules document ingestion."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from backend.docchat.api.auth import verify_upload_secret
from backend.docchat.dependencies import ServicesDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


class UploadCompleteRequest(BaseModel):
    """Body sent by the upload provider once a file is durably stored."""

    owner_id: str = Field(..., min_length=1)
    storage_key: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    source_url: str | None = None
    plan_id: str | None = None


class UploadCompleteResponse(BaseModel):
    """Acknowledgment for POST /uploads/complete."""

    storage_key: str
    status: str


@router.post(
    "/complete",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=UploadCompleteResponse,
)
async def upload_complete(
    request: UploadCompleteRequest,
    services: ServicesDep,
    _: Annotated[None, Depends(verify_upload_secret)],
) -> UploadCompleteResponse:
    """Acknowledge an upload and ingest it in the background.

    Duplicate callbacks for the same storage key are accepted too; the
    pipeline skips keys it has already seen.
    """
    services.jobs.submit(
        owner_id=request.owner_id,
        storage_key=request.storage_key,
        name=request.name,
        source_url=request.source_url,
        plan_id=request.plan_id,
    )
    logger.info(f"Accepted upload {request.storage_key} for ingestion")

    return UploadCompleteResponse(storage_key=request.storage_key, status="accepted")
