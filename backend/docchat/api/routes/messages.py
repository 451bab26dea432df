"""Submit-question endpoint - streams the generated answer."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from backend.docchat.api.auth import get_current_context
from backend.docchat.db.context import RequestContext
from backend.docchat.dependencies import ServicesDep
from backend.docchat.errors import NotFound, UpstreamFailure
from backend.docchat.ratelimit import MESSAGES_BUCKET, check_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


class SendMessageRequest(BaseModel):
    """Request body for POST /messages."""

    document_id: UUID
    message: str = Field(..., min_length=1, description="The user's question")


async def enforce_message_rate_limit(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: ServicesDep,
) -> RequestContext:
    """Consume one submit-question request from the caller's quota."""
    retry_after = check_rate_limit(services.rate_limiter, ctx, MESSAGES_BUCKET)
    if retry_after is not None:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(retry_after.seconds)},
        )
    return ctx


@router.post("")
async def send_message(
    request: SendMessageRequest,
    ctx: Annotated[RequestContext, Depends(enforce_message_rate_limit)],
    services: ServicesDep,
) -> StreamingResponse:
    """Ask a question about a document.

    The question is stored first, then the answer is streamed as plain text.
    Failures before the first token return an error status; later failures
    end the stream early.
    """
    if not request.message.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="message must not be blank",
        )

    try:
        stream = await services.answers.answer(request.document_id, ctx.owner_id, request.message)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found") from e
    except UpstreamFailure as e:
        logger.warning(f"Answer for document {request.document_id} failed to start: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Answer generation failed",
        ) from e

    return StreamingResponse(stream, media_type="text/plain; charset=utf-8")
