"""Auth dependencies for the caller-facing API.

Stub implementation: the auth provider's session is represented by a
"Bearer <owner_id>" header and the billing provider's plan by X-Plan-Id.
Ownership is enforced downstream by comparing owner ids.
"""

import secrets
from typing import Annotated

from fastapi import Header, HTTPException, status

from backend.docchat.db.context import RequestContext
from backend.docchat.dependencies import ServicesDep
from backend.docchat.errors import Unauthorized
from backend.docchat.plans import DEFAULT_PLAN_ID


def parse_bearer_owner(authorization: str | None) -> str:
    """Return the owner id carried by a "Bearer <owner_id>" header.

    Raises:
        Unauthorized: If the header is missing or malformed
    """
    if not authorization:
        raise Unauthorized("Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise Unauthorized("Invalid authorization header format")

    owner_id = authorization[7:].strip()  # Strip "Bearer "
    if not owner_id or any(ch.isspace() for ch in owner_id):
        raise Unauthorized("Invalid bearer token")

    return owner_id


async def get_current_context(
    authorization: Annotated[str | None, Header()] = None,
    x_plan_id: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Extract request context from authorization header.

    Args:
        authorization: Authorization header (e.g., "Bearer <owner_id>")
        x_plan_id: Caller's subscription plan, as supplied by billing

    Returns:
        RequestContext with owner_id and plan_id

    Raises:
        HTTPException: 401 if the header is missing or malformed
    """
    try:
        owner_id = parse_bearer_owner(authorization)
    except Unauthorized as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return RequestContext(owner_id=owner_id, plan_id=(x_plan_id or DEFAULT_PLAN_ID).strip())


async def verify_upload_secret(
    services: ServicesDep,
    x_upload_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Check the shared secret on upload-provider callbacks, when one is configured."""
    expected = services.settings.upload_webhook_secret
    if expected is None or not expected.get_secret_value():
        return

    if x_upload_secret is None or not secrets.compare_digest(
        x_upload_secret.encode("utf-8"), expected.get_secret_value().encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid upload callback secret",
        )
