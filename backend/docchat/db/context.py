"""Request context for ownership enforcement."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Request context containing the authenticated owner identity.

    Supplied by the auth provider; the core only compares owner ids.
    """

    owner_id: str
    plan_id: str = "free"
