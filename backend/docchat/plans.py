"""Subscription plan limits."""

from backend.docchat.models.documents import PlanLimits

_MB = 1024 * 1024

PLANS: dict[str, PlanLimits] = {
    "free": PlanLimits(
        plan_id="free",
        name="Free",
        quota=10,
        max_pages_per_document=5,
        max_file_size_bytes=4 * _MB,
    ),
    "pro": PlanLimits(
        plan_id="pro",
        name="Pro",
        quota=50,
        max_pages_per_document=25,
        max_file_size_bytes=16 * _MB,
    ),
}

# Unknown plan ids resolve to the most restrictive plan
DEFAULT_PLAN_ID = "free"


def limits_for(plan_id: str | None) -> PlanLimits:
    """Look up the limits for a plan identifier.

    Total over any input: unknown or missing identifiers get the free plan.
    Lookup is case-insensitive.
    """
    if plan_id is None:
        return PLANS[DEFAULT_PLAN_ID]
    return PLANS.get(plan_id.strip().lower(), PLANS[DEFAULT_PLAN_ID])
