"""Health check endpoints.

- /health: liveness, always 200 while the process serves requests
- /healthz: database, Redis and vector store connectivity, 503 if any fails
"""

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.docchat.dependencies import Services, ServicesDep

router = APIRouter()


async def check_db(services: Services) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    if services.engine is None:
        return (True, "in_memory")

    try:
        async with services.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(services: Services) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if services.redis_client is None:
        return (True, "not_configured")

    try:
        services.redis_client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_vectors(services: Services) -> tuple[bool, str]:
    """Check vector store connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        await services.qdrant_client.get_collections()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(services: ServicesDep) -> dict[str, Any] | JSONResponse:
    """Component health check.

    Returns:
        200 with component status if core systems ok
        503 if a component fails
    """
    db_ok, db_status = await check_db(services)
    redis_ok, redis_status = await check_redis(services)
    vectors_ok, vectors_status = await check_vectors(services)
    core_ok = db_ok and redis_ok and vectors_ok

    response_body = {
        "status": "ok" if core_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
            "vectors": vectors_status,
            "ingestion_jobs": services.jobs.pending,
        },
    }

    if not core_ok:
        return JSONResponse(content=response_body, status_code=503)

    return response_body
