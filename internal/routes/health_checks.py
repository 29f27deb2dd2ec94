"""Kubernetes liveness and readiness endpoints.

These endpoints are internal-only - not exposed via ingress.
Ingress only routes /api/* paths, so these root-level paths are only
reachable by k8s health checks hitting the pod IP directly.
"""

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from common.core.otel_axiom_exporter import get_logger
from common.db.scoped import get_session
from common.providers.locking.factory import get_lock_provider

logger = get_logger(__name__)

router = APIRouter(tags=["internal"])


@router.get("/healthz")
async def healthz():
    """Liveness check - is the process alive?"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(response: Response):
    """Readiness check - database and lock store reachable."""
    checks = {}
    try:
        async with get_session(readonly=True) as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.error(f"Readiness check: database unavailable: {e}")
        checks["database"] = "unavailable"

    try:
        await get_lock_provider().ping()
        checks["redis"] = "ok"
    except Exception as e:
        logger.error(f"Readiness check: redis unavailable: {e}")
        checks["redis"] = "unavailable"

    ready = all(value == "ok" for value in checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "ok" if ready else "unavailable", **checks}
