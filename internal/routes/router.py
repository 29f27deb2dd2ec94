"""Internal routes aggregator.

Routes in this module are mounted at root level (not under /api/v1).
They are not exposed via ingress - only reachable by k8s health checks
hitting the pod IP directly.
"""

from fastapi import APIRouter

from internal.routes import health_checks

internal_router = APIRouter()

# K8s liveness and readiness endpoints
internal_router.include_router(health_checks.router)
