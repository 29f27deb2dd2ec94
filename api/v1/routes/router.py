from fastapi import APIRouter, Depends

from api.v1.routes import (
    health,
)
from packages.auth.dependencies import get_current_user
from packages.billing.routes import subscriptions, webhooks

api_router = APIRouter()

# Health check (no auth required)
api_router.include_router(health.router, prefix="/health", tags=["health"])

# Webhooks (no auth - callback token verified internally)
api_router.include_router(webhooks.router, tags=["webhooks"])

# Subscription routes (require auth; owner-only actions check the role per route)
api_router.include_router(
    subscriptions.router,
    prefix="/subscriptions",
    tags=["subscriptions"],
    dependencies=[Depends(get_current_user)],
)
