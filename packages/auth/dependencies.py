from typing import Annotated, Callable, Optional

import jwt
from fastapi import Depends, HTTPException, status, Header

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.access_guard import AccessGuard
from packages.billing.models.domain.claims import SubscriptionClaims
from packages.billing.services.catalog_service import CatalogService
from packages.billing.services.invoice_service import InvoiceService
from packages.billing.services.subscription_service import SubscriptionService

logger = get_logger(__name__)


def get_catalog_service() -> CatalogService:
    return CatalogService()


def get_invoice_service() -> InvoiceService:
    return InvoiceService()


def get_subscription_service(
    catalog: CatalogService = Depends(get_catalog_service),
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> SubscriptionService:
    return SubscriptionService(catalog=catalog, invoice_service=invoice_service)


def get_access_guard(
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> AccessGuard:
    return AccessGuard(subscription_service)


def decode_access_token(token: str) -> AuthenticatedUser:
    """Decode an access token issued by the identity service."""
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid access token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return AuthenticatedUser(
            user_id=int(payload["sub"]),
            company_id=int(payload["company_id"]),
            role=payload.get("role", "member"),
            subscription=SubscriptionClaims.from_token_payload(payload),
        )
    except (KeyError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing user or company",
            headers={"WWW-Authenticate": "Bearer"},
        )


@trace_span
async def get_current_user(
    authorization: Annotated[Optional[str], Header()] = None,
) -> AuthenticatedUser:
    """Get current authenticated user from the Bearer token."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing or invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization.split(" ")[1]
    return decode_access_token(token)


@trace_span
async def get_current_owner(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    """Billing actions are reserved for the company owner."""
    if not current_user.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions"
        )
    return current_user


@trace_span
async def get_subscribed_user(
    current_user: AuthenticatedUser = Depends(get_current_user),
    guard: AccessGuard = Depends(get_access_guard),
) -> AuthenticatedUser:
    """Get current user with active subscription check."""
    await guard.require_active_subscription(
        current_user.company_id, current_user.subscription
    )
    return current_user


def require_feature(code: str) -> Callable:
    """Dependency factory: the user's plan must include feature ``code``."""

    async def dependency(
        current_user: AuthenticatedUser = Depends(get_current_user),
        guard: AccessGuard = Depends(get_access_guard),
    ) -> AuthenticatedUser:
        await guard.require_feature(
            current_user.company_id, current_user.subscription, code
        )
        return current_user

    return dependency


@trace_span
async def require_can_add_employee(
    current_user: AuthenticatedUser = Depends(get_subscribed_user),
    guard: AccessGuard = Depends(get_access_guard),
) -> AuthenticatedUser:
    await guard.require_can_add_employee(current_user.company_id)
    return current_user
