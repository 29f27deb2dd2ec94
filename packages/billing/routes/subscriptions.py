"""
Subscription API routes.

Catalog reads are open to any signed-in user; every billing action is
reserved for the company owner. Domain errors propagate to the application
exception handler.
"""

from typing import List

from fastapi import APIRouter, Depends

from packages.auth.dependencies import (
    get_catalog_service,
    get_current_owner,
    get_current_user,
    get_invoice_service,
    get_subscription_service,
)
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.models.schemas.billing import (
    ActionResponse,
    CancelSubscriptionRequest,
    ChangeSeatsRequest,
    ChangeSeatsResponse,
    CheckoutRequest,
    DowngradeRequest,
    FeatureResponse,
    InvoiceResponse,
    PlanResponse,
    SubscriptionResponse,
    UpgradeRequest,
)
from packages.billing.services.catalog_service import CatalogService
from packages.billing.services.invoice_service import InvoiceService
from packages.billing.services.subscription_service import SubscriptionService

router = APIRouter()


# ============================================================================
# Catalog
# ============================================================================


@router.get("/plans", response_model=List[PlanResponse])
async def list_plans(
    current_user: AuthenticatedUser = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """Plans available for purchase, lowest tier first."""
    plans = await catalog.list_active_plans()
    return [PlanResponse.from_domain(plan) for plan in plans]


@router.get("/features", response_model=List[FeatureResponse])
async def list_subscription_features(
    current_user: AuthenticatedUser = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Features included in the company's current plan."""
    features = await subscription_service.get_subscription_features(
        current_user.company_id
    )
    return [FeatureResponse.from_domain(feature) for feature in features]


# ============================================================================
# Subscription
# ============================================================================


@router.get("/me", response_model=SubscriptionResponse)
async def get_my_subscription(
    current_user: AuthenticatedUser = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    return await subscription_service.get_my_subscription(current_user.company_id)


@router.post("/trial", response_model=SubscriptionResponse, status_code=201)
async def start_trial(
    current_user: AuthenticatedUser = Depends(get_current_owner),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    await subscription_service.start_trial(current_user.company_id)
    return await subscription_service.get_my_subscription(current_user.company_id)


@router.post("/checkout", response_model=InvoiceResponse, status_code=201)
async def checkout(
    request: CheckoutRequest,
    current_user: AuthenticatedUser = Depends(get_current_owner),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Open an invoice for a plan. The subscription changes once it is paid."""
    invoice = await subscription_service.checkout(
        company_id=current_user.company_id,
        plan_id=request.plan_id,
        seat_count=request.seat_count,
        billing_cycle=request.billing_cycle,
        payer_email=request.payer_email,
    )
    return InvoiceResponse.from_domain(invoice)


@router.post("/upgrade", response_model=InvoiceResponse, status_code=201)
async def upgrade_plan(
    request: UpgradeRequest,
    current_user: AuthenticatedUser = Depends(get_current_owner),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    invoice = await subscription_service.upgrade_plan(
        company_id=current_user.company_id,
        plan_id=request.plan_id,
        seat_count=request.seat_count,
        payer_email=request.payer_email,
    )
    return InvoiceResponse.from_domain(invoice)


@router.post("/downgrade", response_model=SubscriptionResponse)
async def downgrade_plan(
    request: DowngradeRequest,
    current_user: AuthenticatedUser = Depends(get_current_owner),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """Schedule a lower plan from the next period."""
    await subscription_service.downgrade_plan(current_user.company_id, request.plan_id)
    return await subscription_service.get_my_subscription(current_user.company_id)


@router.delete("/downgrade", response_model=SubscriptionResponse)
async def cancel_downgrade(
    current_user: AuthenticatedUser = Depends(get_current_owner),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    await subscription_service.cancel_downgrade(current_user.company_id)
    return await subscription_service.get_my_subscription(current_user.company_id)


@router.post("/seats", response_model=ChangeSeatsResponse)
async def change_seats(
    request: ChangeSeatsRequest,
    current_user: AuthenticatedUser = Depends(get_current_owner),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    return await subscription_service.change_seats(
        company_id=current_user.company_id,
        seat_count=request.seat_count,
        payer_email=request.payer_email,
    )


@router.post("/cancel", response_model=ActionResponse)
async def cancel_subscription(
    request: CancelSubscriptionRequest,
    current_user: AuthenticatedUser = Depends(get_current_owner),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    subscription = await subscription_service.cancel_subscription(
        current_user.company_id, reason=request.reason
    )
    return ActionResponse(
        message=f"Subscription cancelled; access continues until {subscription.period_end.date().isoformat()}"
    )


# ============================================================================
# Invoices
# ============================================================================


@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_invoices(
    current_user: AuthenticatedUser = Depends(get_current_owner),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    invoices = await invoice_service.list_invoices(current_user.company_id)
    return [InvoiceResponse.from_domain(invoice) for invoice in invoices]


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    current_user: AuthenticatedUser = Depends(get_current_owner),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    invoice = await invoice_service.get_invoice(current_user.company_id, invoice_id)
    return InvoiceResponse.from_domain(invoice)


@router.post("/invoices/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_pending_invoice(
    invoice_id: int,
    current_user: AuthenticatedUser = Depends(get_current_owner),
    invoice_service: InvoiceService = Depends(get_invoice_service),
):
    invoice = await invoice_service.cancel_pending_invoice(
        current_user.company_id, invoice_id
    )
    return InvoiceResponse.from_domain(invoice)
