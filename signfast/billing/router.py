# signfast/billing/router.py

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from signfast.billing.schemas import (
    PlanChangeRequest, PlanChangeResponse, PortalSessionResponse, UsageStatsResponse,
)
from signfast.billing.services import BillingService, UsageMeterService, get_usage_meter
from signfast.core.exceptions import SignFastBaseException
from signfast.users.models import User
from signfast.users.utils import get_current_user
from signfast.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("/usage", response_model=UsageStatsResponse)
async def get_usage(
    meter: UsageMeterService = Depends(get_usage_meter),
    current_user: User = Depends(get_current_user),
):
    """Usage and plan summary for the current user."""
    return await meter.get_usage_stats(current_user)


@router.post("/plan", response_model=PlanChangeResponse)
async def change_plan(
    plan_request: PlanChangeRequest,
    billing_service: BillingService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Start a Stripe Checkout session for a paid plan."""
    try:
        logger.info("Plan change requested", user_id=current_user.id, plan_type=plan_request.plan_type)
        return await billing_service.change_plan(current_user, plan_request.plan_type)
    except SignFastBaseException as e:
        logger.error("Plan change failed", user_id=current_user.id, error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e


@router.post("/portal", response_model=PortalSessionResponse)
async def open_billing_portal(
    billing_service: BillingService = Depends(),
    current_user: User = Depends(get_current_user),
):
    """Stripe customer portal for managing the subscription."""
    try:
        return await billing_service.open_portal(current_user)
    except SignFastBaseException as e:
        logger.error("Billing portal failed", user_id=current_user.id, error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    billing_service: BillingService = Depends(),
):
    """Receive Stripe subscription and invoice events."""
    payload = await request.body()
    try:
        return await billing_service.handle_webhook(payload, stripe_signature)
    except SignFastBaseException as e:
        logger.error("Webhook rejected", error_message=str(e))
        raise HTTPException(status_code=e.status_code, detail={"message": str(e)}) from e
    except Exception as e:
        logger.error("Webhook handler failed", error_message=str(e), exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Webhook handler failed"}
        ) from e
