# signfast/billing/services.py

"""
Usage metering and subscription management.

Every completed signature consumes one unit: the owner's free allowance
first, then an active subscription. Unlimited plans record usage unbilled;
metered plans report each unit to Stripe.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Depends
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signfast.billing.exceptions import (
    BillingNotConfiguredException, BillingProviderException, InvalidPlanException,
    StripeCustomerNotFoundException, UsageLimitExceededException, WebhookSignatureException,
)
from signfast.billing.models import SignatureUsage
from signfast.billing.repository import BillingRepository
from signfast.billing.schemas import (
    HANDLED_EVENT_TYPES, PAID_PLANS, BillingEvent, CheckoutSessionCompletedEvent,
    InvoicePaidEvent, InvoicePaymentFailedEvent, PlanChangeResponse, PlanType, PortalSessionResponse,
    SubscriptionCreatedEvent, SubscriptionDeletedEvent, SubscriptionUpdatedEvent,
    UsageRecordResult, UsageStatsResponse, billing_event_adapter,
)
from signfast.billing.stripe_client import StripeClient, get_stripe_client
from signfast.core.config import settings
from signfast.core.db import get_async_db
from signfast.users.models import User
from signfast.users.repository import UserRepository
from signfast.utils.logger import get_logger

logger = get_logger(__name__)

ACTIVE = "active"


def get_billing_repository(
    db: AsyncSession = Depends(get_async_db),
) -> BillingRepository:
    """Dependency to get BillingRepository instance."""
    return BillingRepository(db)


def get_user_repository(
    db: AsyncSession = Depends(get_async_db),
) -> UserRepository:
    """Dependency to get UserRepository instance."""
    return UserRepository(db)


def can_user_send(user: User) -> bool:
    """Free allowance left, or an active paid plan."""
    if user.free_signatures_remaining > 0:
        return True
    if user.subscription_status != ACTIVE:
        return False
    if user.plan_type == PlanType.UNLIMITED.value:
        return True
    return user.plan_type == PlanType.METERED.value and bool(user.subscription_id)


def plan_for_price(price_id: str) -> str:
    if price_id and price_id == settings.stripe_unlimited_price_id:
        return PlanType.UNLIMITED.value
    return PlanType.METERED.value


class UsageMeterService:
    """Records one usage unit per completed signature, at most once per signature."""

    def __init__(
        self,
        repo: BillingRepository = Depends(get_billing_repository),
        users: UserRepository = Depends(get_user_repository),
        stripe_client: StripeClient = Depends(get_stripe_client),
    ):
        self.repo = repo
        self.users = users
        self.stripe_client = stripe_client

    async def ensure_can_send(self, user_id: int) -> None:
        user = await self.users.get_user_by_id(user_id)
        if user is None or not can_user_send(user):
            logger.warning("Signature request blocked by billing", user_id=user_id)
            raise UsageLimitExceededException(user_id)

    async def record_completion(
        self, owner_id: int, document_id: int, signature_id: int
    ) -> UsageRecordResult:
        """
        Meter one completed signature for the document owner.

        Never blocks the signature: with no allowance and no active plan the
        result reports usage_recorded=False and nothing is charged.
        """
        existing = await self.repo.get_usage_by_signature(signature_id)
        if existing:
            logger.info("Usage already recorded", signature_id=signature_id)
            return UsageRecordResult(
                usage_recorded=True, billed=existing.billed, source=existing.source,
                message="Usage already recorded",
            )

        user = await self.users.get_user_by_id(owner_id, for_update=True)
        if user is None:
            logger.warning("Usage owner not found", user_id=owner_id, signature_id=signature_id)
            return UsageRecordResult(usage_recorded=False, message="Owner not found")

        billed = False
        reference = None
        if user.free_signatures_remaining > 0:
            source = PlanType.FREE.value
            user.free_signatures_remaining -= 1
        elif user.plan_type == PlanType.UNLIMITED.value and user.subscription_status == ACTIVE:
            source = PlanType.UNLIMITED.value
        elif (
            user.plan_type == PlanType.METERED.value
            and user.subscription_status == ACTIVE
            and user.subscription_id
        ):
            source = PlanType.METERED.value
            try:
                reference = await self.stripe_client.report_usage(
                    user.stripe_customer_id, identifier=f"signature-{signature_id}"
                )
                billed = reference is not None
            except BillingProviderException as e:
                logger.error(
                    "Metered usage not billed", signature_id=signature_id, error_message=str(e)
                )
        else:
            logger.warning(
                "Signature completed without allowance or active plan",
                user_id=owner_id,
                signature_id=signature_id,
            )
            return UsageRecordResult(
                usage_recorded=False,
                message="No free signatures remaining and no active subscription",
            )

        usage = SignatureUsage(
            user_id=owner_id,
            document_id=document_id,
            signature_id=signature_id,
            source=source,
            billed=billed,
            provider_reference=reference,
        )
        try:
            await self.repo.create_usage(usage)
            await self.repo.commit()
        except IntegrityError:
            # Lost a race with a concurrent meter call for the same signature
            await self.repo.rollback()
            existing = await self.repo.get_usage_by_signature(signature_id)
            return UsageRecordResult(
                usage_recorded=existing is not None,
                billed=bool(existing and existing.billed),
                source=existing.source if existing else None,
                message="Usage already recorded",
            )

        return UsageRecordResult(usage_recorded=True, billed=billed, source=source)

    async def get_usage_stats(self, user: User) -> UsageStatsResponse:
        month_start = datetime.now(timezone.utc).replace(
            day=1, hour=0, minute=0, second=0, microsecond=0
        )
        return UsageStatsResponse(
            free_signatures_remaining=user.free_signatures_remaining,
            plan_type=user.plan_type,
            subscription_status=user.subscription_status,
            current_month_usage=await self.repo.count_usage(user.id, since=month_start),
            current_month_billed=await self.repo.count_usage(user.id, since=month_start, billed=True),
            total_usage=await self.repo.count_usage(user.id),
            can_send_requests=can_user_send(user),
        )


def get_usage_meter(
    repo: BillingRepository = Depends(get_billing_repository),
    users: UserRepository = Depends(get_user_repository),
    stripe_client: StripeClient = Depends(get_stripe_client),
) -> UsageMeterService:
    """Dependency to get the usage meter."""
    return UsageMeterService(repo=repo, users=users, stripe_client=stripe_client)


class BillingService:
    """Plan changes through Stripe Checkout and subscription webhooks."""

    def __init__(
        self,
        users: UserRepository = Depends(get_user_repository),
        stripe_client: StripeClient = Depends(get_stripe_client),
    ):
        self.users = users
        self.stripe_client = stripe_client

    async def change_plan(self, user: User, plan_type: str) -> PlanChangeResponse:
        """Start a checkout for a paid plan, creating the Stripe customer if needed."""
        if plan_type not in PAID_PLANS:
            raise InvalidPlanException(plan_type)

        price_id = (
            settings.stripe_unlimited_price_id
            if plan_type == PlanType.UNLIMITED.value
            else settings.stripe_metered_price_id
        )
        if not price_id:
            raise BillingNotConfiguredException(f"STRIPE_{plan_type.upper()}_PRICE_ID")

        if not user.stripe_customer_id:
            user.stripe_customer_id = await self.stripe_client.create_customer(
                user.email_address, user.name, user.id
            )
            await self.users.update(user)
            await self.users.commit()

        session = await self.stripe_client.create_checkout_session(
            user.stripe_customer_id, price_id, user.id, plan_type
        )
        return PlanChangeResponse(checkout_url=session["url"], session_id=session["session_id"])

    async def open_portal(self, user: User) -> PortalSessionResponse:
        """Billing portal for managing an existing subscription."""
        if not user.stripe_customer_id:
            raise StripeCustomerNotFoundException(user.id)
        url = await self.stripe_client.create_portal_session(user.stripe_customer_id)
        logger.info("Billing portal opened", user_id=user.id)
        return PortalSessionResponse(url=url)

    # === Webhooks ===

    async def handle_webhook(self, payload: bytes, signature_header: str) -> Dict[str, Any]:
        """Verify and apply a Stripe webhook. Unhandled event types are acknowledged."""
        self.stripe_client.verify_webhook(payload, signature_header)

        try:
            body = json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureException("payload is not JSON") from e

        event_type = body.get("type")
        if event_type not in HANDLED_EVENT_TYPES:
            logger.info("Ignoring webhook event", event_type=event_type)
            return {"received": True, "handled": False}

        try:
            event = billing_event_adapter.validate_python(body)
        except ValidationError as e:
            raise WebhookSignatureException(f"malformed {event_type} event") from e

        await self.apply_event(event)
        await self.users.commit()
        return {"received": True, "handled": True}

    async def apply_event(self, event: BillingEvent) -> None:
        if isinstance(event, SubscriptionCreatedEvent):
            await self._subscription_created(event)
        elif isinstance(event, SubscriptionUpdatedEvent):
            await self._subscription_updated(event)
        elif isinstance(event, SubscriptionDeletedEvent):
            await self._subscription_deleted(event)
        elif isinstance(event, InvoicePaidEvent):
            await self._set_status_by_customer(event.data.object.customer, ACTIVE)
        elif isinstance(event, InvoicePaymentFailedEvent):
            await self._set_status_by_customer(event.data.object.customer, "past_due")
        elif isinstance(event, CheckoutSessionCompletedEvent):
            await self._checkout_completed(event)

    async def _subscription_created(self, event: SubscriptionCreatedEvent) -> None:
        subscription = event.data.object
        if not subscription.customer:
            return
        user = await self.users.get_user_by_customer_id(subscription.customer)
        if not user:
            logger.warning("Subscription for unknown customer", customer_id=subscription.customer)
            return

        user.subscription_id = subscription.id
        user.subscription_status = subscription.status
        user.plan_type = plan_for_price(subscription.price_id)
        await self.users.update(user)
        logger.info("Subscription created", user_id=user.id, plan_type=user.plan_type)

    async def _subscription_updated(self, event: SubscriptionUpdatedEvent) -> None:
        subscription = event.data.object
        user = await self.users.get_user_by_subscription_id(subscription.id)
        if not user:
            logger.warning("Update for unknown subscription", subscription_id=subscription.id)
            return

        user.subscription_status = subscription.status
        if subscription.status == ACTIVE:
            user.plan_type = plan_for_price(subscription.price_id)
        await self.users.update(user)
        logger.info("Subscription updated", user_id=user.id, status=subscription.status)

    async def _subscription_deleted(self, event: SubscriptionDeletedEvent) -> None:
        subscription = event.data.object
        user = await self.users.get_user_by_subscription_id(subscription.id)
        if not user:
            return

        user.subscription_status = "canceled"
        user.plan_type = PlanType.FREE.value
        user.subscription_id = None
        await self.users.update(user)
        logger.info("Subscription canceled", user_id=user.id)

    async def _set_status_by_customer(self, customer_id: str, status: str) -> None:
        if not customer_id:
            return
        user = await self.users.get_user_by_customer_id(customer_id)
        if not user:
            return
        user.subscription_status = status
        await self.users.update(user)
        logger.info("Subscription status changed", user_id=user.id, status=status)

    async def _checkout_completed(self, event: CheckoutSessionCompletedEvent) -> None:
        session = event.data.object
        user_id = session.metadata.get("user_id")
        plan_type = session.metadata.get("plan_type")
        if not (user_id or "").isdigit() or plan_type not in PAID_PLANS or not session.subscription:
            logger.warning("Checkout session without usable metadata", session_id=session.id)
            return

        user = await self.users.get_user_by_id(int(user_id))
        if not user:
            return

        user.subscription_id = session.subscription
        user.subscription_status = ACTIVE
        user.plan_type = plan_type
        if session.customer and not user.stripe_customer_id:
            user.stripe_customer_id = session.customer
        await self.users.update(user)
        logger.info("Checkout completed", user_id=user.id, plan_type=plan_type)
