# signfast/billing/stripe_client.py

"""
Thin async wrapper around the synchronous Stripe SDK.
"""

import asyncio
from typing import Dict, Optional

import stripe

from signfast.billing.exceptions import (
    BillingNotConfiguredException, BillingProviderException, WebhookSignatureException,
)
from signfast.core.config import settings
from signfast.utils.logger import get_logger

logger = get_logger(__name__)


class StripeClient:
    """Stripe operations used by billing: customers, checkout, portal, usage and webhooks."""

    def __init__(self):
        stripe.api_key = settings.stripe_secret_key

    async def create_customer(self, email: str, name: str, user_id: int) -> str:
        """Create a Stripe customer and return its id."""
        try:
            customer = await asyncio.to_thread(
                stripe.Customer.create,
                email=email,
                name=name or None,
                metadata={"user_id": str(user_id)},
            )
        except stripe.StripeError as e:
            logger.error("Stripe customer creation failed", user_id=user_id, error_message=str(e))
            raise BillingProviderException("customer creation", str(e)) from e

        logger.info("Stripe customer created", user_id=user_id, customer_id=customer.id)
        return customer.id

    async def create_checkout_session(
        self, customer_id: str, price_id: str, user_id: int, plan_type: str
    ) -> Dict[str, str]:
        """Start a subscription checkout for the given price."""
        base_url = settings.app_base_url.rstrip("/")
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                customer=customer_id,
                mode="subscription",
                line_items=[{"price": price_id}],
                success_url=f"{base_url}/dashboard/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{base_url}/dashboard/billing?canceled=true",
                metadata={"user_id": str(user_id), "plan_type": plan_type},
            )
        except stripe.StripeError as e:
            logger.error("Checkout session creation failed", user_id=user_id, error_message=str(e))
            raise BillingProviderException("checkout", str(e)) from e

        logger.info("Checkout session created", user_id=user_id, session_id=session.id)
        return {"session_id": session.id, "url": session.url}

    async def create_portal_session(self, customer_id: str) -> str:
        """Open a customer billing portal session and return its URL."""
        try:
            session = await asyncio.to_thread(
                stripe.billing_portal.Session.create,
                customer=customer_id,
                return_url=f"{settings.app_base_url.rstrip('/')}/dashboard",
            )
        except stripe.StripeError as e:
            logger.error("Billing portal session failed", customer_id=customer_id, error_message=str(e))
            raise BillingProviderException("billing portal", str(e)) from e

        return session.url

    async def report_usage(self, customer_id: str, identifier: str, quantity: int = 1) -> Optional[str]:
        """
        Report metered usage as a billing meter event.

        Returns the event identifier, or None when no meter is configured.
        The identifier makes retries idempotent on Stripe's side.
        """
        if not settings.stripe_meter_event_name:
            logger.warning("Metered usage reporting is not configured", customer_id=customer_id)
            return None

        try:
            await asyncio.to_thread(
                stripe.billing.MeterEvent.create,
                event_name=settings.stripe_meter_event_name,
                identifier=identifier,
                payload={"stripe_customer_id": customer_id, "value": str(quantity)},
            )
        except stripe.StripeError as e:
            logger.error("Usage reporting failed", customer_id=customer_id, error_message=str(e))
            raise BillingProviderException("usage reporting", str(e)) from e

        return identifier

    def verify_webhook(self, payload: bytes, signature_header: Optional[str]) -> None:
        """Check the Stripe-Signature header against the webhook secret."""
        if not settings.stripe_webhook_secret:
            raise BillingNotConfiguredException("STRIPE_WEBHOOK_SECRET")
        if not signature_header:
            raise WebhookSignatureException("no signature provided")
        try:
            stripe.Webhook.construct_event(payload, signature_header, settings.stripe_webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise WebhookSignatureException(str(e)) from e


stripe_client = StripeClient()


def get_stripe_client() -> StripeClient:
    """Dependency returning the shared Stripe client."""
    return stripe_client
