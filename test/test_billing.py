import json

import pytest

from conftest import create_user
from signfast.billing.exceptions import (
    BillingNotConfiguredException, InvalidPlanException, StripeCustomerNotFoundException,
    UsageLimitExceededException, WebhookSignatureException,
)
from signfast.billing.services import BillingService, can_user_send
from signfast.core.config import settings
from signfast.users.repository import UserRepository


@pytest.fixture
def billing_service(db_session, stripe_client):
    return BillingService(users=UserRepository(db_session), stripe_client=stripe_client)


@pytest.fixture
def meter_event_configured(monkeypatch):
    monkeypatch.setattr(settings, "stripe_meter_event_name", "signature_completed")


async def subscriber(db_session, email, plan_type, **fields):
    return await create_user(
        db_session, email,
        free_signatures_remaining=0,
        plan_type=plan_type,
        subscription_status="active",
        subscription_id=f"sub_{plan_type}",
        stripe_customer_id=f"cus_{plan_type}",
        **fields,
    )


# --- Usage metering ---

async def test_free_allowance_is_consumed_first(meter, db_session, owner, stripe_client):
    result = await meter.record_completion(owner.id, document_id=1, signature_id=10)

    assert result.usage_recorded is True
    assert result.source == "free"
    assert result.billed is False
    await db_session.refresh(owner)
    assert owner.free_signatures_remaining == 4
    assert stripe_client.usage_reports == []


async def test_recording_is_idempotent_per_signature(meter, db_session, owner):
    await meter.record_completion(owner.id, 1, 10)
    again = await meter.record_completion(owner.id, 1, 10)

    assert again.usage_recorded is True
    assert again.message == "Usage already recorded"
    await db_session.refresh(owner)
    assert owner.free_signatures_remaining == 4


async def test_unlimited_plan_records_unbilled(meter, db_session, stripe_client):
    user = await subscriber(db_session, "unlimited@example.com", "unlimited")

    result = await meter.record_completion(user.id, 1, 20)

    assert (result.usage_recorded, result.source, result.billed) == (True, "unlimited", False)
    assert stripe_client.usage_reports == []


async def test_metered_plan_reports_to_stripe(meter, db_session, stripe_client, meter_event_configured):
    user = await subscriber(db_session, "metered@example.com", "metered")

    result = await meter.record_completion(user.id, 1, 30)

    assert (result.source, result.billed) == ("metered", True)
    assert stripe_client.usage_reports == [("cus_metered", "signature-30", 1)]


async def test_stripe_failure_records_unbilled_usage(meter, db_session, stripe_client):
    stripe_client.fail_usage = True
    user = await subscriber(db_session, "flaky@example.com", "metered")

    result = await meter.record_completion(user.id, 1, 40)

    assert result.usage_recorded is True
    assert result.billed is False


async def test_no_allowance_and_no_plan_records_nothing(meter, db_session):
    user = await create_user(db_session, "broke@example.com", free_signatures_remaining=0)

    result = await meter.record_completion(user.id, 1, 50)

    assert result.usage_recorded is False
    stats = await meter.get_usage_stats(user)
    assert stats.total_usage == 0
    assert stats.can_send_requests is False


async def test_usage_stats(meter, db_session, owner):
    await meter.record_completion(owner.id, 1, 60)
    await meter.record_completion(owner.id, 1, 61)
    await db_session.refresh(owner)

    stats = await meter.get_usage_stats(owner)

    assert stats.free_signatures_remaining == 3
    assert stats.current_month_usage == 2
    assert stats.current_month_billed == 0
    assert stats.total_usage == 2
    assert stats.plan_type == "free"
    assert stats.can_send_requests is True


async def test_ensure_can_send(meter, db_session, owner):
    await meter.ensure_can_send(owner.id)

    broke = await create_user(db_session, "empty@example.com", free_signatures_remaining=0)
    with pytest.raises(UsageLimitExceededException):
        await meter.ensure_can_send(broke.id)


async def test_can_user_send_rules(db_session):
    lapsed = await create_user(
        db_session, "lapsed@example.com",
        free_signatures_remaining=0, plan_type="unlimited", subscription_status="past_due",
    )
    assert can_user_send(lapsed) is False
    assert can_user_send(await subscriber(db_session, "paid@example.com", "unlimited")) is True


# --- Plan changes ---

async def test_change_plan_rejects_unknown_plan(billing_service, owner):
    with pytest.raises(InvalidPlanException) as exc_info:
        await billing_service.change_plan(owner, "platinum")
    assert exc_info.value.status_code == 400


async def test_change_plan_requires_configured_price(billing_service, owner, monkeypatch):
    monkeypatch.setattr(settings, "stripe_unlimited_price_id", None)
    with pytest.raises(BillingNotConfiguredException):
        await billing_service.change_plan(owner, "unlimited")


async def test_change_plan_creates_customer_and_checkout(
    billing_service, db_session, owner, stripe_client, monkeypatch
):
    monkeypatch.setattr(settings, "stripe_metered_price_id", "price_metered")

    response = await billing_service.change_plan(owner, "metered")

    assert response.checkout_url == "https://checkout.stripe.test/cs_test_1"
    assert stripe_client.checkouts == [(f"cus_{owner.id}", "price_metered", "metered")]
    await db_session.refresh(owner)
    assert owner.stripe_customer_id == f"cus_{owner.id}"


async def test_portal_requires_stripe_customer(billing_service, owner):
    with pytest.raises(StripeCustomerNotFoundException) as exc_info:
        await billing_service.open_portal(owner)
    assert exc_info.value.status_code == 404


async def test_portal_for_existing_customer(billing_service, db_session, owner):
    owner.stripe_customer_id = "cus_existing"
    await db_session.commit()

    response = await billing_service.open_portal(owner)

    assert response.url == "https://billing.stripe.test/cus_existing"


# --- Webhooks ---

def event(event_type, obj):
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}}).encode()


async def test_webhook_rejects_bad_signature(billing_service):
    with pytest.raises(WebhookSignatureException):
        await billing_service.handle_webhook(event("invoice.paid", {"customer": "cus_x"}), "forged")


async def test_unhandled_events_are_acknowledged(billing_service):
    result = await billing_service.handle_webhook(
        event("customer.created", {"id": "cus_1"}), "valid-signature"
    )
    assert result == {"received": True, "handled": False}


async def test_checkout_completed_activates_plan(billing_service, db_session, owner):
    payload = event("checkout.session.completed", {
        "id": "cs_1",
        "customer": {"id": "cus_new"},
        "subscription": "sub_new",
        "metadata": {"user_id": str(owner.id), "plan_type": "unlimited"},
    })

    result = await billing_service.handle_webhook(payload, "valid-signature")

    assert result["handled"] is True
    await db_session.refresh(owner)
    assert (owner.plan_type, owner.subscription_status, owner.subscription_id) == (
        "unlimited", "active", "sub_new"
    )
    assert owner.stripe_customer_id == "cus_new"


async def test_subscription_lifecycle(billing_service, db_session, monkeypatch):
    monkeypatch.setattr(settings, "stripe_unlimited_price_id", "price_unlimited")
    user = await create_user(db_session, "subscriber@example.com", stripe_customer_id="cus_sub")
    items = {"data": [{"price": {"id": "price_unlimited"}}]}

    await billing_service.handle_webhook(event("customer.subscription.created", {
        "id": "sub_1", "customer": "cus_sub", "status": "active", "items": items,
    }), "valid-signature")
    await db_session.refresh(user)
    assert (user.plan_type, user.subscription_id) == ("unlimited", "sub_1")

    await billing_service.handle_webhook(
        event("invoice.payment_failed", {"id": "in_1", "customer": "cus_sub"}), "valid-signature"
    )
    await db_session.refresh(user)
    assert user.subscription_status == "past_due"

    await billing_service.handle_webhook(
        event("invoice.paid", {"id": "in_2", "customer": "cus_sub"}), "valid-signature"
    )
    await db_session.refresh(user)
    assert user.subscription_status == "active"

    await billing_service.handle_webhook(
        event("customer.subscription.deleted", {"id": "sub_1", "customer": "cus_sub"}), "valid-signature"
    )
    await db_session.refresh(user)
    assert (user.plan_type, user.subscription_status, user.subscription_id) == ("free", "canceled", None)


async def test_malformed_handled_event_is_rejected(billing_service):
    with pytest.raises(WebhookSignatureException):
        await billing_service.handle_webhook(
            event("customer.subscription.updated", {"status": "active"}), "valid-signature"
        )
