# signfast/billing/exceptions.py

"""
Custom exceptions for the Billing module.
"""

from signfast.core.exceptions import (
    CollaboratorException, NotFoundException, PaymentRequiredException, ValidationException,
)


class UsageLimitExceededException(PaymentRequiredException):
    """Raised when an owner without allowance or active plan tries to send"""
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(
            "No free signatures remaining and no active subscription. "
            "Please upgrade your plan to send signature requests."
        )


class InvalidPlanException(ValidationException):
    """Raised when a plan change names an unknown plan"""
    def __init__(self, plan_type: str):
        self.plan_type = plan_type
        super().__init__(f"Invalid plan type '{plan_type}'. Choose 'metered' or 'unlimited'.")


class BillingNotConfiguredException(ValidationException):
    """Raised when a Stripe setting needed for the operation is missing"""
    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"Billing is not configured: {setting} is missing")


class WebhookSignatureException(ValidationException):
    """Raised when a webhook payload fails signature verification"""
    def __init__(self, reason: str):
        super().__init__(f"Invalid webhook: {reason}")


class BillingProviderException(CollaboratorException):
    """Raised when a Stripe API call fails"""
    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(f"Payment provider error during {operation}: {reason}")


class StripeCustomerNotFoundException(NotFoundException):
    """Raised when opening the billing portal for a user Stripe does not know"""
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__("No Stripe customer found")
