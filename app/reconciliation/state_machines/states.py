"""
State enums for reconciliation models.

These are Django TextChoices for database storage and admin integration.
Legal moves between states are defined once, in
reconciliation.state_machines.transitions.

State Machines Overview:

Payment States:
    pending → completed | cancelled | failed (all terminal)

Subscription States:
    pending/trialing → active → past_due | cancelled | expired
    past_due → cancelled
    pending/trialing → cancelled | expired (abandoned checkout)

Disbursement States:
    pending → submitted | error (local initiation)
    submitted → completed | error | paused | cancelled | reversed
    paused → completed | cancelled
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment lifecycle.

    Terminal states: COMPLETED, CANCELLED, FAILED
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    FAILED = "failed", "Failed"


class SubscriptionStatus(models.TextChoices):
    """
    States for the Subscription lifecycle.

    Terminal states: CANCELLED, EXPIRED

    CANCELLED keeps access until expires_at (end of the paid period).
    """

    PENDING = "pending", "Pending"
    TRIALING = "trialing", "Trialing"
    ACTIVE = "active", "Active"
    PAST_DUE = "past_due", "Past Due"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class DisbursementStatus(models.TextChoices):
    """
    States for the Disbursement (merchant payout) lifecycle.

    Terminal states: COMPLETED, ERROR, CANCELLED, REVERSED

    PENDING is the short window between the local row being created and the
    provider accepting the payout instruction.
    """

    PENDING = "pending", "Pending"
    SUBMITTED = "submitted", "Submitted"
    COMPLETED = "completed", "Completed"
    ERROR = "error", "Error"
    PAUSED = "paused", "Paused"
    CANCELLED = "cancelled", "Cancelled"
    REVERSED = "reversed", "Reversed"


class Provider(models.TextChoices):
    """External payment providers."""

    STITCH = "stitch", "Stitch"
    PAYSTACK = "paystack", "Paystack"


class PaymentKind(models.TextChoices):
    """What a payment pays for."""

    CUSTOMER_PAYMENT = "customer_payment", "Customer Payment"
    SUBSCRIPTION = "subscription", "Subscription"


class PlanType(models.TextChoices):
    """Subscription plan types."""

    BUNDLE = "bundle", "Bundle (recurring)"
    CUSTOM = "custom", "Custom (one-off)"


class EventCategory(models.TextChoices):
    """Category of a normalized webhook event."""

    PAYMENT = "payment", "Payment"
    DISBURSEMENT = "disbursement", "Disbursement"
    SUBSCRIPTION = "subscription", "Subscription"
    CHARGE = "charge", "Charge"
    NOOP = "noop", "No-op"


class WebhookReceiptStatus(models.TextChoices):
    """
    Processing status of a received webhook body.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED → PROCESSING (provider retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
