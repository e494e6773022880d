import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def _uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Subscription",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "plan_type",
                    models.CharField(
                        choices=[
                            ("bundle", "Bundle (recurring)"),
                            ("custom", "Custom (one-off)"),
                        ],
                        default="bundle",
                        help_text="Recurring bundle or one-off custom plan",
                        max_length=10,
                    ),
                ),
                (
                    "bundle_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Catalogue bundle id (bundle plans)",
                        max_length=32,
                    ),
                ),
                (
                    "requested_capabilities",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Capability ids selected for custom plans",
                    ),
                ),
                (
                    "external_reference",
                    models.CharField(
                        help_text="Checkout reference sent to the billing provider",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "subscription_code",
                    models.CharField(
                        blank=True,
                        help_text="Recurring billing subscription code",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "billing_customer_code",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Billing provider customer code",
                        max_length=100,
                    ),
                ),
                (
                    "billing_email_token",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Token the billing provider requires to disable the subscription",
                        max_length=100,
                    ),
                ),
                (
                    "plan_code",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Billing provider plan code",
                        max_length=100,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Price per billing period in cents"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="ZAR", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("trialing", "Trialing"),
                            ("active", "Active"),
                            ("past_due", "Past Due"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current subscription status",
                        max_length=20,
                    ),
                ),
                (
                    "status_reason",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Why the subscription left its previous status",
                        max_length=255,
                    ),
                ),
                (
                    "started_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the subscription became active",
                        null=True,
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="End of the paid period",
                        null=True,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Subscribing merchant",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "status"], name="subscription_user_status_idx"
                    ),
                    models.Index(
                        fields=["status", "expires_at"],
                        name="subscription_status_exp_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(status__in=["active", "trialing"]),
                        fields=("user",),
                        name="one_live_subscription_per_user",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SubscriptionEntitlement",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                *_timestamps(),
                (
                    "capability",
                    models.CharField(
                        help_text="Capability identifier (e.g. 'inventory', 'bookings')",
                        max_length=50,
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        help_text="Granting subscription",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="entitlements",
                        to="reconciliation.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription Entitlement",
                "verbose_name_plural": "Subscription Entitlements",
                "ordering": ["capability"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("subscription", "capability"),
                        name="unique_subscription_capability",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                *_timestamps(),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Flexible key-value metadata storage",
                    ),
                ),
                _uuid_pk(),
                (
                    "external_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider payment id (unique); lookups from webhooks use this",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "provider",
                    models.CharField(
                        choices=[("stitch", "Stitch"), ("paystack", "Paystack")],
                        default="stitch",
                        help_text="Payment provider collecting the funds",
                        max_length=20,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("customer_payment", "Customer Payment"),
                            ("subscription", "Subscription"),
                        ],
                        default="customer_payment",
                        help_text="What this payment pays for",
                        max_length=20,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Gross amount in cents"),
                ),
                (
                    "commission_percent",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Commission rate applied when the payment was created",
                        max_digits=5,
                    ),
                ),
                (
                    "platform_fee_cents",
                    models.PositiveBigIntegerField(
                        help_text="Platform commission in cents"
                    ),
                ),
                (
                    "merchant_amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount owed to the merchant in cents"
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="ZAR", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current payment status",
                        max_length=20,
                    ),
                ),
                (
                    "status_reason",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Reason reported for cancellation or failure",
                        max_length=255,
                    ),
                ),
                (
                    "order_reference",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Merchant order reference",
                        max_length=64,
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True, help_text="When the payment completed", null=True
                    ),
                ),
                (
                    "merchant",
                    models.ForeignKey(
                        help_text="Merchant the payment belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        blank=True,
                        help_text="Subscription paid for by this payment, if any",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="reconciliation.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["merchant", "status"],
                        name="payment_merchant_status_idx",
                    ),
                    models.Index(
                        fields=["status", "created_at"],
                        name="payment_status_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            amount_cents=models.F("platform_fee_cents")
                            + models.F("merchant_amount_cents")
                        ),
                        name="payment_split_sums_to_gross",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Disbursement",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "external_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider disbursement id",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        help_text="Idempotency nonce sent with the payout instruction",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "bank_code",
                    models.CharField(help_text="Beneficiary bank id", max_length=50),
                ),
                (
                    "account_number",
                    models.CharField(
                        help_text="Beneficiary account number", max_length=20
                    ),
                ),
                (
                    "account_name",
                    models.CharField(help_text="Account holder name", max_length=120),
                ),
                (
                    "account_type",
                    models.CharField(
                        default="current",
                        help_text="current or savings",
                        max_length=10,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Payout amount in cents"),
                ),
                ("currency", models.CharField(default="ZAR", max_length=3)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("submitted", "Submitted"),
                            ("completed", "Completed"),
                            ("error", "Error"),
                            ("paused", "Paused"),
                            ("cancelled", "Cancelled"),
                            ("reversed", "Reversed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current payout status",
                        max_length=20,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Reason given for error, pause, cancellation or reversal",
                    ),
                ),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "payment",
                    models.OneToOneField(
                        help_text="Payment being paid out",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="disbursement",
                        to="reconciliation.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Disbursement",
                "verbose_name_plural": "Disbursements",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="disbursement_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookReceipt",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "provider",
                    models.CharField(
                        choices=[("stitch", "Stitch"), ("paystack", "Paystack")],
                        help_text="Sending provider",
                        max_length=20,
                    ),
                ),
                (
                    "payload_hash",
                    models.CharField(
                        help_text="SHA-256 hex digest of the raw body", max_length=64
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True, help_text="Provider event type", max_length=100
                    ),
                ),
                (
                    "subject_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="External id of the entity the event refers to",
                        max_length=255,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "outcome",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Reconciliation outcome of the last attempt",
                        max_length=32,
                    ),
                ),
                (
                    "attempts",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the body was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Error message if processing failed",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Receipt",
                "verbose_name_plural": "Webhook Receipts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_receipt_status_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("provider", "payload_hash"),
                        name="unique_webhook_body_per_provider",
                    ),
                ],
            },
        ),
    ]
