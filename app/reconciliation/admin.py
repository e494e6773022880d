"""
Reconciliation admin configuration.

Statuses and commission splits are read-only here: they only move through
the state store's conditional updates.
"""

from django.contrib import admin

from reconciliation.models import (
    Disbursement,
    Payment,
    Subscription,
    SubscriptionEntitlement,
    WebhookReceipt,
)

__all__ = [
    "DisbursementAdmin",
    "PaymentAdmin",
    "SubscriptionAdmin",
    "WebhookReceiptAdmin",
]


class DisbursementInline(admin.StackedInline):
    model = Disbursement
    extra = 0
    can_delete = False
    readonly_fields = [
        "id",
        "external_id",
        "reference",
        "status",
        "amount_cents",
        "bank_code",
        "account_number",
        "account_name",
        "account_type",
        "failure_reason",
        "submitted_at",
        "completed_at",
    ]
    fields = readonly_fields


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into payment status, the stored split and the
    payout attached to it.
    """

    list_display = [
        "id",
        "merchant",
        "kind",
        "status",
        "amount_cents",
        "platform_fee_cents",
        "merchant_amount_cents",
        "created_at",
    ]
    list_filter = ["status", "kind", "provider", "created_at"]
    search_fields = ["id", "external_id", "order_reference", "merchant__email"]
    readonly_fields = [
        "id",
        "external_id",
        "provider",
        "kind",
        "merchant",
        "subscription",
        "amount_cents",
        "commission_percent",
        "platform_fee_cents",
        "merchant_amount_cents",
        "currency",
        "status",
        "status_reason",
        "completed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [DisbursementInline]

    fieldsets = (
        (None, {"fields": ("id", "external_id", "provider", "kind", "merchant")}),
        ("Status", {"fields": ("status", "status_reason", "completed_at")}),
        (
            "Amounts",
            {
                "fields": (
                    "amount_cents",
                    "commission_percent",
                    "platform_fee_cents",
                    "merchant_amount_cents",
                    "currency",
                ),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("order_reference", "subscription", "metadata"),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {"fields": ("created_at", "updated_at"), "classes": ("collapse",)},
        ),
    )


@admin.register(Disbursement)
class DisbursementAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "payment",
        "status",
        "amount_cents",
        "submitted_at",
        "completed_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "external_id", "reference", "payment__id"]
    readonly_fields = DisbursementInline.readonly_fields + [
        "payment",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]


class SubscriptionEntitlementInline(admin.TabularInline):
    model = SubscriptionEntitlement
    extra = 0
    can_delete = False
    readonly_fields = ["capability", "created_at"]


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "user",
        "plan_type",
        "bundle_id",
        "status",
        "expires_at",
        "created_at",
    ]
    list_filter = ["status", "plan_type", "bundle_id"]
    search_fields = [
        "id",
        "user__email",
        "external_reference",
        "subscription_code",
        "billing_customer_code",
    ]
    readonly_fields = [
        "id",
        "user",
        "plan_type",
        "bundle_id",
        "requested_capabilities",
        "external_reference",
        "subscription_code",
        "billing_customer_code",
        "plan_code",
        "amount_cents",
        "status",
        "status_reason",
        "started_at",
        "expires_at",
        "created_at",
        "updated_at",
    ]
    exclude = ["billing_email_token"]
    ordering = ["-created_at"]
    inlines = [SubscriptionEntitlementInline]


@admin.register(WebhookReceipt)
class WebhookReceiptAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookReceipt.

    Provides visibility into webhook processing status.
    Receipts are immutable once received.
    """

    list_display = [
        "id",
        "provider",
        "event_type",
        "subject_id",
        "status",
        "outcome",
        "attempts",
        "created_at",
    ]
    list_filter = ["provider", "status", "outcome", "created_at"]
    search_fields = ["id", "subject_id", "event_type", "payload_hash"]
    readonly_fields = [
        "id",
        "provider",
        "payload_hash",
        "event_type",
        "subject_id",
        "status",
        "outcome",
        "attempts",
        "processed_at",
        "error_message",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
