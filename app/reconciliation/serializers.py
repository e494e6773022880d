"""
DRF serializers for the reconciliation API.

Request serializers validate input only; business rules (catalogue
lookups, pricing) live in the services. Response serializers are
read-only views of the models.

Related files:
    - views.py: API views
    - services/: PaymentService, SubscriptionService
"""

from __future__ import annotations

from rest_framework import serializers

from reconciliation.catalog import BUNDLES, CAPABILITIES
from reconciliation.models import Disbursement, Payment, Subscription
from reconciliation.state_machines import PlanType


# =============================================================================
# Payments
# =============================================================================


class InitiatePaymentSerializer(serializers.Serializer):
    """
    Request body for POST /api/v1/payments/.

    Fields:
        amount_cents: Gross amount in cents (at least R1.00)
        order_reference: Merchant's own order reference (optional)
    """

    amount_cents = serializers.IntegerField(min_value=100)
    order_reference = serializers.CharField(
        max_length=64, required=False, allow_blank=True, default=""
    )


class DisbursementSerializer(serializers.ModelSerializer):
    class Meta:
        model = Disbursement
        fields = [
            "id",
            "status",
            "amount_cents",
            "currency",
            "failure_reason",
            "submitted_at",
            "completed_at",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Payment with its commission split and payout, if any."""

    redirect_url = serializers.SerializerMethodField()
    disbursement = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "external_id",
            "status",
            "status_reason",
            "amount_cents",
            "commission_percent",
            "platform_fee_cents",
            "merchant_amount_cents",
            "currency",
            "order_reference",
            "redirect_url",
            "disbursement",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields

    def get_redirect_url(self, obj: Payment) -> str | None:
        return obj.get_meta("redirect_url")

    def get_disbursement(self, obj: Payment) -> dict | None:
        disbursement = Disbursement.objects.filter(payment=obj).first()
        if disbursement is None:
            return None
        return DisbursementSerializer(disbursement).data


# =============================================================================
# Subscriptions
# =============================================================================


class StartCheckoutSerializer(serializers.Serializer):
    """
    Request body for POST /api/v1/subscriptions/.

    Bundle plans need ``bundle_id``; custom plans need ``capabilities``.
    """

    plan_type = serializers.ChoiceField(choices=PlanType.choices)
    bundle_id = serializers.ChoiceField(choices=sorted(BUNDLES), required=False)
    capabilities = serializers.ListField(
        child=serializers.ChoiceField(choices=sorted(CAPABILITIES)),
        required=False,
        allow_empty=False,
    )

    def validate(self, attrs):
        if attrs["plan_type"] == PlanType.BUNDLE and not attrs.get("bundle_id"):
            raise serializers.ValidationError(
                {"bundle_id": ["This field is required for bundle plans."]}
            )
        if attrs["plan_type"] == PlanType.CUSTOM and not attrs.get("capabilities"):
            raise serializers.ValidationError(
                {"capabilities": ["This field is required for custom plans."]}
            )
        return attrs


class CheckoutSessionSerializer(serializers.Serializer):
    subscription_id = serializers.UUIDField(source="subscription.id")
    authorization_url = serializers.URLField()
    reference = serializers.CharField()
    amount_cents = serializers.IntegerField()


class SubscriptionSerializer(serializers.ModelSerializer):
    capabilities = serializers.ListField(child=serializers.CharField(), read_only=True)
    provides_access = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            "id",
            "plan_type",
            "bundle_id",
            "amount_cents",
            "currency",
            "status",
            "started_at",
            "expires_at",
            "capabilities",
            "provides_access",
        ]
        read_only_fields = fields

    def get_provides_access(self, obj: Subscription) -> bool:
        return obj.provides_access()
