"""
DRF views for the reconciliation API.

Endpoints:
    POST /api/v1/payments/ - Initiate a pay-by-bank payment
    GET /api/v1/payments/{id}/ - Payment detail with split and payout
    POST /api/v1/subscriptions/ - Start a subscription checkout
    GET /api/v1/subscriptions/current/ - Current subscription and entitlements
    POST /api/v1/subscriptions/cancel/ - Cancel the current subscription

Webhooks and redirect callbacks live in reconciliation.webhooks.

Security:
    - All endpoints require an authenticated session
    - Payments are only visible to the merchant that created them
"""

from __future__ import annotations

import logging

from django.urls import reverse
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from reconciliation.serializers import (
    CheckoutSessionSerializer,
    InitiatePaymentSerializer,
    PaymentSerializer,
    StartCheckoutSerializer,
    SubscriptionSerializer,
)
from reconciliation.services import PaymentService, SubscriptionService

logger = logging.getLogger(__name__)

# Service error codes that mean "the provider let us down" rather than
# "the request was wrong"
UPSTREAM_ERROR_CODES = frozenset(
    {
        "PROVIDER_ERROR",
        "PROVIDER_NOT_CONFIGURED",
        "DOWNSTREAM_FAILURE",
        "VERIFICATION_FAILED",
        "PLAN_NOT_CONFIGURED",
    }
)


def _failure_status(error_code: str | None) -> int:
    if error_code == "NOT_FOUND":
        return status.HTTP_404_NOT_FOUND
    if error_code == "INVALID_STATE":
        return status.HTTP_409_CONFLICT
    if error_code in UPSTREAM_ERROR_CODES:
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST


class PaymentCreateView(APIView):
    """
    Initiate a customer payment.

    POST /api/v1/payments/
        Creates a pending payment and a Stitch payment request. The
        response carries the redirect_url the payer should be sent to.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="initiate_payment",
        summary="Initiate payment",
        request=InitiatePaymentSerializer,
        responses={
            201: OpenApiResponse(
                response=PaymentSerializer, description="Payment created"
            ),
            400: OpenApiResponse(description="Validation error"),
            502: OpenApiResponse(description="Payment provider unavailable"),
        },
        tags=["Payments"],
    )
    def post(self, request):
        serializer = InitiatePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = PaymentService.initiate_payment(
            request.user,
            serializer.validated_data["amount_cents"],
            order_reference=serializer.validated_data["order_reference"],
        )
        if not result.success:
            return Response(
                result.to_response(), status=_failure_status(result.error_code)
            )

        return Response(
            PaymentSerializer(result.data).data, status=status.HTTP_201_CREATED
        )


class PaymentDetailView(APIView):
    """
    GET /api/v1/payments/{id}/

    Response:
        200 OK: Payment details
        404 Not Found: Unknown payment or owned by another merchant
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment",
        summary="Get payment details",
        responses={
            200: OpenApiResponse(response=PaymentSerializer, description="Payment"),
            404: OpenApiResponse(description="Payment not found"),
        },
        tags=["Payments"],
    )
    def get(self, request, pk):
        result = PaymentService.get_payment(request.user, pk)
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_404_NOT_FOUND)
        return Response(PaymentSerializer(result.data).data)


class SubscriptionCheckoutView(APIView):
    """
    Start a Paystack checkout for a bundle or custom plan.

    POST /api/v1/subscriptions/

    Request body:
        {"plan_type": "bundle", "bundle_id": "growth"}
        {"plan_type": "custom", "capabilities": ["inventory", "bookings"]}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="start_subscription_checkout",
        summary="Start subscription checkout",
        request=StartCheckoutSerializer,
        responses={
            201: OpenApiResponse(
                response=CheckoutSessionSerializer,
                description="Checkout started; redirect to authorization_url",
            ),
            400: OpenApiResponse(description="Invalid plan"),
            502: OpenApiResponse(description="Billing provider unavailable"),
        },
        tags=["Subscriptions"],
    )
    def post(self, request):
        serializer = StartCheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        result = SubscriptionService.start_checkout(
            request.user,
            data["plan_type"],
            bundle_id=data.get("bundle_id"),
            capabilities=data.get("capabilities"),
            callback_url=request.build_absolute_uri(
                reverse("reconciliation:subscription_callback")
            ),
        )
        if not result.success:
            return Response(
                result.to_response(), status=_failure_status(result.error_code)
            )

        return Response(
            CheckoutSessionSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class CurrentSubscriptionView(APIView):
    """
    GET /api/v1/subscriptions/current/

    Always returns 200. ``subscription`` is null for merchants on the free
    tier; ``capabilities`` lists everything the merchant may use right now.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_current_subscription",
        summary="Current subscription and entitlements",
        tags=["Subscriptions"],
    )
    def get(self, request):
        subscription = SubscriptionService.current_subscription(request.user)
        return Response(
            {
                "subscription": (
                    SubscriptionSerializer(subscription).data if subscription else None
                ),
                "capabilities": SubscriptionService.entitled_capabilities(request.user),
            }
        )


class CancelSubscriptionView(APIView):
    """
    POST /api/v1/subscriptions/cancel/

    Recurring plans are disabled at Paystack and flip to cancelled when the
    confirming webhook arrives; the response reflects the status at the
    time of the request.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_subscription",
        summary="Cancel subscription",
        request=None,
        responses={
            202: OpenApiResponse(
                response=SubscriptionSerializer, description="Cancellation requested"
            ),
            404: OpenApiResponse(description="No active subscription"),
            502: OpenApiResponse(description="Billing provider unavailable"),
        },
        tags=["Subscriptions"],
    )
    def post(self, request):
        result = SubscriptionService.request_cancellation(request.user)
        if not result.success:
            return Response(
                result.to_response(), status=_failure_status(result.error_code)
            )
        return Response(
            SubscriptionSerializer(result.data).data,
            status=status.HTTP_202_ACCEPTED,
        )
