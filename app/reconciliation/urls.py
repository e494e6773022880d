"""
URL configuration for the reconciliation app.

Routes:
    - POST /webhooks/stitch/ - Stitch webhook endpoint (GET: liveness)
    - POST /webhooks/paystack/ - Paystack webhook endpoint
    - GET /payments/callback/ - Stitch payer redirect
    - GET /subscriptions/callback/ - Paystack checkout redirect
    - POST /payments/ - Initiate payment
    - GET /payments/<id>/ - Payment detail
    - POST /subscriptions/ - Start subscription checkout
    - GET /subscriptions/current/ - Current subscription
    - POST /subscriptions/cancel/ - Cancel subscription

All routes are prefixed with /api/v1/ when included in the main URLconf.
"""

from django.urls import path

from reconciliation import views
from reconciliation.webhooks.callbacks import payment_callback, subscription_callback
from reconciliation.webhooks.views import paystack_webhook, stitch_webhook

app_name = "reconciliation"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/stitch/", stitch_webhook, name="stitch_webhook"),
    path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
    # Redirect callbacks
    path("payments/callback/", payment_callback, name="payment_callback"),
    path(
        "subscriptions/callback/",
        subscription_callback,
        name="subscription_callback",
    ),
    # Payments API
    path("payments/", views.PaymentCreateView.as_view(), name="payment_create"),
    path(
        "payments/<uuid:pk>/",
        views.PaymentDetailView.as_view(),
        name="payment_detail",
    ),
    # Subscriptions API
    path(
        "subscriptions/",
        views.SubscriptionCheckoutView.as_view(),
        name="subscription_checkout",
    ),
    path(
        "subscriptions/current/",
        views.CurrentSubscriptionView.as_view(),
        name="subscription_current",
    ),
    path(
        "subscriptions/cancel/",
        views.CancelSubscriptionView.as_view(),
        name="subscription_cancel",
    ),
]
