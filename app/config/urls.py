"""
URL configuration for the merchant reconciliation service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/                       - Reconciliation endpoints
        payments/                  - Initiate a pay-by-bank payment (POST)
        payments/{id}/             - Payment detail with split and payout
        payments/callback/         - Stitch redirect callback (GET)
        subscriptions/             - Start a subscription checkout (POST)
        subscriptions/current/     - Current subscription and entitlements
        subscriptions/cancel/      - Request cancellation of the recurring plan
        subscriptions/callback/    - Paystack checkout redirect (GET)
        webhooks/stitch/           - Stitch webhook endpoint (POST)
        webhooks/paystack/         - Paystack webhook endpoint (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    path("", include("reconciliation.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Reconciliation Admin"
admin.site.site_title = "Reconciliation Admin"
admin.site.index_title = "Payments, subscriptions and payouts"
