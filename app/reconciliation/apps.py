"""
Reconciliation app configuration.

This app reconciles Stitch and Paystack events against local payments,
subscriptions and merchant disbursements.
"""

from django.apps import AppConfig


class ReconciliationConfig(AppConfig):
    """Configuration for the reconciliation application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "reconciliation"
    verbose_name = "Reconciliation"
