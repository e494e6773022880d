"""
Celery tasks for reconciliation housekeeping.

This module provides periodic tasks (scheduled through django-celery-beat,
see migration 0002) for:
- Expiring subscriptions whose paid period has ended
- Expiring checkouts that were never paid
- Purging old rows from the webhook idempotency ledger

Usage:
    from reconciliation.tasks import expire_lapsed_subscriptions

    expire_lapsed_subscriptions.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from reconciliation.models import WebhookReceipt
from reconciliation.store import IdempotentStateStore

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Pending checkouts older than this are treated as abandoned
ABANDONED_CHECKOUT_HOURS = 24


# =============================================================================
# Periodic Tasks
# =============================================================================


@shared_task(bind=True)
def expire_lapsed_subscriptions(self) -> dict:
    """
    Hard-expire subscriptions past the end of their paid period.

    Active subscriptions with expires_at in the past become expired, and
    pending checkouts older than ABANDONED_CHECKOUT_HOURS are expired too.
    Cancelled and past-due subscriptions keep their status; access checks
    already stop at expires_at.

    Returns:
        Dict with expired_count and abandoned_count

    Note:
        Idempotent: each update is conditional on the current status.
    """
    now = timezone.now()
    store = IdempotentStateStore()

    expired_count = store.expire_lapsed(now)
    abandoned_count = store.expire_abandoned_checkouts(
        now - timedelta(hours=ABANDONED_CHECKOUT_HOURS)
    )

    if expired_count or abandoned_count:
        logger.info(
            "Expired subscriptions",
            extra={"expired_count": expired_count, "abandoned_count": abandoned_count},
        )
    return {"expired_count": expired_count, "abandoned_count": abandoned_count}


@shared_task(bind=True)
def purge_webhook_receipts(self) -> dict:
    """
    Delete ledger rows older than WEBHOOK_LEDGER_RETENTION_DAYS, whatever
    their status.
    """
    cutoff = timezone.now() - timedelta(days=settings.WEBHOOK_LEDGER_RETENTION_DAYS)
    deleted_count, _ = WebhookReceipt.objects.filter(created_at__lt=cutoff).delete()

    logger.info(
        "Purged webhook receipts",
        extra={"deleted_count": deleted_count, "cutoff": cutoff.isoformat()},
    )
    return {"deleted_count": deleted_count}
