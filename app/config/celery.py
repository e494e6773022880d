"""
Celery configuration for the reconciliation service.

Celery runs the periodic housekeeping of the reconciliation engine:
- Hard expiry of subscriptions whose paid period has lapsed
- Pruning of the webhook idempotency ledger

Schedules live in the database (django-celery-beat) and are seeded by the
reconciliation app's migrations. Redis is both broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    from reconciliation.tasks import expire_lapsed_subscriptions

    expire_lapsed_subscriptions.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
