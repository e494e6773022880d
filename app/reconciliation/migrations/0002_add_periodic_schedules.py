"""
Add celery-beat schedules for subscription expiry and ledger cleanup.

- expire_lapsed_subscriptions runs every hour and moves active
  subscriptions whose paid period has ended to expired.
- purge_webhook_receipts runs daily and deletes idempotency ledger rows
  older than WEBHOOK_LEDGER_RETENTION_DAYS.
"""

from django.db import migrations

PERIODIC_TASKS = [
    {
        "name": "Expire Lapsed Subscriptions",
        "task": "reconciliation.tasks.expire_lapsed_subscriptions",
        "every": 1,
        "period": "hours",
        "description": "Moves active subscriptions past expires_at to expired.",
    },
    {
        "name": "Purge Webhook Receipts",
        "task": "reconciliation.tasks.purge_webhook_receipts",
        "every": 1,
        "period": "days",
        "description": "Deletes webhook ledger rows past the retention window.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in PERIODIC_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period=entry["period"],
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in PERIODIC_TASKS],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("reconciliation", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
