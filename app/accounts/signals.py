"""
Django signals for accounts.

Auto-creates a MerchantProfile when a User is created.

Usage:
    Signals are automatically connected when the app is ready.
    See apps.py for the import that triggers connection.
"""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_merchant_profile(sender, instance, created, **kwargs):
    """Create an empty MerchantProfile for newly created users."""
    if created:
        from accounts.models import MerchantProfile

        MerchantProfile.objects.get_or_create(user=instance)
        logger.debug(f"Merchant profile created for user: {instance.email}")
