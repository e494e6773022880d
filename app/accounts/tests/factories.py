"""
Factory Boy factories for account test data.

Usage:
    from accounts.tests.factories import UserFactory, MerchantFactory

    user = UserFactory()

    # Merchant with verified payout details on the auto-created profile
    merchant = MerchantFactory()
    merchant.merchant_profile.has_payout_details  # True
"""

import factory

from accounts.models import MerchantProfile


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for User instances; the profile comes from the post_save signal."""

    class Meta:
        model = "accounts.User"
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"merchant{n}@example.com")
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


class MerchantFactory(UserFactory):
    """
    User whose merchant profile carries verified payout details.

    Override profile fields with the payout_details__ prefix, e.g.
    MerchantFactory(payout_details__bank_details_verified=False).
    """

    @factory.post_generation
    def payout_details(obj, create, extracted, **kwargs):
        if not create:
            return
        details = {
            "business_name": "Corner Spaza",
            "bank_code": "fnb",
            "account_number": "62000000001",
            "account_name": "Corner Spaza (Pty) Ltd",
            "account_type": MerchantProfile.AccountType.CURRENT,
            "bank_details_verified": True,
        }
        details.update(kwargs)
        MerchantProfile.objects.filter(user=obj).update(**details)
        obj.merchant_profile.refresh_from_db()
