"""
Account models.

This module defines:
- User: Custom user model with email-based authentication
- MerchantProfile: Business identity and payout bank details (OneToOne with User)

Related files:
    - managers.py: Custom user manager for email-based creation
    - signals.py: Auto-create merchant profile on user creation

Payout details are only used for disbursements once an operator (or a bank
account verification check) has marked them verified.
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.validators import RegexValidator
from django.db import models

from accounts.managers import UserManager
from core.models import BaseModel


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        email_verified: Whether the user's email has been verified
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    email_verified = models.BooleanField(
        default=False,
        help_text="Whether the user's email has been verified",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email


class MerchantProfile(BaseModel):
    """
    Merchant business identity and payout destination.

    Created automatically for every user. Bank details are filled in during
    onboarding and verified before any disbursement is attempted.

    Fields:
        business_name: Trading name, fallback payout account name
        bank_code: Stitch bank identifier (e.g. "fnb", "absa")
        account_number: Beneficiary account number
        account_name: Account holder name as the bank knows it
        account_type: current or savings
        bank_details_verified: Whether the details passed verification
    """

    class AccountType(models.TextChoices):
        CURRENT = "current", "Current"
        SAVINGS = "savings", "Savings"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="merchant_profile",
        help_text="Merchant this profile belongs to",
    )

    business_name = models.CharField(
        max_length=120,
        blank=True,
        default="",
        help_text="Trading name shown to customers",
    )

    bank_code = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Stitch bank identifier (e.g. 'fnb', 'standard_bank')",
    )

    account_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        validators=[
            RegexValidator(r"^\d*$", "Account number may only contain digits."),
        ],
        help_text="Beneficiary bank account number",
    )

    account_name = models.CharField(
        max_length=120,
        blank=True,
        default="",
        help_text="Account holder name",
    )

    account_type = models.CharField(
        max_length=10,
        choices=AccountType.choices,
        default=AccountType.CURRENT,
        help_text="Bank account type",
    )

    bank_details_verified = models.BooleanField(
        default=False,
        help_text="Whether the payout account passed verification",
    )

    class Meta:
        verbose_name = "Merchant Profile"
        verbose_name_plural = "Merchant Profiles"
        ordering = ["-created_at"]

    def __str__(self):
        return f"MerchantProfile({self.user_id}, {self.business_name or '-'})"

    @property
    def has_payout_details(self) -> bool:
        """Verified bank code and account number are on file."""
        return bool(
            self.bank_details_verified and self.bank_code and self.account_number
        )

    @property
    def payout_account_name(self) -> str:
        """Account holder name used on disbursements."""
        return self.account_name or self.business_name or "Merchant"

    @property
    def payout_account_type(self) -> str:
        """Account type for disbursements; unknown values fall back to current."""
        if self.account_type in self.AccountType.values:
            return self.account_type
        return self.AccountType.CURRENT
