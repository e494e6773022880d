"""
Admin configuration for accounts.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import MerchantProfile, User


class MerchantProfileInline(admin.StackedInline):
    model = MerchantProfile
    can_delete = False
    fk_name = "user"


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin for the email-identified user model."""

    ordering = ["-date_joined"]
    list_display = ["email", "email_verified", "is_active", "is_staff", "date_joined"]
    list_filter = ["is_active", "is_staff", "email_verified"]
    search_fields = ["email"]
    readonly_fields = ["date_joined", "updated_at", "last_login"]
    inlines = [MerchantProfileInline]

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Status", {"fields": ("email_verified", "is_active", "is_staff", "is_superuser")}),
        ("Permissions", {"fields": ("groups", "user_permissions"), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("date_joined", "updated_at", "last_login")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": ("email", "password1", "password2")}),
    )


@admin.register(MerchantProfile)
class MerchantProfileAdmin(admin.ModelAdmin):
    """Ops view of payout destinations; verification is toggled here."""

    list_display = [
        "user",
        "business_name",
        "bank_code",
        "account_type",
        "bank_details_verified",
    ]
    list_filter = ["bank_details_verified", "account_type", "bank_code"]
    search_fields = ["user__email", "business_name", "account_name"]
    raw_id_fields = ["user"]
