from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.text import slugify
from ..managers import TenantManager


# ---------- Tenant / Company ----------
class Company(models.Model):

    """Tenant / Organization. Every ledger row carries a company key."""
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Link to a user account (creator or admin of company)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="owned_companies",
    )

    # Functional currency of the books (single-currency ledger)
    currency_code = models.CharField(max_length=10, default="USD")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # derive slug from name when the caller didn't pick one
        if not self.slug:
            self.slug = slugify(self.name)[:80] or "company"
        return super().save(*args, **kwargs)


# ---------- Custom User ----------
class User(AbstractUser):
    """
    AUTH_USER_MODEL = "ledger_core.User".
    Referenced as creator of entries, closer of months and matcher of bank lines.
    """
    # The company the user lands in when no other company is selected
    default_company = models.ForeignKey(
        "Company",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="default_users",
    )

    objects = TenantManager()

    class Meta:
        indexes = [models.Index(fields=["default_company"], name="user_default_company_idx")]

    def __str__(self):
        return self.get_full_name() or self.username


# ---------- EntityMembership ----------
class EntityMembership(models.Model):  # join model between User and Company

    ROLE_CHOICES = [
        ("owner", "Owner"),
        ("admin", "Admin"),
        ("accountant", "Accountant"),  # can post journals and close months
        ("viewer", "Viewer"),  # read-only access
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    company = models.ForeignKey(
        "Company", on_delete=models.CASCADE, related_name="memberships"
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="viewer")

    # Suspend access without deleting the record
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"], name="uq_user_company_membership"
            ),
        ]
        indexes = [
            models.Index(fields=["company", "user"], name="membership_company_user_idx"),
        ]

    def __str__(self):
        return f"{self.user} @ {self.company} ({self.role})"

    def clean(self):
        """
        A user's default company must be one of their memberships.
        The membership being validated counts, so the first membership
        can point at the default company.
        """
        if self.user_id and self.user.default_company_id:
            company_ids = set(
                self.user.memberships.exclude(pk=self.pk).values_list("company_id", flat=True)
            )
            company_ids.add(self.company_id)
            if self.user.default_company_id not in company_ids:
                raise ValidationError(
                    f"Default company {self.user.default_company} must be a user's membership."
                )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
