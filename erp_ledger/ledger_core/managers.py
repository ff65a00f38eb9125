from django.db import models
from django.contrib.auth.base_user import BaseUserManager

from .exceptions import AccountInUseError

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):         # Add queryset helper
        return self.filter(company=company)  # Apply filter

    def active(self, company):
        return self.filter(
                            company=company,  # enforce tenant scoping
                            is_active=True    # only fetch active records
                        )
    # Enables query:
    # Account.objects.active(request.company)


# Attach TenantQuerySet to .objects
class TenantManager(BaseUserManager):  # BaseUserManager so the custom User can share it

    def get_queryset(self):  # every model gets TenantQuerySet (.for_company() always available)
        return TenantQuerySet(self.model, using=self._db)

    def for_company(self, company):  # can call for_company() directly on objects
        return self.get_queryset().for_company(company)

    def active(self, company):
        return self.get_queryset().active(company)

    """ Enforce rules around how users are created """

    use_in_migrations = True  # Allow Django to serialize this manager in migrations

    # Shared logic for both create_user() & create_superuser()
    def _create_user(self, username, email, password, **extra_fields):
        if not username:  # Username is required
            raise ValueError("The given username must be set")
        email = self.normalize_email(email)
        user = self.model(username=username, email=email, **extra_fields)
        user.set_password(password)  # Password is hashed
        user.save(using=self._db)
        return user

    # Used when you call User.objects.create_user(...)
    def create_user(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(username, email, password, **extra_fields)

    # Used by Django when running `createsuperuser`
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        if extra_fields.get("is_staff") is not True or extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_staff=True and is_superuser=True")
        return self._create_user(username, email, password, **extra_fields)


# Lines are read through their journal entry's posting state
class JournalLineQuerySet(TenantQuerySet):
    def unreconciled(self):
        return self.filter(is_reconciled=False)

    def up_to(self, as_of):
        # lines dated on or before as_of (date lives on the entry header)
        if as_of is None:
            return self
        return self.filter(journal__date__lte=as_of)


class JournalLineManager(TenantManager):
    def get_queryset(self):
        return JournalLineQuerySet(self.model, using=self._db)

    def up_to(self, as_of):
        return self.get_queryset().up_to(as_of)


# Bulk deletes get the same guard as Account.delete()
class AccountQuerySet(TenantQuerySet):
    def delete(self):
        from .models import JournalLine  # models import this module

        used = sorted(
            JournalLine.objects.filter(account__in=self)
            .values_list("account__code", flat=True)
            .order_by()
            .distinct()
        )
        if used:
            raise AccountInUseError(
                f"Accounts {', '.join(used)} have journal lines; deactivate them instead."
            )
        return super().delete()


class AccountManager(TenantManager):
    def get_queryset(self):
        return AccountQuerySet(self.model, using=self._db)
