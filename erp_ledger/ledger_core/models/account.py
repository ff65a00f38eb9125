from django.db import models
from ..exceptions import AccountInUseError
from ..managers import AccountManager
from .entitymembership import Company


# Classify general ledger accounts
class AccountType(models.TextChoices):
    ASSET = "asset", "Asset"
    LIABILITY = "liability", "Liability"
    EQUITY = "equity", "Equity"
    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"


# Which side of the ledger increases the account
class NormalSide(models.TextChoices):
    DEBIT = "debit", "Debit"
    CREDIT = "credit", "Credit"


# Assets/Expenses → Debit, Liabilities/Equity/Revenue → Credit
DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def normal_side_for(ac_type):
    """Normal balance side is a pure function of the account type."""
    if ac_type in DEBIT_NORMAL_TYPES:
        return NormalSide.DEBIT
    return NormalSide.CREDIT


class Account(models.Model):
    """
    Ledger account in a company's chart of accounts.
    - code and name are unique per company
    - ac_type decides the normal balance side
    - subtype is a free-form reporting classifier (asset_cash, liability_payable, ...)
    - accounts are soft-disabled, never deleted once they carry lines
    """

    company = models.ForeignKey(  # Each account belongs to one company
        Company,
        on_delete=models.PROTECT,  # never drop a chart of accounts with the company
    )
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=200)  # "Cash on Hand", "Accounts Payable"

    ac_type = models.CharField(
        max_length=10,
        choices=AccountType.choices,
    )
    subtype = models.CharField(max_length=64, blank=True, default="")
    description = models.CharField(max_length=255, blank=True, default="")

    # "soft deactivate" accounts (hide in UI, stop new postings)
    # without deleting history
    is_active = models.BooleanField(default=True)
    # created by onboarding (default chart) rather than by hand
    is_system = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = AccountManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "ac_type"], name="acct_company_type_idx"),
            models.Index(fields=["company", "subtype"], name="acct_company_subtype_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            ),
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_account_name"
            ),
        ]
        ordering = ("company", "code")

    def __str__(self):
        return f"{self.company.slug}:{self.code} – {self.name}"
        # Example: "acme:1000 – Cash".

    @property
    def normal_side(self):
        return normal_side_for(self.ac_type)

    @property
    def is_debit_normal(self):
        return self.normal_side == NormalSide.DEBIT

    def has_lines(self):
        return self.journalline_set.exists()

    def delete(self, *args, **kwargs):
        # history stays attached to the account; deactivate instead
        if self.pk and self.has_lines():
            raise AccountInUseError(
                f"Account {self.code} has journal lines; deactivate it instead."
            )
        return super().delete(*args, **kwargs)
