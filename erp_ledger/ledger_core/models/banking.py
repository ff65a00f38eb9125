from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account
from .entitymembership import Company
from .journal import JournalLine


# ---------- Bank statement (reconciliation aid) ----------
class BankStatementLine(models.Model):
    """
    One line of an imported bank statement for a cash/bank ledger account.
    debit = money out of the bank, credit = money in (bank's point of view).
    Matching links it to a ledger line; amounts are never altered.
    """
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    # ledger account the statement belongs to (asset_cash subtype)
    account = models.ForeignKey(Account, on_delete=models.PROTECT)
    date = models.DateField()
    description = models.CharField(max_length=400, blank=True, default="")
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    is_matched = models.BooleanField(default=False)
    matched_at = models.DateTimeField(null=True, blank=True)
    matched_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="matched_statement_lines",
    )
    # many statement lines → zero-or-one ledger line
    journal_line = models.ForeignKey(
        JournalLine,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="bank_statement_lines",
    )

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "account", "is_matched"], name="bsl_company_acct_match_idx"),
            models.Index(fields=["company", "date"], name="bsl_company_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="bsl_non_negative_amounts",
            ),
        ]
        ordering = ("date", "id")

    def __str__(self):
        return f"{self.account.code} {self.date} D:{self.debit} C:{self.credit}"

    @property
    def net_amount(self):
        """Money into the bank (credit - debit)."""
        return self.credit - self.debit

    def clean(self):
        # Tenancy check: statement account must be the same company's
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError("Account must belong to the same company.")
        if self.debit < 0 or self.credit < 0:
            raise ValidationError("Debit and credit must be >= 0")
        if self.journal_line_id and self.journal_line.company_id != self.company_id:
            raise ValidationError("Matched journal line must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
