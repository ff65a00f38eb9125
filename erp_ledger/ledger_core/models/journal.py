from decimal import Decimal
from django.conf import settings
from django.db import models
from ..exceptions import JournalValidationError
from ..managers import JournalLineManager, TenantManager
from .account import Account
from .entitymembership import Company

JOURNAL_STATUS = [
    # no draft persistence: an entry either posts atomically or does not exist
    ("posted", "Posted"),
]


# Business documents a journal entry can point back to
class ReferenceKind(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    SALES_ORDER = "sales_order", "Sales order"
    PURCHASE_ORDER = "purchase_order", "Purchase order"
    PAYSLIP = "payslip", "Payslip"
    STOCK_ADJUSTMENT = "stock_adjustment", "Stock adjustment"
    EXPENSE = "expense", "Expense"
    SUPPLIER_BILL = "supplier_bill", "Supplier bill"
    BILL_PAYMENT = "bill_payment", "Bill payment"
    CUSTOMER_PAYMENT = "customer_payment", "Customer payment"
    JOURNAL_ENTRY = "journal_entry", "Journal entry"  # reversal of an unbound entry
    NONE = "none", "None"  # manual entries


# Fields the posting engine writes once; nothing may change them afterwards
ENTRY_FROZEN_FIELDS = (
    "company_id", "date", "description", "source", "total", "status",
    "created_by_id", "reference_kind", "reference_id",
    "reference_qualifier", "reference_exclusive", "reversal_of_id",
)
LINE_FROZEN_FIELDS = ("company_id", "journal_id", "account_id", "description", "debit", "credit")


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):  # Represents one balanced accounting event
    """
    Created only by services.posting.post(); append-only afterwards.
    Σ(line.debit) == Σ(line.credit) == total for every persisted row.
    Corrections are new, equal-and-opposite entries (reversal_of).
    """
    # Multi-tenant: every entry belongs to a company
    company = models.ForeignKey(Company, on_delete=models.PROTECT)

    date = models.DateField()  # transaction date, decides the financial month
    description = models.TextField(blank=True, default="")
    # Originating subsystem: "Manual Entry", "Invoice", "Payroll", "Reversal Entry"
    source = models.CharField(max_length=100)
    # Σdebit, written by the posting transaction only
    total = models.DecimalField(max_digits=18, decimal_places=2)
    status = models.CharField(max_length=10, choices=JOURNAL_STATUS, default="posted")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Reference binding: tagged pointer back to the source document
    reference_kind = models.CharField(
        max_length=32, choices=ReferenceKind.choices, default=ReferenceKind.NONE
    )
    reference_id = models.BigIntegerField(null=True, blank=True)
    # distinguishes several derived entries of one document ("revenue", "cogs", "reversal:12")
    reference_qualifier = models.CharField(max_length=64, blank=True, default="")
    # exclusive bindings allow one entry per (company, kind, id, qualifier)
    reference_exclusive = models.BooleanField(default=False)

    # Set on reversal entries; the original is never touched
    reversal_of = models.ForeignKey(
        "self",
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="reversals",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        verbose_name_plural = "journal entries"
        indexes = [
            models.Index(fields=["company", "date"], name="je_company_date_idx"),
            models.Index(fields=["company", "source"], name="je_company_source_idx"),
            models.Index(fields=["company", "reference_kind", "reference_id"], name="je_company_reference_idx"),
        ]
        constraints = [
            # The database half of the duplicate-posting check
            models.UniqueConstraint(
                fields=["company", "reference_kind", "reference_id", "reference_qualifier"],
                condition=models.Q(reference_exclusive=True),
                name="uq_je_exclusive_reference",
            ),
            models.CheckConstraint(
                condition=models.Q(total__gte=0),
                name="je_non_negative_total",
            ),
        ]

    def __str__(self):
        return f"JE {self.pk} {self.date} [{self.source}]"

    @property
    def reference(self):
        from ..services.references import ReferenceBinding
        return ReferenceBinding.from_entry(self)

    # Aggregate all debit and credit amounts across entry's lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    # True if double-entry rule holds and the cached total agrees
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return debit == credit == self.total

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            # Append-only: an existing entry can be re-saved only unchanged
            orig = JournalEntry.objects.filter(pk=self.pk).values(*ENTRY_FROZEN_FIELDS).first()
            if orig and any(orig[f] != getattr(self, f) for f in ENTRY_FROZEN_FIELDS):
                raise JournalValidationError(
                    "Cannot modify a posted JournalEntry. Post a reversal instead."
                )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise JournalValidationError(
            "Posted journal entries cannot be deleted. Post a reversal instead."
        )


class JournalLine(models.Model):  # Stores Lines ( credits / debits )
    """
    One debit-or-credit row of an entry, tied to one account of the same company.
    Amounts never change; only the reconciliation flag and timestamp do,
    through services.reconciliation.
    """

    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    journal = models.ForeignKey(
        JournalEntry,
        on_delete=models.PROTECT,
        related_name="lines",
    )

    # Must point to one Account (can't delete account if lines exist → PROTECT)
    account = models.ForeignKey(Account, on_delete=models.PROTECT)

    # memo
    description = models.CharField(max_length=400, blank=True, default="")

    debit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    # set by the bank-matching collaborator only
    is_reconciled = models.BooleanField(default=False)
    reconciled_at = models.DateTimeField(null=True, blank=True)

    objects = JournalLineManager()  # Enforce tenant scoping

    class Meta:
        indexes = [
            models.Index(fields=["company", "account"], name="jl_company_account_idx"),
            models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
            models.Index(fields=["company", "account", "is_reconciled"], name="jl_company_acct_recon_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="jl_non_negative_amounts",
            ),
            # exactly one side non-zero
            models.CheckConstraint(
                condition=(
                    (models.Q(debit=0) & models.Q(credit__gt=0)) |
                    (models.Q(credit=0) & models.Q(debit__gt=0))
                ),
                name="jl_debit_xor_credit",
            ),
        ]

    def __str__(self):
        return f"{self.journal_id} | {self.account.code} {self.account.name} | D:{self.debit} C:{self.credit}"

    @property
    def signed_amount(self):
        """debit - credit"""
        return self.debit - self.credit

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            orig = JournalLine.objects.filter(pk=self.pk).values(*LINE_FROZEN_FIELDS).first()
            if orig and any(orig[f] != getattr(self, f) for f in LINE_FROZEN_FIELDS):
                raise JournalValidationError(
                    "Cannot modify JournalLine: parent JournalEntry is posted."
                )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise JournalValidationError(
            "Cannot delete JournalLine: parent JournalEntry is posted."
        )
