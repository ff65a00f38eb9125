import calendar
import datetime

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .entitymembership import Company


class MonthStatus(models.TextChoices):
    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"


def month_bounds(date):
    """First and last day of the calendar month containing `date`."""
    last_day = calendar.monthrange(date.year, date.month)[1]
    return (
        datetime.date(date.year, date.month, 1),
        datetime.date(date.year, date.month, last_day),
    )


# ---------- FinancialMonth (period lock) ----------
class FinancialMonth(models.Model):
    """
    One calendar month of a company's books.
    Once closed, nothing dated inside [start_date, end_date] can be posted,
    reversed or (un)reconciled. Closing is one-way.
    The row is also the lock taken by posting and closing, so a close
    and a post for the same month never interleave.
    """

    # Every company has its own independent calendar
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    year = models.PositiveSmallIntegerField()
    month = models.PositiveSmallIntegerField()

    # Exact date range of the month
    start_date = models.DateField()
    end_date = models.DateField()

    status = models.CharField(
        max_length=10, choices=MonthStatus.choices, default=MonthStatus.OPEN
    )
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="closed_months",
    )
    closed_at = models.DateTimeField(null=True, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "start_date"], name="fm_company_start_idx"),
            models.Index(fields=["company", "status"], name="fm_company_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "year", "month"], name="uq_company_financial_month"
            ),
            models.CheckConstraint(
                condition=models.Q(month__gte=1) & models.Q(month__lte=12),
                name="financial_month_valid_month",
            ),
        ]
        # periods come back chronologically, per company
        ordering = ("company", "year", "month")

    def __str__(self):
        return f"{self.company.slug} {self.year}-{self.month:02d} [{self.status}]"

    @property
    def is_closed(self):
        return self.status == MonthStatus.CLOSED

    def clean(self):
        if not 1 <= self.month <= 12:
            raise ValidationError("month must be between 1 and 12")
        start, end = month_bounds(datetime.date(self.year, self.month, 1))
        if (self.start_date, self.end_date) != (start, end):
            raise ValidationError("start_date/end_date must span the calendar month")

        # No reopening through the model: closed is terminal
        if self.pk:
            previous = FinancialMonth.objects.filter(pk=self.pk).values_list("status", flat=True).first()
            if previous == MonthStatus.CLOSED and self.status != MonthStatus.CLOSED:
                raise ValidationError("A closed financial month cannot be reopened.")

    def save(self, *args, **kwargs):
        # fill the range from year/month when not given
        if self.year and self.month and not (self.start_date and self.end_date):
            self.start_date, self.end_date = month_bounds(datetime.date(self.year, self.month, 1))
        # uniqueness is left to the database index so get_or_create races
        # surface as IntegrityError
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)


# ---------- Close snapshot (archived report) ----------
class MonthCloseSnapshot(models.Model):
    """
    Totals captured in the same transaction that closes a month,
    for reporting collaborators (payroll archive, month-end pack).
    """

    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    financial_month = models.OneToOneField(
        FinancialMonth, on_delete=models.PROTECT, related_name="close_snapshot"
    )
    entry_count = models.PositiveIntegerField(default=0)
    total_debit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    total_credit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    # [{"account_id", "code", "name", "ac_type", "debit", "credit", "balance"}]
    account_movements = models.JSONField(default=list)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    def __str__(self):
        return f"Close snapshot {self.financial_month}"
