import datetime
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_date

from ..exceptions import (JournalValidationError, OutOfOrderCloseError,
                          PeriodAlreadyClosedError, PeriodClosedError)
from ..models import (Company, FinancialMonth, JournalEntry, MonthCloseSnapshot,
                      MonthStatus, month_bounds)
from .audit_helper import log_action
from .balances import month_movements
from .tenancy import resolve_company

logger = logging.getLogger(__name__)


def as_date(value, label="date"):
    """Accept a date or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        parsed = parse_date(value) if isinstance(value, str) else None
    except ValueError:
        # well formed but impossible, e.g. 2025-02-30
        parsed = None
    if parsed is None:
        raise JournalValidationError(f"{label}: {value!r} is not a valid date")
    return parsed


def next_month_start(month):
    return month.end_date + datetime.timedelta(days=1)


def latest_closed_month(company):
    return (
        FinancialMonth.objects.for_company(company)
        .filter(status=MonthStatus.CLOSED)
        .order_by("-start_date")
        .first()
    )


def current_open_from(company):
    """First date the company can still post into (None: nothing closed yet)."""
    latest = latest_closed_month(resolve_company(company))
    return next_month_start(latest) if latest else None


def open_month_for(company, date):
    """
    Return the FinancialMonth row covering `date`, creating it open.
    Months are materialized lazily: a month without a row is open.
    """
    company = resolve_company(company)
    date = as_date(date)
    start, end = month_bounds(date)
    month, created = FinancialMonth.objects.get_or_create(
        company=company,
        year=date.year,
        month=date.month,
        defaults={"start_date": start, "end_date": end},
    )
    if created:
        logger.debug("Opened financial month %s-%02d for company %s",
                     date.year, date.month, company.pk)
    return month


# ----------------------------
# Period gate
# ----------------------------
def assert_open(company, date, lock=False):
    """
    Raise PeriodClosedError if `date` falls in a closed month.

    Anything on or before the end of the latest closed month counts as closed,
    since months only close in order.
    With lock=True (inside the caller's transaction) the month row is
    held FOR UPDATE until commit, so a concurrent close_month waits for the
    posting (or vice versa). A month without a row yet is created under the
    company lock that close_month also takes.
    """
    company = resolve_company(company)
    date = as_date(date)

    latest = latest_closed_month(company)
    if latest and date <= latest.end_date:
        raise PeriodClosedError(date, open_from=next_month_start(latest))

    if not lock:
        return None

    month = (
        FinancialMonth.objects.select_for_update()
        .filter(company=company, year=date.year, month=date.month)
        .first()
    )
    if month is None:
        _lock_company(company)
        month = open_month_for(company, date)
        month = FinancialMonth.objects.select_for_update().get(pk=month.pk)

    # re-check under the lock: a close may have committed meanwhile
    latest = latest_closed_month(company)
    if month.is_closed or (latest and date <= latest.end_date):
        raise PeriodClosedError(date, open_from=current_open_from(company))
    return month


def _lock_company(company):
    # company row first, then month rows
    return Company.objects.select_for_update().get(pk=company.pk)


# ----------------------------
# Month close
# ----------------------------
def close_month(company, month_end_date, user=None):
    """
    Close the month containing `month_end_date` and archive its totals.

    Rules:
      - already closed → PeriodAlreadyClosedError
      - a later month closed, or the month is not the one right after the
        latest closed month → OutOfOrderCloseError
      - first close for a company: no earlier month may still be open
    The status flip and the snapshot commit together.
    Returns the MonthCloseSnapshot (snapshot.financial_month is the month).
    """
    company = resolve_company(company)
    target_date = as_date(month_end_date, "month_end_date")
    start, end = month_bounds(target_date)

    with transaction.atomic():
        # serializes against postings that materialize a new month row
        _lock_company(company)
        target = open_month_for(company, target_date)

        # Lock every month row of the tenant: close decisions depend on all of them
        months = list(
            FinancialMonth.objects.select_for_update()
            .filter(company=company)
            .order_by("start_date")
        )
        target = next(m for m in months if m.pk == target.pk)

        if target.is_closed:
            raise PeriodAlreadyClosedError(f"{start:%B %Y} is already closed for {company}")

        closed = [m for m in months if m.is_closed]
        if any(m.start_date > start for m in closed):
            raise OutOfOrderCloseError(
                f"Cannot close {start:%B %Y}: a later month is already closed"
            )

        if closed:
            expected = next_month_start(closed[-1])
            if start != expected:
                raise OutOfOrderCloseError(
                    f"Cannot close {start:%B %Y}: {expected:%B %Y} must be closed first"
                )
        else:
            earlier_open = [m for m in months if m.start_date < start]
            if earlier_open:
                raise OutOfOrderCloseError(
                    f"Cannot close {start:%B %Y}: {earlier_open[0].start_date:%B %Y} is still open"
                )

        target.status = MonthStatus.CLOSED
        target.closed_by = user if getattr(user, "pk", None) else None
        target.closed_at = timezone.now()
        target.save()

        movements = month_movements(company, start, end)
        snapshot = MonthCloseSnapshot.objects.create(
            company=company,
            financial_month=target,
            entry_count=JournalEntry.objects.for_company(company)
            .filter(date__range=(start, end)).count(),
            total_debit=sum((row["debit"] for row in movements), Decimal("0.00")),
            total_credit=sum((row["credit"] for row in movements), Decimal("0.00")),
            account_movements=[
                {
                    "account_id": row["account_id"],
                    "code": row["code"],
                    "name": row["name"],
                    "ac_type": row["ac_type"],
                    "debit": str(row["debit"]),
                    "credit": str(row["credit"]),
                    "balance": str(row["balance"]),
                }
                for row in movements
            ],
        )

        log_action(
            action="close_month",
            instance=target,
            user=user,
            changes={
                "month": f"{target.year}-{target.month:02d}",
                "entry_count": snapshot.entry_count,
                "total_debit": str(snapshot.total_debit),
                "total_credit": str(snapshot.total_credit),
            },
        )

    logger.info(
        "Closed %s-%02d for company %s: %s entries, debits=%s credits=%s",
        target.year, target.month, company.pk,
        snapshot.entry_count, snapshot.total_debit, snapshot.total_credit,
    )
    return snapshot

