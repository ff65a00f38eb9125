import logging

from celery import shared_task
from django.conf import settings
from django.db import models

logger = logging.getLogger(__name__)


def _alert_level():
    return logging.getLevelName(getattr(settings, "LEDGER_INTEGRITY_ALERT_LEVEL", "CRITICAL"))


@shared_task  # register this function as a Celery task
def verify_ledger_integrity(company_id, as_of=None):
    """
    Re-derive the company's books and report drift:
      - entries whose lines don't balance or disagree with the stored total
      - a trial balance whose debit-normal and credit-normal sides differ
    Read-only. Returns a JSON-friendly report.
    """
    # import models lazily to avoid circular imports at module import time
    from .models import Company, JournalEntry
    from .services.balances import trial_balance, trial_balance_totals
    from .services.periods import as_date

    company = Company.objects.get(pk=company_id)
    as_of = as_date(as_of, "as_of") if as_of else None

    entries = JournalEntry.objects.for_company(company)
    if as_of:
        entries = entries.filter(date__lte=as_of)

    # One query: per-entry sums next to the cached header total
    sums = entries.annotate(
        line_debit=models.Sum("lines__debit"),
        line_credit=models.Sum("lines__credit"),
    ).values_list("pk", "total", "line_debit", "line_credit")

    broken = []
    for pk, total, debit, credit in sums:
        # entries without lines sum to None
        if debit is None or credit is None or not (debit == credit == total):
            broken.append(pk)

    rows = trial_balance(company, as_of)
    debit_side, credit_side = trial_balance_totals(rows)

    report = {
        "company_id": company.pk,
        "as_of": as_of.isoformat() if as_of else None,
        "entries_checked": len(sums),
        "unbalanced_entries": broken,
        "debit_normal_total": str(debit_side),
        "credit_normal_total": str(credit_side),
        "ok": not broken and debit_side == credit_side,
    }

    if report["ok"]:
        logger.info("Ledger integrity ok for company %s (%s entries)", company.pk, len(sums))
    else:
        logger.log(
            _alert_level(),
            "Ledger integrity drift for company %s: unbalanced=%s debit_side=%s credit_side=%s",
            company.pk, broken, debit_side, credit_side,
            extra={"company_id": company.pk},
        )
    return report


@shared_task
def verify_all_tenants(as_of=None):
    """Fan out one integrity check per company."""
    from .models import Company

    company_ids = list(Company.objects.values_list("pk", flat=True))
    for company_id in company_ids:
        verify_ledger_integrity.delay(company_id, as_of)
    return len(company_ids)
