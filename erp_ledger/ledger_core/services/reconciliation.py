import logging

from django.db import transaction
from django.utils import timezone

from ..exceptions import ReconciliationError
from ..models import BankStatementLine, JournalLine
from .amounts import ZERO, parse_amount
from .audit_helper import log_action
from .chart import resolve_account
from .periods import as_date, assert_open
from .tenancy import fetch_scoped, resolve_company

logger = logging.getLogger(__name__)


# ----------------------------
# Bank statement import
# ----------------------------
def import_statement_lines(company, account, rows, user=None):
    """
    Store bank statement rows for a cash/bank account.
    rows: iterable of {"date", "description", "debit", "credit"}
    (debit = money out, credit = money in, as the bank prints them).
    All rows are stored or none.
    """
    company = resolve_company(company)
    account = resolve_account(company, account)

    created = []
    with transaction.atomic():
        for number, row in enumerate(rows, start=1):
            debit = parse_amount(row.get("debit"), f"Row {number} debit")
            credit = parse_amount(row.get("credit"), f"Row {number} credit")
            if debit < 0 or credit < 0:
                raise ReconciliationError(f"Row {number}: amounts must be >= 0")
            if debit == 0 and credit == 0:
                raise ReconciliationError(f"Row {number}: debit or credit must be non-zero")

            created.append(BankStatementLine.objects.create(
                company=company,
                account=account,
                date=as_date(row.get("date"), f"Row {number} date"),
                description=(row.get("description") or "").strip()[:400],
                debit=debit,
                credit=credit,
            ))

    logger.info("Imported %s statement lines into account %s for company %s",
                len(created), account.code, company.pk)
    return created


# ----------------------------
# Matching
# ----------------------------
def _locked_lines(model, company, ids, what, select=()):
    queryset = model.objects.select_for_update().select_related(*select)
    found = fetch_scoped(model, company, ids, what, not_found=ReconciliationError, queryset=queryset)
    return [found[pk] for pk in sorted(found)]


def _gate_dates(company, ledger_lines, bank_lines=()):
    # (un)reconciling is a change to lines inside the month
    dates = {line.journal.date for line in ledger_lines} | {line.date for line in bank_lines}
    for date in sorted(dates):
        assert_open(company, date)


def reconcile(company, bank_line_ids, ledger_line_ids, user=None):
    """
    Match bank statement lines to ledger lines of the same account.

    Money into the bank (Σcredit - Σdebit on the statement) must equal the
    ledger movement (Σdebit - Σcredit) exactly. Lines already matched,
    from another company or dated in a closed month are refused.
    Returns (bank_lines, ledger_lines).
    """
    company = resolve_company(company)
    if not bank_line_ids or not ledger_line_ids:
        raise ReconciliationError("Select at least one bank line and one ledger line")

    with transaction.atomic():
        bank_lines = _locked_lines(BankStatementLine, company, bank_line_ids, "BankStatementLine")
        ledger_lines = _locked_lines(JournalLine, company, ledger_line_ids, "JournalLine",
                                     select=("journal", "account"))

        accounts = {line.account_id for line in bank_lines}
        if len(accounts) != 1:
            raise ReconciliationError("Bank lines must come from a single statement account")
        account_id = accounts.pop()

        if any(line.account_id != account_id for line in ledger_lines):
            raise ReconciliationError("Ledger lines must be posted to the statement's account")
        if any(line.is_matched for line in bank_lines):
            raise ReconciliationError("Some bank lines are already matched")
        if any(line.is_reconciled for line in ledger_lines):
            raise ReconciliationError("Some ledger lines are already reconciled")

        bank_total = sum((line.net_amount for line in bank_lines), ZERO)
        ledger_total = sum((line.signed_amount for line in ledger_lines), ZERO)
        if bank_total != ledger_total:
            raise ReconciliationError(
                f"Amounts do not match: bank {bank_total}, ledger {ledger_total}"
            )

        _gate_dates(company, ledger_lines, bank_lines)

        now = timezone.now()
        for line in ledger_lines:
            line.is_reconciled = True
            line.reconciled_at = now
            line.save(update_fields=["is_reconciled", "reconciled_at"])

        for line in bank_lines:
            line.is_matched = True
            line.matched_at = now
            line.matched_by = user if getattr(user, "pk", None) else None
            line.journal_line = ledger_lines[0]
            line.save()

        log_action(
            action="reconcile",
            instance=ledger_lines[0],
            user=user,
            company=company,
            changes={
                "bank_line_ids": [line.pk for line in bank_lines],
                "ledger_line_ids": [line.pk for line in ledger_lines],
                "amount": str(ledger_total),
            },
        )

    logger.info("Reconciled %s bank lines with %s ledger lines (%s) for company %s",
                len(bank_lines), len(ledger_lines), ledger_total, company.pk)
    return bank_lines, ledger_lines


def unreconcile(company, ledger_line_ids, user=None):
    """
    Undo a match: ledger lines go back to unreconciled and the bank lines
    linked to them become unmatched. Closed months stay frozen.
    """
    company = resolve_company(company)
    if not ledger_line_ids:
        raise ReconciliationError("Select at least one ledger line")

    with transaction.atomic():
        ledger_lines = _locked_lines(JournalLine, company, ledger_line_ids, "JournalLine",
                                     select=("journal",))
        if any(not line.is_reconciled for line in ledger_lines):
            raise ReconciliationError("Some ledger lines are not reconciled")

        bank_lines = list(
            BankStatementLine.objects.for_company(company)
            .select_for_update()
            .filter(journal_line__in=ledger_lines)
        )
        _gate_dates(company, ledger_lines, bank_lines)

        for line in ledger_lines:
            line.is_reconciled = False
            line.reconciled_at = None
            line.save(update_fields=["is_reconciled", "reconciled_at"])

        for line in bank_lines:
            line.is_matched = False
            line.matched_at = None
            line.matched_by = None
            line.journal_line = None
            line.save()

        log_action(
            action="unreconcile",
            instance=ledger_lines[0],
            user=user,
            company=company,
            changes={
                "bank_line_ids": [line.pk for line in bank_lines],
                "ledger_line_ids": [line.pk for line in ledger_lines],
            },
        )

    logger.info("Unreconciled %s ledger lines for company %s", len(ledger_lines), company.pk)
    return ledger_lines
