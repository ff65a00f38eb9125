from django.db.models import Sum

from ..exceptions import JournalValidationError
from ..models import Account, AccountType, JournalLine, normal_side_for
from ..models.account import DEBIT_NORMAL_TYPES
from .amounts import CENT, ZERO
from .chart import resolve_account
from .tenancy import resolve_company


# Balances are always derived from posted lines; nothing here is cached.

def _signed(ac_type, debit, credit):
    """Balance on the account's normal side (positive = normal)."""
    if ac_type in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def _money(value):
    # aggregates come back unscaled on some backends (150 vs 150.00)
    return (value or ZERO).quantize(CENT)


def _sums(queryset):
    aggs = queryset.aggregate(debit=Sum("debit"), credit=Sum("credit"))
    return _money(aggs["debit"]), _money(aggs["credit"])


def account_balance(company, account, as_of=None):
    """
    Signed balance of one account from lines dated on or before `as_of`
    (all lines when None). Debit-normal: Σdebit - Σcredit, else the reverse.
    """
    company = resolve_company(company)
    account = resolve_account(company, account)
    debit, credit = _sums(
        JournalLine.objects.for_company(company).filter(account=account).up_to(as_of)
    )
    return _signed(account.ac_type, debit, credit)


def _per_account(company, lines):
    """Group lines by account → rows with debit/credit totals and balance."""
    totals = (
        lines.values("account")
        .annotate(debit=Sum("debit"), credit=Sum("credit"))
        .order_by()
    )
    by_id = {row["account"]: row for row in totals}
    accounts = Account.objects.for_company(company).filter(pk__in=by_id).order_by("code")

    rows = []
    for account in accounts:
        debit = _money(by_id[account.pk]["debit"])
        credit = _money(by_id[account.pk]["credit"])
        rows.append({
            "account_id": account.pk,
            "account": account,
            "code": account.code,
            "name": account.name,
            "ac_type": account.ac_type,
            "subtype": account.subtype,
            "normal_side": normal_side_for(account.ac_type),
            "debit": debit,
            "credit": credit,
            "balance": _signed(account.ac_type, debit, credit),
        })
    return rows


def trial_balance(company, as_of=None):
    """
    One row per account with activity up to `as_of`, ordered by code.
    Inactive accounts still show: deactivation never hides history.
    """
    company = resolve_company(company)
    return _per_account(company, JournalLine.objects.for_company(company).up_to(as_of))


def trial_balance_totals(rows):
    """
    (Σ balances of debit-normal accounts, Σ balances of credit-normal accounts).
    The two are equal whenever every entry balances.
    """
    debit_side = sum((r["balance"] for r in rows if r["ac_type"] in DEBIT_NORMAL_TYPES), ZERO)
    credit_side = sum((r["balance"] for r in rows if r["ac_type"] not in DEBIT_NORMAL_TYPES), ZERO)
    return debit_side, credit_side


def month_movements(company, start, end):
    """Per-account debit/credit movement for entries dated within [start, end]."""
    company = resolve_company(company)
    lines = JournalLine.objects.for_company(company).filter(
        journal__date__gte=start, journal__date__lte=end
    )
    return _per_account(company, lines)


# ----------------------------
# Financial statements
# ----------------------------
def _section(rows, ac_type):
    """Rows of one account type with per-subtype subtotals."""
    section_rows = [row for row in rows if row["ac_type"] == ac_type]
    subtotals = {}
    for row in section_rows:
        key = row["subtype"] or ac_type
        subtotals[key] = subtotals.get(key, ZERO) + row["balance"]
    return {
        "rows": section_rows,
        "subtotals": subtotals,
        "total": sum((row["balance"] for row in section_rows), ZERO),
    }


def profit_and_loss(company, start, end):
    """
    Revenue and expense movement of entries dated within [start, end].
    net_income = revenue total - expense total.
    """
    company = resolve_company(company)
    if start is None or end is None:
        raise JournalValidationError("Profit and loss needs a start and an end date")
    if start > end:
        raise JournalValidationError(f"start {start} is after end {end}")

    lines = JournalLine.objects.for_company(company).filter(
        journal__date__gte=start,
        journal__date__lte=end,
        account__ac_type__in=[AccountType.REVENUE, AccountType.EXPENSE],
    )
    rows = _per_account(company, lines)
    revenue = _section(rows, AccountType.REVENUE)
    expense = _section(rows, AccountType.EXPENSE)
    return {
        "start": start,
        "end": end,
        "revenue": revenue,
        "expense": expense,
        "net_income": revenue["total"] - expense["total"],
    }


def balance_sheet(company, as_of=None):
    """
    Assets, liabilities and equity at `as_of`.
    Revenue and expense are never closed into retained earnings here, so
    their net to date shows as current earnings under equity.
    """
    company = resolve_company(company)
    rows = trial_balance(company, as_of)

    assets = _section(rows, AccountType.ASSET)
    liabilities = _section(rows, AccountType.LIABILITY)
    equity = _section(rows, AccountType.EQUITY)
    earnings = (
        _section(rows, AccountType.REVENUE)["total"]
        - _section(rows, AccountType.EXPENSE)["total"]
    )
    equity["current_earnings"] = earnings
    equity["total"] += earnings

    total_liabilities_and_equity = liabilities["total"] + equity["total"]
    return {
        "as_of": as_of,
        "assets": assets,
        "liabilities": liabilities,
        "equity": equity,
        "total_assets": assets["total"],
        "total_liabilities_and_equity": total_liabilities_and_equity,
        "balanced": assets["total"] == total_liabilities_and_equity,
    }


def general_ledger(company, account, start=None, end=None):
    """
    Account statement: opening balance before `start`, each line in
    [start, end] with a running balance, and the closing balance.
    """
    company = resolve_company(company)
    account = resolve_account(company, account)
    lines = JournalLine.objects.for_company(company).filter(account=account)

    opening = ZERO
    if start is not None:
        opening = _signed(account.ac_type, *_sums(lines.filter(journal__date__lt=start)))
        lines = lines.filter(journal__date__gte=start)
    if end is not None:
        lines = lines.filter(journal__date__lte=end)

    running = opening
    rows = []
    for line in lines.select_related("journal").order_by("journal__date", "journal_id", "pk"):
        running += _signed(account.ac_type, line.debit, line.credit)
        rows.append({
            "line_id": line.pk,
            "entry_id": line.journal_id,
            "date": line.journal.date,
            "source": line.journal.source,
            "description": line.description or line.journal.description,
            "debit": line.debit,
            "credit": line.credit,
            "balance": running,
            "is_reconciled": line.is_reconciled,
        })

    return {
        "account": account,
        "opening_balance": opening,
        "lines": rows,
        "closing_balance": running,
    }


def unreconciled_lines(company, account):
    """Lines of an account not yet matched to the bank statement."""
    company = resolve_company(company)
    account = resolve_account(company, account)
    return (
        JournalLine.objects.for_company(company)
        .filter(account=account)
        .unreconciled()
        .select_related("journal")
        .order_by("journal__date", "pk")
    )
