import json
import logging
from functools import wraps

from django.http import JsonResponse
from django.views.decorators.http import (require_GET, require_http_methods,
                                          require_POST)

from .exceptions import (AccountNotFound, CrossTenantViolation,
                         DuplicatePostingError, JournalValidationError,
                         LedgerError, OutOfOrderCloseError,
                         PeriodAlreadyClosedError, PeriodClosedError,
                         UnbalancedJournalError)
from .models import JournalEntry
from .services import balances, periods, posting, reconciliation, references
from .services.tenancy import fetch_scoped

logger = logging.getLogger(__name__)

# LedgerError subclass → HTTP status
ERROR_STATUS = [
    (CrossTenantViolation, 404),  # never confirm another tenant's ids exist
    (AccountNotFound, 404),
    (DuplicatePostingError, 409),
    (PeriodClosedError, 409),
    (PeriodAlreadyClosedError, 409),
    (OutOfOrderCloseError, 409),
    (UnbalancedJournalError, 400),
    (JournalValidationError, 400),
]


def _error_response(exc):
    status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    body = {"ok": False, "error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, CrossTenantViolation):
        body["detail"] = "Not found"
    if isinstance(exc, PeriodClosedError) and exc.open_from:
        body["open_from"] = exc.open_from
    if isinstance(exc, DuplicatePostingError):
        body["existing_entry_id"] = exc.existing_entry_id
    return JsonResponse(body, status=status)


def company_required(view):
    """Views work on request.company (set by CurrentCompanyMiddleware)."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if getattr(request, "company", None) is None:
            return JsonResponse({"ok": False, "error": "No active company"}, status=403)
        try:
            return view(request, *args, **kwargs)
        except LedgerError as exc:
            return _error_response(exc)
    return wrapper


def _date_param(request, name):
    value = request.GET.get(name)
    return periods.as_date(value, name) if value else None


def _json_body(request):
    try:
        data = json.loads(request.body or b"{}")
    except ValueError:
        raise JournalValidationError("Request body is not valid JSON")
    if not isinstance(data, dict):
        raise JournalValidationError("Request body must be a JSON object")
    return data


def _balance_row(row):
    return {key: value for key, value in row.items() if key != "account"}


def _statement_section(section):
    return {**section, "rows": [_balance_row(row) for row in section["rows"]]}


def _entry_summary(entry):
    return {
        "entry_id": entry.pk,
        "date": entry.date,
        "description": entry.description,
        "source": entry.source,
        "total": entry.total,
        "reference": entry.reference._asdict(),
        "reversal_of": entry.reversal_of_id,
    }


# Read side
@require_GET
@company_required
def trial_balance_view(request):
    as_of = _date_param(request, "as_of")
    rows = balances.trial_balance(request.company, as_of)
    debit_side, credit_side = balances.trial_balance_totals(rows)
    return JsonResponse({
        "as_of": as_of,
        "rows": [_balance_row(row) for row in rows],
        "debit_normal_total": debit_side,
        "credit_normal_total": credit_side,
    })


@require_GET
@company_required
def account_balance_view(request, account_id):
    as_of = _date_param(request, "as_of")
    return JsonResponse({
        "account_id": account_id,
        "as_of": as_of,
        "balance": balances.account_balance(request.company, account_id, as_of),
    })


@require_GET
@company_required
def general_ledger_view(request, account_id):
    report = balances.general_ledger(
        request.company, account_id,
        start=_date_param(request, "start"),
        end=_date_param(request, "end"),
    )
    account = report.pop("account")
    report.update({"account_id": account.pk, "code": account.code, "name": account.name})
    return JsonResponse(report)


@require_GET
@company_required
def unreconciled_lines_view(request, account_id):
    lines = balances.unreconciled_lines(request.company, account_id)
    return JsonResponse({
        "account_id": account_id,
        "lines": [
            {
                "line_id": line.pk,
                "entry_id": line.journal_id,
                "date": line.journal.date,
                "description": line.description,
                "debit": line.debit,
                "credit": line.credit,
            }
            for line in lines
        ],
    })


@require_GET
@company_required
def profit_and_loss_view(request):
    report = balances.profit_and_loss(
        request.company, _date_param(request, "start"), _date_param(request, "end")
    )
    report["revenue"] = _statement_section(report["revenue"])
    report["expense"] = _statement_section(report["expense"])
    return JsonResponse(report)


@require_GET
@company_required
def balance_sheet_view(request):
    report = balances.balance_sheet(request.company, _date_param(request, "as_of"))
    for key in ("assets", "liabilities", "equity"):
        report[key] = _statement_section(report[key])
    return JsonResponse(report)


@require_GET
@company_required
def journal_entry_list_view(request):
    """
    ?start=&end= → entries in the date range (either bound optional)
    ?kind=&source_id= → entries bound to one source document
    """
    kind = request.GET.get("kind")
    if kind:
        entries = references.entries_for(request.company, kind, request.GET.get("source_id"))
    else:
        entries = posting.entries_in_range(
            request.company, _date_param(request, "start"), _date_param(request, "end")
        )
    return JsonResponse({"entries": [_entry_summary(entry) for entry in entries]})


@require_GET
@company_required
def journal_entry_detail_view(request, entry_id):
    entry = fetch_scoped(
        JournalEntry, request.company, [entry_id], "JournalEntry",
        queryset=JournalEntry.objects.prefetch_related("lines__account", "reversals"),
    )[entry_id]
    data = _entry_summary(entry)
    data.update({
        "reversed_by": [reversal.pk for reversal in entry.reversals.all()],
        "lines": [
            {
                "line_id": line.pk,
                "account_id": line.account_id,
                "code": line.account.code,
                "description": line.description,
                "debit": line.debit,
                "credit": line.credit,
                "is_reconciled": line.is_reconciled,
            }
            for line in entry.lines.all()
        ],
    })
    return JsonResponse(data)


# Write side
@require_POST
@company_required
def post_journal_entry_view(request):
    """
    Manual journal entry:
    {"date": "2025-09-15", "description": "...", "lines": [{"account": 1, "debit": "100.00"}, ...]}
    """
    data = _json_body(request)
    entry = posting.post(
        request.company,
        data.get("date"),
        data.get("description", ""),
        posting.MANUAL_SOURCE,
        data.get("lines") or [],
        user=request.user,
    )
    return JsonResponse({"ok": True, "entry_id": entry.pk, "total": entry.total}, status=201)


@require_POST
@company_required
def reverse_journal_entry_view(request, entry_id):
    data = _json_body(request)
    reversal = posting.reverse(
        request.company, entry_id, data.get("date"),
        reason=data.get("reason", ""), user=request.user,
    )
    return JsonResponse({"ok": True, "entry_id": reversal.pk, "reversal_of": entry_id}, status=201)


@require_POST
@company_required
def close_month_view(request):
    data = _json_body(request)
    snapshot = periods.close_month(request.company, data.get("month_end"), user=request.user)
    month = snapshot.financial_month
    return JsonResponse({
        "ok": True,
        "month": f"{month.year}-{month.month:02d}",
        "entry_count": snapshot.entry_count,
        "total_debit": snapshot.total_debit,
        "total_credit": snapshot.total_credit,
        "open_from": periods.current_open_from(request.company),
    })


@require_POST
@company_required
def reconcile_view(request):
    data = _json_body(request)
    bank_lines, ledger_lines = reconciliation.reconcile(
        request.company,
        data.get("bank_line_ids") or [],
        data.get("ledger_line_ids") or [],
        user=request.user,
    )
    return JsonResponse({
        "ok": True,
        "bank_line_ids": [line.pk for line in bank_lines],
        "ledger_line_ids": [line.pk for line in ledger_lines],
    })


@require_http_methods(["GET", "POST"])
def journal_entries_view(request):
    """GET lists entries, POST posts a manual entry."""
    if request.method == "POST":
        return post_journal_entry_view(request)
    return journal_entry_list_view(request)
