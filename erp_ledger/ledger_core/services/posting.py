import logging
from collections.abc import Mapping

from django.db import IntegrityError, transaction

from ..exceptions import (AccountNotFound, DuplicatePostingError,
                          JournalValidationError, UnbalancedJournalError)
from ..models import Account, JournalEntry, JournalLine, ReferenceKind
from .amounts import MAX_AMOUNT, ZERO, parse_amount
from .audit_helper import log_action
from .periods import as_date, assert_open
from .references import ReferenceBinding, bind, existing_entry_id
from .tenancy import as_pk, fetch_scoped, resolve_company

logger = logging.getLogger(__name__)

MANUAL_SOURCE = "Manual Entry"
REVERSAL_SOURCE = "Reversal Entry"


# ----------------------------
# Line validation
# ----------------------------
def _account_ref(line, number):
    ref = line.get("account", line.get("account_id"))
    if ref is None or ref == "":
        raise JournalValidationError(f"Line {number}: account is required")
    if isinstance(ref, Account):
        return ref.pk
    if isinstance(ref, (bool, float)):
        raise JournalValidationError(f"Line {number}: account {ref!r} is not a valid id")
    try:
        return int(ref)
    except (TypeError, ValueError):
        raise JournalValidationError(f"Line {number}: account {ref!r} is not a valid id")


def _prepare_lines(company, lines):
    """
    Validate raw line dicts:
        {"account": Account | id, "debit": ..., "credit": ..., "description": ...}
    Returns [(account, debit, credit, description)].
    """
    if isinstance(lines, (str, bytes, Mapping)):
        raise JournalValidationError("lines must be a list of line objects")
    try:
        lines = list(lines or [])
    except TypeError:
        raise JournalValidationError("lines must be a list of line objects")
    if not lines:
        raise JournalValidationError("A journal entry needs at least one line")
    for number, line in enumerate(lines, start=1):
        if not isinstance(line, Mapping):
            raise JournalValidationError(f"Line {number}: expected an object with account and amounts")

    account_ids = [_account_ref(line, n) for n, line in enumerate(lines, start=1)]

    # Every account must resolve under this company
    accounts = fetch_scoped(Account, company, account_ids, "Account", not_found=AccountNotFound)
    inactive = sorted({accounts[a].code for a in account_ids if not accounts[a].is_active})
    if inactive:
        raise JournalValidationError(f"Inactive accounts cannot be posted to: {', '.join(inactive)}")

    prepared = []
    for number, (line, account_id) in enumerate(zip(lines, account_ids), start=1):
        debit = parse_amount(line.get("debit"), f"Line {number} debit")
        credit = parse_amount(line.get("credit"), f"Line {number} credit")

        # Rule: amounts are non-negative
        if debit < 0 or credit < 0:
            raise JournalValidationError(f"Line {number}: debit and credit must be >= 0")
        # Rule: exactly one side is non-zero
        if debit > 0 and credit > 0:
            raise JournalValidationError(f"Line {number}: a line cannot have both debit and credit")
        if debit == 0 and credit == 0:
            raise JournalValidationError(f"Line {number}: debit or credit must be non-zero")

        description = str(line.get("description") or "")[:400]
        prepared.append((accounts[account_id], debit, credit, description))

    for side, index in (("debits", 1), ("credits", 2)):
        total = sum((row[index] for row in prepared), ZERO)
        if total > MAX_AMOUNT:
            raise JournalValidationError(f"Total {side} {total} exceed the largest entry total {MAX_AMOUNT}")
    return prepared


# ----------------------------
# Posting engine
# ----------------------------
def post(company, date, description, source, lines, reference=None, user=None, reversal_of=None):
    """
    The only way ledger rows are created. All or nothing:

      1. lines validated (accounts resolvable, same company, active; amounts exact)
      2. period gate, holding the month row lock until commit
      3. reference binding checked (exclusive kinds: one entry per source)
      4. Σdebit == Σcredit
      5. header + lines + audit row written in one transaction

    Raises JournalValidationError / AccountNotFound, CrossTenantViolation,
    PeriodClosedError, DuplicatePostingError or UnbalancedJournalError,
    in that order of checks. Returns the JournalEntry.
    """
    company = resolve_company(company)
    date = as_date(date)
    source = (source or MANUAL_SOURCE).strip()

    with transaction.atomic():
        prepared = _prepare_lines(company, lines)

        assert_open(company, date, lock=True)

        binding = bind(company, reference)

        total_debit = sum((debit for _, debit, _, _ in prepared), ZERO)
        total_credit = sum((credit for _, _, credit, _ in prepared), ZERO)
        if total_debit != total_credit:
            logger.warning(
                "Unbalanced posting refused for company %s: debits=%s credits=%s difference=%s (%s)",
                company.pk, total_debit, total_credit, total_debit - total_credit, source,
                extra={"company_id": company.pk},
            )
            raise UnbalancedJournalError(total_debit, total_credit)

        try:
            # savepoint: a lost race on the exclusive index must not poison the outer transaction
            with transaction.atomic():
                entry = JournalEntry.objects.create(
                    company=company,
                    date=date,
                    description=description or "",
                    source=source,
                    total=total_debit,
                    created_by=user if getattr(user, "pk", None) else None,
                    reference_kind=binding.kind,
                    reference_id=binding.source_id,
                    reference_qualifier=binding.qualifier,
                    reference_exclusive=binding.exclusive,
                    reversal_of=reversal_of,
                )
        except IntegrityError:
            if not binding.exclusive:
                raise
            raise DuplicatePostingError(binding, existing_entry_id=existing_entry_id(company, binding))

        JournalLine.objects.bulk_create([
            JournalLine(
                company=company,
                journal=entry,
                account=account,
                description=line_description,
                debit=debit,
                credit=credit,
            )
            for account, debit, credit, line_description in prepared
        ])

        log_action(
            action="post",
            instance=entry,
            user=user,
            company=company,
            changes={
                "date": date.isoformat(),
                "source": source,
                "total": str(total_debit),
                "reference": str(binding),
                "lines": len(prepared),
            },
        )

    logger.info(
        "Posted JE #%s for company %s: %s %s (%s lines, total %s)",
        entry.pk, company.pk, date, source, len(prepared), total_debit,
        extra={"company_id": company.pk, "entry_id": entry.pk},
    )
    return entry


def post_idempotent(company, date, description, source, lines, reference, user=None):
    """
    post() for retry-prone callers (webhooks, background jobs):
    a duplicate exclusive binding returns the entry already posted for it.
    """
    try:
        return post(company, date, description, source, lines, reference=reference, user=user)
    except DuplicatePostingError as exc:
        logger.info("Posting for %s already exists as JE #%s", exc.binding, exc.existing_entry_id)
        return JournalEntry.objects.for_company(resolve_company(company)).get(pk=exc.existing_entry_id)


def reversal_binding(entry):
    """Reversals are bound to the original's source, once per original."""
    qualifier = f"reversal:{entry.pk}"
    if entry.reference_kind == ReferenceKind.NONE:
        return ReferenceBinding(ReferenceKind.JOURNAL_ENTRY, entry.pk, qualifier, True)
    return ReferenceBinding(entry.reference_kind, entry.reference_id, qualifier, True)


def reverse(company, entry_id, date, reason="", user=None):
    """
    Post the equal-and-opposite entry of `entry_id` on `date`.
    The original stays untouched; the reversal points to it via reversal_of.
    A second reversal of the same entry → DuplicatePostingError.
    """
    company = resolve_company(company)
    entry_id = as_pk(entry_id, "JournalEntry")

    with transaction.atomic():
        original = fetch_scoped(
            JournalEntry, company, [entry_id], "JournalEntry",
            queryset=JournalEntry.objects.prefetch_related("lines"),
        )[entry_id]

        lines = [
            {
                "account": line.account_id,
                # swap sides
                "debit": line.credit,
                "credit": line.debit,
                "description": f"Reversal: {line.description or original.description}",
            }
            for line in original.lines.all()
        ]

        description = f"[Reversal of JE #{original.pk}]"
        if reason:
            description += f" - {reason}"

        reversal = post(
            company,
            date,
            description,
            REVERSAL_SOURCE,
            lines,
            reference=reversal_binding(original),
            user=user,
            reversal_of=original,
        )

    logger.info("JE #%s reversed by JE #%s", original.pk, reversal.pk)
    return reversal


def entry_totals(entry):
    """(Σdebit, Σcredit) of an entry's lines."""
    return entry.compute_totals()


def entries_in_range(company, start=None, end=None):
    """Entries dated within [start, end]; either bound may be open."""
    company = resolve_company(company)
    entries = JournalEntry.objects.for_company(company)
    if start is not None:
        entries = entries.filter(date__gte=start)
    if end is not None:
        entries = entries.filter(date__lte=end)
    return entries.order_by("date", "pk")

