from django.core.exceptions import ValidationError


class LedgerError(Exception):
    """Base class for every failure raised by the ledger services."""
    pass


class JournalValidationError(LedgerError, ValidationError):
    """Malformed posting input: missing/unknown account, negative or
    two-sided amount, empty line set. Nothing is persisted."""

    def __str__(self):
        return "; ".join(self.messages)


class AccountNotFound(JournalValidationError):
    """Account id does not exist for the company."""
    pass


class ReconciliationError(JournalValidationError):
    """Bank/ledger matching request that cannot be applied."""
    pass


class UnbalancedJournalError(LedgerError):
    """Raised when a JournalEntry fails double-entry balance check."""

    def __init__(self, total_debit, total_credit):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Journal not balanced: debits={total_debit}, credits={total_credit}"
        )


class PeriodClosedError(LedgerError):
    """Posting date falls inside a closed financial month.

    `open_from` is the first date the company can still post into,
    so the caller can move the posting into the current period.
    """

    def __init__(self, date, open_from=None):
        self.date = date
        self.open_from = open_from
        message = f"Financial month covering {date} is closed"
        if open_from:
            message += f"; books are open from {open_from}"
        super().__init__(message)


class CrossTenantViolation(LedgerError):
    """A referenced row belongs to a different company."""
    pass


class DuplicatePostingError(LedgerError):
    """An entry already exists for the exclusive reference binding."""

    def __init__(self, binding, existing_entry_id=None):
        self.binding = binding
        self.existing_entry_id = existing_entry_id
        super().__init__(
            f"Entry #{existing_entry_id} already posted for "
            f"{binding.kind}:{binding.source_id}"
            + (f" ({binding.qualifier})" if binding.qualifier else "")
        )


class PeriodAlreadyClosedError(LedgerError):
    """Raised when closing a month that is already closed."""
    pass


class OutOfOrderCloseError(LedgerError):
    """Months close one after another; an earlier month is still open
    (or a later one is already closed)."""
    pass


class AccountInUseError(LedgerError):
    """Account has journal lines and cannot be deleted."""
    pass
