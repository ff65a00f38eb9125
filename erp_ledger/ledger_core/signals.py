from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .exceptions import JournalValidationError, LedgerError
from .models import FinancialMonth, JournalEntry, JournalLine, MonthCloseSnapshot

# Account deletes are guarded by Account.delete() and AccountQuerySet.delete().

"""Posted ledger rows are append-only."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_journal_entry(sender, instance, **kwargs):
    raise JournalValidationError(
        "Posted journal entries cannot be deleted. Post a reversal instead."
    )


@receiver(pre_delete, sender=JournalLine)
def prevent_delete_journal_line(sender, instance, **kwargs):
    raise JournalValidationError("Cannot delete JournalLine: parent JournalEntry is posted.")


"""Closed months and their archived totals are permanent."""


@receiver(pre_delete, sender=FinancialMonth)
def prevent_delete_closed_month(sender, instance, **kwargs):
    if instance.is_closed:
        raise LedgerError(f"Cannot delete closed financial month {instance}.")


@receiver(pre_delete, sender=MonthCloseSnapshot)
def prevent_delete_close_snapshot(sender, instance, **kwargs):
    raise LedgerError("Month close snapshots cannot be deleted.")
