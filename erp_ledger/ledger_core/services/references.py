import logging
from typing import NamedTuple, Optional

from django.conf import settings

from ..exceptions import DuplicatePostingError, JournalValidationError
from ..models import JournalEntry, ReferenceKind

logger = logging.getLogger(__name__)


def exclusive_kinds():
    """Kinds that allow one entry per (company, kind, id, qualifier)."""
    return set(getattr(settings, "LEDGER_EXCLUSIVE_REFERENCE_KINDS", ())) - {ReferenceKind.NONE}


class ReferenceBinding(NamedTuple):
    """
    Tagged pointer from a journal entry back to the business document
    that produced it, e.g. ReferenceBinding("invoice", 42, "revenue").

    `exclusive=None` means: use the per-kind default from settings.
    """
    kind: str
    source_id: Optional[int] = None
    qualifier: str = ""
    exclusive: Optional[bool] = None

    @classmethod
    def none(cls):
        return cls(ReferenceKind.NONE, None, "", False)

    @classmethod
    def from_entry(cls, entry):
        return cls(
            entry.reference_kind,
            entry.reference_id,
            entry.reference_qualifier,
            entry.reference_exclusive,
        )

    @property
    def is_exclusive(self):
        if self.kind == ReferenceKind.NONE:
            return False
        if self.exclusive is not None:
            return bool(self.exclusive)
        return self.kind in exclusive_kinds()

    def __str__(self):
        if self.kind == ReferenceKind.NONE:
            return "none"
        label = f"{self.kind}:{self.source_id}"
        return f"{label}/{self.qualifier}" if self.qualifier else label


def normalize(binding):
    """Validate a binding and pin down its exclusivity."""
    if binding is None:
        return ReferenceBinding.none()
    if not isinstance(binding, ReferenceBinding):
        # accept ("invoice", 42) / ("invoice", 42, "revenue") tuples
        binding = ReferenceBinding(*binding)

    if binding.kind not in ReferenceKind.values:
        raise JournalValidationError(f"Unknown reference kind {binding.kind!r}")

    qualifier = (binding.qualifier or "").strip()
    if binding.kind == ReferenceKind.NONE:
        if binding.source_id is not None:
            raise JournalValidationError("Reference kind 'none' takes no source id")
        return ReferenceBinding(ReferenceKind.NONE, None, qualifier, False)

    if binding.source_id is None or isinstance(binding.source_id, bool):
        raise JournalValidationError(f"Reference {binding.kind} needs a source id")
    try:
        source_id = int(binding.source_id)
    except (TypeError, ValueError):
        raise JournalValidationError(f"Reference source id {binding.source_id!r} is not an integer")
    if len(qualifier) > 64:
        raise JournalValidationError("Reference qualifier is limited to 64 characters")

    return ReferenceBinding(binding.kind, source_id, qualifier, binding.is_exclusive)


def existing_entry_id(company, binding):
    return (
        JournalEntry.objects.for_company(company)
        .filter(
            reference_kind=binding.kind,
            reference_id=binding.source_id,
            reference_qualifier=binding.qualifier,
            reference_exclusive=True,
        )
        .values_list("pk", flat=True)
        .first()
    )


def bind(company, binding):
    """
    Check a binding before an entry is written.
    Exclusive bindings already used by the company → DuplicatePostingError
    carrying the existing entry id. Returns the normalized binding.
    The unique index on JournalEntry backs this check for concurrent posts.
    """
    binding = normalize(binding)
    if binding.exclusive:
        existing = existing_entry_id(company, binding)
        if existing:
            logger.info("Duplicate posting refused for %s (entry #%s)", binding, existing,
                        extra={"company_id": company.pk})
            raise DuplicatePostingError(binding, existing_entry_id=existing)
    return binding


def entries_for(company, kind, source_id):
    """All entries bound to one source document (any qualifier), oldest first."""
    binding = normalize(ReferenceBinding(kind, source_id))
    return (
        JournalEntry.objects.for_company(company)
        .filter(reference_kind=binding.kind, reference_id=binding.source_id)
        .order_by("date", "pk")
    )
