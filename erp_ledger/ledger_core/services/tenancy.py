import logging

from ..exceptions import CrossTenantViolation, JournalValidationError
from ..models import Company

logger = logging.getLogger(__name__)


# ----------------------------
# Tenant scoping helpers
# ----------------------------
def resolve_company(company):
    """Accept a Company or its primary key."""
    if isinstance(company, Company):
        return company
    try:
        return Company.objects.get(pk=company)
    except (Company.DoesNotExist, ValueError, TypeError):
        raise JournalValidationError(f"Unknown company {company!r}")


def report_cross_tenant(company, what, ids):
    """Log at high severity and raise. Cross-tenant references are
    programming/security errors in the calling module."""
    ids = sorted(ids)
    logger.critical(
        "Cross-tenant reference blocked: %s %s do not belong to company %s",
        what, ids, company.pk,
        extra={"company_id": company.pk, "object_type": what, "object_ids": ids},
    )
    raise CrossTenantViolation(
        f"{what} {ids} belong to a different company than {company}"
    )


def assert_same_tenant(company, objects, what):
    """Every object must carry company's key."""
    foreign = {obj.pk for obj in objects if obj.company_id != company.pk}
    if foreign:
        report_cross_tenant(company, what, foreign)


def as_pk(value, what="id"):
    """Primary key from an instance, int or numeric string."""
    if hasattr(value, "pk"):
        return value.pk
    if isinstance(value, bool):
        raise JournalValidationError(f"{what} {value!r} is not a valid id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise JournalValidationError(f"{what} {value!r} is not a valid id")


def fetch_scoped(model, company, ids, what, not_found=JournalValidationError, queryset=None):
    """
    Load `ids` through the tenant-qualified manager.
    Ids that exist only under another company → CrossTenantViolation,
    ids that exist nowhere → `not_found`.
    Returns {pk: instance}.
    """
    ids = {as_pk(i, what) for i in ids}
    qs = queryset if queryset is not None else model.objects.all()
    found = {obj.pk: obj for obj in qs.filter(company=company, pk__in=ids)}
    missing = ids - found.keys()
    if missing:
        # existence probe only, the rows are never used
        foreign = set(
            model.objects.filter(pk__in=missing)
            .exclude(company=company)
            .values_list("pk", flat=True)
        )
        if foreign:
            report_cross_tenant(company, what, foreign)
        raise not_found(f"Unknown {what} for {company}: {sorted(missing)}")
    return found
