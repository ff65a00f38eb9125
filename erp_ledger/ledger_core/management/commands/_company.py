from django.core.management.base import CommandError

from ledger_core.models import Company


def get_company(value):
    """--company accepts a primary key or a slug."""
    lookup = {"pk": int(value)} if str(value).isdigit() else {"slug": value}
    try:
        return Company.objects.get(**lookup)
    except Company.DoesNotExist:
        raise CommandError(f"Company {value!r} does not exist")
