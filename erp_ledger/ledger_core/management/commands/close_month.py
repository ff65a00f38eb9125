from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import LedgerError
from ledger_core.services.periods import close_month, current_open_from
from ._company import get_company

User = get_user_model()


class Command(BaseCommand):
    help = "Close a company's financial month (months close in order)."

    def add_arguments(self, parser):
        parser.add_argument("--company", required=True, help="Company id or slug.")
        parser.add_argument(
            "--month-end",
            required=True,
            help="Any date inside the month to close, e.g. 2025-01-31.",
        )
        parser.add_argument("--user", help="Username recorded as closer.")

    def handle(self, *args, **options):
        company = get_company(options["company"])

        user = None
        if options.get("user"):
            user = User.objects.filter(username=options["user"]).first()
            if user is None:
                raise CommandError(f"User {options['user']!r} does not exist")

        try:
            snapshot = close_month(company, options["month_end"], user=user)
        except LedgerError as exc:
            # surface the rule that blocked the close
            raise CommandError(str(exc))

        month = snapshot.financial_month
        self.stdout.write(self.style.SUCCESS(
            f"Closed {month.year}-{month.month:02d} for {company}: "
            f"{snapshot.entry_count} entries, "
            f"debits {snapshot.total_debit} / credits {snapshot.total_credit}"
        ))
        self.stdout.write(f"Books open from {current_open_from(company)}")
