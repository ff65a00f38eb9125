import csv

from django.core.management.base import BaseCommand, CommandError

from ledger_core.exceptions import LedgerError
from ledger_core.models import Account
from ledger_core.services.reconciliation import import_statement_lines
from ._company import get_company


class Command(BaseCommand):
    help = (
        "Import a bank statement CSV (Date,Description,Debit,Credit) "
        "into a cash/bank account for reconciliation."
    )

    def add_arguments(self, parser):
        parser.add_argument("csv_path", help="Path to the statement CSV file.")
        parser.add_argument("--company", required=True, help="Company id or slug.")
        parser.add_argument("--account", required=True, help="Ledger account code, e.g. 1050.")

    def handle(self, *args, **options):
        company = get_company(options["company"])
        account = Account.objects.for_company(company).filter(code=options["account"]).first()
        if account is None:
            raise CommandError(f"Account {options['account']} does not exist for {company}")

        try:
            with open(options["csv_path"], newline="", encoding="utf-8-sig") as fh:
                # header names are matched case-insensitively
                rows = [
                    {key.strip().lower(): value for key, value in row.items() if key}
                    for row in csv.DictReader(fh)
                ]
        except (OSError, UnicodeDecodeError) as exc:
            raise CommandError(f"Cannot read {options['csv_path']}: {exc}")

        try:
            created = import_statement_lines(company, account, rows)
        except LedgerError as exc:
            raise CommandError(str(exc))

        self.stdout.write(self.style.SUCCESS(
            f"Imported {len(created)} statement lines into {account.code} {account.name}"
        ))
