from django.core.management.base import BaseCommand

from ledger_core.services.chart import seed_default_chart
from ._company import get_company


class Command(BaseCommand):
    help = "Create the default chart of accounts for a company (skips codes that exist)."

    def add_arguments(self, parser):
        parser.add_argument("--company", required=True, help="Company id or slug.")

    def handle(self, *args, **options):
        company = get_company(options["company"])
        created = seed_default_chart(company)
        self.stdout.write(self.style.SUCCESS(f"{created} accounts created for {company}"))
