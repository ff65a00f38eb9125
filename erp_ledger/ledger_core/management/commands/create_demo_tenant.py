import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify

from ledger_core.models import Account, Company, EntityMembership, ReferenceKind
from ledger_core.services.chart import seed_default_chart
from ledger_core.services.posting import post_idempotent
from ledger_core.services.references import ReferenceBinding

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), user, default chart and a few posted entries for testing."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",  # Define flag
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # Generate unique slug for company
        def unique_slug_for_company(name, max_tries=100):
            # Convert company name into a slug (e.g., "Test Ltd" → "test-ltd")
            base = slugify(name) or "company"
            slug = base
            i = 1
            # If plain slug is taken, append -1, -2, etc.
            while Company.objects.filter(slug=slug).exists():
                slug = f"{base}-{i}"
                i += 1
                if i > max_tries:
                    raise RuntimeError("Couldn't generate unique slug")
            return slug

        # 1. Create company (reused when the name exists)
        company = Company.objects.filter(name=company_name).first()
        if company is None:
            company = Company.objects.create(name=company_name, slug=unique_slug_for_company(company_name))
        self.stdout.write(self.style.SUCCESS(f"Company: {company}"))

        # 2. Create user + membership
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:  # only set the password for a new user
            user.set_password(password)
            user.save()
        EntityMembership.objects.get_or_create(
            user=user, company=company, defaults={"role": "owner"}
        )
        if not user.default_company_id:
            user.default_company = company
            user.save(update_fields=["default_company"])
        self.stdout.write(self.style.SUCCESS(f"User: {user.username} (pw={password})"))

        # 3. Default chart of accounts
        created_accounts = seed_default_chart(company)
        self.stdout.write(self.style.SUCCESS(f"Chart of accounts ready ({created_accounts} new)"))

        accounts = {a.code: a for a in Account.objects.for_company(company)}
        today = datetime.date.today()

        # 4. Sample postings; bound to demo documents so re-runs don't duplicate them
        samples = [
            (
                "Owner capital contribution",
                ReferenceBinding(ReferenceKind.JOURNAL_ENTRY, 1, "demo-capital"),
                [("1050", "10000.00", None), ("3000", None, "10000.00")],
            ),
            (
                "Invoice 1001 - consulting",
                ReferenceBinding(ReferenceKind.INVOICE, 1001, "revenue"),
                [("1100", "1150.00", None), ("4100", None, "1000.00"), ("2100", None, "150.00")],
            ),
            (
                "Customer payment for invoice 1001",
                ReferenceBinding(ReferenceKind.CUSTOMER_PAYMENT, 1),
                [("1050", "1150.00", None), ("1100", None, "1150.00")],
            ),
            (
                "Office rent",
                ReferenceBinding(ReferenceKind.EXPENSE, 1),
                [("6100", "800.00", None), ("1050", None, "800.00")],
            ),
        ]
        for description, reference, lines in samples:
            entry = post_idempotent(
                company,
                today,
                description,
                "Demo Data",
                [
                    {
                        "account": accounts[code],
                        "debit": Decimal(debit) if debit else None,
                        "credit": Decimal(credit) if credit else None,
                    }
                    for code, debit, credit in lines
                ],
                reference=reference,
                user=user,
            )
            self.stdout.write(self.style.SUCCESS(f"Posted JE #{entry.pk}: {description}"))

        self.stdout.write(self.style.SUCCESS("Demo tenant setup complete!"))
