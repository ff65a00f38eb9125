from django.db import IntegrityError, transaction
from django.test import TestCase

from ..exceptions import AccountInUseError
from ..models import Account, AccountType, NormalSide
from ..services.chart import (DEFAULT_CHART, deactivate_account,
                              delete_account, normal_side,
                              seed_default_chart)
from ..services.posting import post
from .utils import accounts_by_code, cr, dr, make_company


class ChartOfAccountsTests(TestCase):

    def setUp(self):
        self.company = make_company("Test Co")
        self.acc = accounts_by_code(self.company)

    def test_default_chart_seeded(self):
        self.assertEqual(len(self.acc), len(DEFAULT_CHART))
        self.assertEqual(self.acc["1000"].subtype, "asset_cash")
        self.assertEqual(self.acc["2000"].ac_type, AccountType.LIABILITY)
        self.assertTrue(self.acc["3100"].is_system)

    def test_seeding_is_idempotent(self):
        self.assertEqual(seed_default_chart(self.company), 0)
        self.assertEqual(Account.objects.for_company(self.company).count(), len(DEFAULT_CHART))

    def test_normal_side_is_a_function_of_type(self):
        self.assertEqual(normal_side(self.acc["1000"]), NormalSide.DEBIT)
        self.assertEqual(normal_side(self.acc["6100"]), NormalSide.DEBIT)
        self.assertEqual(normal_side(self.acc["2000"]), NormalSide.CREDIT)
        self.assertEqual(normal_side(self.acc["3000"]), NormalSide.CREDIT)
        self.assertEqual(normal_side(self.acc["4000"]), NormalSide.CREDIT)
        self.assertTrue(self.acc["1590"].is_debit_normal)  # contra asset is still an asset

    def test_code_unique_per_company(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Account.objects.create(company=self.company, code="1000", name="Another cash",
                                       ac_type=AccountType.ASSET)

    def test_same_code_in_other_company(self):
        other = make_company("Other Co")
        self.assertEqual(accounts_by_code(other)["1000"].name, "Cash")

    def test_unused_account_can_be_deleted(self):
        delete_account(self.company, self.acc["1010"])
        self.assertFalse(Account.objects.filter(pk=self.acc["1010"].pk).exists())

    def test_account_with_lines_cannot_be_deleted(self):
        post(self.company, "2025-01-10", "sale", "Manual Entry",
             [dr(self.acc["1000"], "10"), cr(self.acc["4000"], "10")])

        with self.assertRaises(AccountInUseError):
            delete_account(self.company, self.acc["1000"])
        with self.assertRaises(AccountInUseError):
            self.acc["4000"].delete()
        self.assertTrue(Account.objects.filter(pk=self.acc["1000"].pk).exists())

    def test_deactivate_keeps_account(self):
        post(self.company, "2025-01-10", "sale", "Manual Entry",
             [dr(self.acc["1000"], "10"), cr(self.acc["4000"], "10")])
        account = deactivate_account(self.company, self.acc["1000"])
        account.refresh_from_db()
        self.assertFalse(account.is_active)
        self.assertEqual(account.journalline_set.count(), 1)
        self.assertNotIn(account, Account.objects.active(self.company))

    def test_queryset_delete_of_used_account_is_refused(self):
        post(self.company, "2025-01-10", "sale", "Manual Entry",
             [dr(self.acc["1000"], "10"), cr(self.acc["4000"], "10")])

        with self.assertRaises(AccountInUseError) as ctx:
            with transaction.atomic():
                Account.objects.filter(pk__in=[self.acc["1000"].pk, self.acc["1010"].pk]).delete()
        self.assertIn("1000", str(ctx.exception))
        # nothing in the batch was deleted
        self.assertTrue(Account.objects.filter(pk=self.acc["1010"].pk).exists())

    def test_queryset_delete_of_unused_accounts(self):
        Account.objects.for_company(self.company).filter(code__in=["1010", "1300"]).delete()
        self.assertFalse(
            Account.objects.for_company(self.company).filter(code__in=["1010", "1300"]).exists()
        )
