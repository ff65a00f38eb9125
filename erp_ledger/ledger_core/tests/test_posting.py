import datetime
from decimal import Decimal
from unittest import mock

from django.core.exceptions import ValidationError  # Built-in way to raise validation errors
from django.db import transaction
from django.test import TestCase

from ..exceptions import (AccountNotFound, CrossTenantViolation,
                          DuplicatePostingError, JournalValidationError,
                          UnbalancedJournalError)
from ..models import AuditLog, FinancialMonth, JournalEntry, JournalLine, ReferenceKind
from ..services.chart import deactivate_account
from ..services.posting import (entries_in_range, entry_totals, post,
                                post_idempotent)
from ..services.references import ReferenceBinding, entries_for, normalize
from .utils import accounts_by_code, cr, dr, make_company


""" Success tests """
class PostingSuccessTests(TestCase):

    def setUp(self):
        self.company = make_company("Test Co")
        self.acc = accounts_by_code(self.company)
        self.cash = self.acc["1000"]
        self.revenue = self.acc["4000"]

    """ Balanced entry is persisted with its lines and total """
    def test_balanced_entry_posts_successfully(self):
        entry = post(
            self.company, datetime.date(2025, 9, 15), "Cash sale", "Manual Entry",
            [dr(self.cash, "100.00"), cr(self.revenue, "100.00")],
        )

        entry.refresh_from_db()  # get up-to-date values
        self.assertEqual(entry.status, "posted")
        self.assertEqual(entry.total, Decimal("100.00"))
        self.assertEqual(entry.lines.count(), 2)
        self.assertEqual(entry_totals(entry), (Decimal("100.00"), Decimal("100.00")))
        self.assertTrue(entry.is_balanced())

    def test_every_line_carries_the_entry_company(self):
        entry = post(
            self.company, "2025-09-15", "Cash sale", "Manual Entry",
            [dr(self.cash, "60"), cr(self.revenue, "40"), cr(self.acc["2100"], "20")],
        )
        companies = set(entry.lines.values_list("company_id", flat=True))
        self.assertEqual(companies, {self.company.pk})

    def test_accepts_account_ids_and_string_amounts(self):
        entry = post(
            self.company, "2025-09-15", "ids", "Manual Entry",
            [
                {"account": self.cash.pk, "debit": "12.50"},
                {"account_id": str(self.revenue.pk), "credit": "12.50"},
            ],
        )
        self.assertEqual(entry.total, Decimal("12.50"))
        self.assertEqual(
            JournalLine.objects.get(journal=entry, account=self.revenue).credit, Decimal("12.50")
        )

    def test_accepts_integer_amounts(self):
        entry = post(
            self.company, "2025-09-15", "ints", "Manual Entry",
            [{"account": self.cash, "debit": 12}, {"account": self.revenue, "credit": "12"}],
        )
        self.assertEqual(entry.total, Decimal("12.00"))

    def test_largest_amount_is_stored_exactly(self):
        entry = post(
            self.company, datetime.date(2025, 9, 15), "Large", "Manual Entry",
            [dr(self.cash, "999999999999.99"), cr(self.revenue, "999999999999.99")],
        )
        entry.refresh_from_db()
        self.assertEqual(entry.total, Decimal("999999999999.99"))
        line = entry.lines.get(account=self.cash)
        self.assertEqual(line.debit, Decimal("999999999999.99"))

    def test_posting_materializes_open_month(self):
        post(self.company, "2025-03-10", "x", "Manual Entry",
             [dr(self.cash, "1"), cr(self.revenue, "1")])
        month = FinancialMonth.objects.get(company=self.company, year=2025, month=3)
        self.assertFalse(month.is_closed)
        self.assertEqual(month.start_date, datetime.date(2025, 3, 1))
        self.assertEqual(month.end_date, datetime.date(2025, 3, 31))

    def test_post_writes_audit_row(self):
        entry = post(self.company, "2025-09-15", "audited", "Manual Entry",
                     [dr(self.cash, "5"), cr(self.revenue, "5")])
        log = AuditLog.objects.for_company(self.company).get(action="post")
        self.assertEqual(log.object_type, "JournalEntry")
        self.assertEqual(log.object_id, str(entry.pk))
        self.assertEqual(log.changes["total"], "5.00")

    def test_default_binding_is_none_and_not_exclusive(self):
        entry = post(self.company, "2025-09-15", "manual", "Manual Entry",
                     [dr(self.cash, "5"), cr(self.revenue, "5")])
        self.assertEqual(entry.reference, ReferenceBinding(ReferenceKind.NONE, None, "", False))


""" Failure tests: nothing is persisted """
class PostingFailureTests(TestCase):

    def setUp(self):
        self.company = make_company("Test Co")
        self.acc = accounts_by_code(self.company)
        self.cash = self.acc["1000"]
        self.revenue = self.acc["4000"]
        self.date = datetime.date(2025, 9, 15)

    def assertNothingPosted(self):
        self.assertFalse(JournalEntry.objects.exists())
        self.assertFalse(JournalLine.objects.exists())

    def test_unbalanced_entry_raises_and_persists_nothing(self):
        with self.assertLogs("ledger_core.services.posting", level="WARNING"):
            with self.assertRaises(UnbalancedJournalError) as ctx:
                post(self.company, self.date, "bad", "Manual Entry",
                     [dr(self.cash, "100.00"), cr(self.revenue, "90.00")])
        self.assertEqual(ctx.exception.total_debit, Decimal("100.00"))
        self.assertEqual(ctx.exception.total_credit, Decimal("90.00"))
        self.assertNothingPosted()
        # the month row created by the period gate is rolled back as well
        self.assertFalse(FinancialMonth.objects.exists())

    def test_single_line_entry_is_unbalanced(self):
        with self.assertRaises(UnbalancedJournalError):
            post(self.company, self.date, "one", "Manual Entry", [dr(self.cash, "10")])
        self.assertNothingPosted()

    def test_empty_lines_rejected(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "none", "Manual Entry", [])
        self.assertNothingPosted()

    def test_line_with_both_sides_rejected(self):
        line = {"account": self.cash, "debit": Decimal("10"), "credit": Decimal("10")}
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "both", "Manual Entry", [line, cr(self.revenue, "0.01")])
        self.assertNothingPosted()

    def test_zero_line_rejected(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "zero", "Manual Entry",
                 [{"account": self.cash}, cr(self.revenue, "0")])

    def test_negative_amount_rejected(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "neg", "Manual Entry",
                 [dr(self.cash, "-5"), cr(self.revenue, "-5")])

    def test_float_amount_rejected(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "float", "Manual Entry",
                 [{"account": self.cash, "debit": 0.1}, {"account": self.revenue, "credit": 0.1}])

    def test_more_than_two_decimals_rejected_not_rounded(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "precision", "Manual Entry",
                 [dr(self.cash, "10.005"), cr(self.revenue, "10.005")])
        self.assertNothingPosted()

    def test_missing_account_rejected(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "no acct", "Manual Entry",
                 [{"debit": Decimal("1")}, cr(self.revenue, "1")])

    def test_unknown_account_raises_not_found(self):
        with self.assertRaises(AccountNotFound):
            post(self.company, self.date, "ghost", "Manual Entry",
                 [{"account": 999999, "debit": Decimal("1")}, cr(self.revenue, "1")])
        self.assertNothingPosted()

    def test_account_not_found_is_a_validation_error(self):
        with self.assertRaises(ValidationError):
            post(self.company, self.date, "ghost", "Manual Entry",
                 [{"account": 999999, "debit": Decimal("1")}, cr(self.revenue, "1")])

    def test_inactive_account_rejects_new_postings(self):
        deactivate_account(self.company, self.cash)
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "inactive", "Manual Entry",
                 [dr(self.cash, "1"), cr(self.revenue, "1")])

    def test_cross_tenant_account_rejected_even_when_balanced(self):
        other = make_company("Other Co")
        foreign_cash = accounts_by_code(other)["1000"]
        with self.assertLogs("ledger_core.services.tenancy", level="CRITICAL"):
            with self.assertRaises(CrossTenantViolation):
                post(self.company, self.date, "steal", "Manual Entry",
                     [dr(foreign_cash, "50"), cr(self.revenue, "50")])
        self.assertNothingPosted()

    def test_cross_tenant_wins_over_unbalanced(self):
        other = make_company("Other Co")
        foreign_cash = accounts_by_code(other)["1000"]
        with self.assertRaises(CrossTenantViolation):
            post(self.company, self.date, "steal", "Manual Entry",
                 [dr(foreign_cash, "50"), cr(self.revenue, "10")])

    def test_invalid_date_rejected(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, "2025-13-45", "bad date", "Manual Entry",
                 [dr(self.cash, "1"), cr(self.revenue, "1")])

    def test_lines_that_are_not_objects_rejected(self):
        with self.assertRaises(JournalValidationError) as ctx:
            post(self.company, self.date, "ints", "Manual Entry", [1, 2])
        self.assertIn("Line 1", str(ctx.exception))
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "strings", "Manual Entry", ["1000", "4000"])
        self.assertNothingPosted()

    def test_lines_must_be_a_list(self):
        for lines in (5, "1000", {"account": 1, "debit": "1"}):
            with self.subTest(lines=lines):
                with self.assertRaises(JournalValidationError):
                    post(self.company, self.date, "bad lines", "Manual Entry", lines)
        self.assertNothingPosted()

    def test_amount_above_the_largest_amount_rejected(self):
        for amount in ("1000000000000.00", "10000000000000.01"):
            with self.subTest(amount=amount):
                with self.assertRaises(JournalValidationError) as ctx:
                    post(self.company, self.date, "huge", "Manual Entry",
                         [dr(self.cash, amount), cr(self.revenue, amount)])
                self.assertIn("largest amount", str(ctx.exception))
        self.assertNothingPosted()

    def test_entry_total_above_the_largest_amount_rejected(self):
        with self.assertRaises(JournalValidationError) as ctx:
            post(self.company, self.date, "huge total", "Manual Entry", [
                dr(self.cash, "600000000000.00"), dr(self.acc["1050"], "600000000000.00"),
                cr(self.revenue, "600000000000.00"), cr(self.acc["4100"], "600000000000.00"),
            ])
        self.assertIn("largest entry total", str(ctx.exception))
        self.assertNothingPosted()


""" Reference binding / duplicate postings """
class ReferenceBindingTests(TestCase):

    def setUp(self):
        self.company = make_company("Test Co")
        self.acc = accounts_by_code(self.company)
        self.lines = [dr(self.acc["1100"], "115"), cr(self.acc["4000"], "100"), cr(self.acc["2100"], "15")]
        self.date = datetime.date(2025, 9, 15)

    def test_second_posting_for_exclusive_binding_fails(self):
        ref = ReferenceBinding(ReferenceKind.INVOICE, 42, "revenue")
        first = post(self.company, self.date, "Invoice 42", "Invoice", self.lines, reference=ref)

        with self.assertRaises(DuplicatePostingError) as ctx:
            post(self.company, self.date, "Invoice 42 again", "Invoice", self.lines, reference=ref)

        self.assertEqual(ctx.exception.existing_entry_id, first.pk)
        self.assertEqual(JournalEntry.objects.for_company(self.company).count(), 1)

    def test_distinct_qualifiers_are_independent(self):
        revenue = ReferenceBinding(ReferenceKind.INVOICE, 42, "revenue")
        cogs = ReferenceBinding(ReferenceKind.INVOICE, 42, "cogs")
        post(self.company, self.date, "rev", "Invoice", self.lines, reference=revenue)
        post(
            self.company, self.date, "cogs", "Invoice",
            [dr(self.acc["5000"], "60"), cr(self.acc["1200"], "60")],
            reference=cogs,
        )
        self.assertEqual(
            JournalEntry.objects.for_company(self.company)
            .filter(reference_kind="invoice", reference_id=42).count(),
            2,
        )

    def test_same_binding_in_other_company_is_allowed(self):
        other = make_company("Other Co")
        oacc = accounts_by_code(other)
        ref = ReferenceBinding(ReferenceKind.PAYSLIP, 7)
        post(self.company, self.date, "pay", "Payroll",
             [dr(self.acc["6000"], "10"), cr(self.acc["1050"], "10")], reference=ref)
        post(other, self.date, "pay", "Payroll",
             [dr(oacc["6000"], "10"), cr(oacc["1050"], "10")], reference=ref)
        self.assertEqual(JournalEntry.objects.count(), 2)

    def test_non_exclusive_binding_allows_repeats(self):
        ref = ReferenceBinding(ReferenceKind.STOCK_ADJUSTMENT, 3, exclusive=False)
        lines = [dr(self.acc["5050"], "5"), cr(self.acc["1200"], "5")]
        post(self.company, self.date, "adj", "Stock", lines, reference=ref)
        post(self.company, self.date, "adj", "Stock", lines, reference=ref)
        self.assertEqual(JournalEntry.objects.for_company(self.company).count(), 2)

    def test_tuple_reference_accepted(self):
        entry = post(self.company, self.date, "Invoice 9", "Invoice", self.lines,
                     reference=("invoice", 9))
        self.assertEqual(entry.reference.kind, "invoice")
        self.assertEqual(entry.reference.source_id, 9)
        self.assertTrue(entry.reference.exclusive)

    def test_unknown_kind_rejected(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "x", "Invoice", self.lines,
                 reference=ReferenceBinding("spaceship", 1))

    def test_kind_none_takes_no_source_id(self):
        with self.assertRaises(JournalValidationError):
            post(self.company, self.date, "x", "Invoice", self.lines,
                 reference=ReferenceBinding(ReferenceKind.NONE, 1))

    def test_post_idempotent_returns_existing_entry(self):
        ref = ReferenceBinding(ReferenceKind.CUSTOMER_PAYMENT, 11)
        lines = [dr(self.acc["1050"], "115"), cr(self.acc["1100"], "115")]
        first = post_idempotent(self.company, self.date, "payment", "Payment", lines, ref)
        again = post_idempotent(self.company, self.date, "payment", "Payment", lines, ref)
        self.assertEqual(first.pk, again.pk)
        self.assertEqual(JournalEntry.objects.for_company(self.company).count(), 1)

    def test_unique_index_catches_concurrent_duplicate(self):
        """The pre-check can lose a race; the database index still refuses the second row."""
        ref = ReferenceBinding(ReferenceKind.INVOICE, 77)
        first = post(self.company, self.date, "Invoice 77", "Invoice", self.lines, reference=ref)

        # simulate the other transaction not yet seeing `first`
        with mock.patch("ledger_core.services.posting.bind",
                        side_effect=lambda company, binding: normalize(binding)):
            with self.assertRaises(DuplicatePostingError) as ctx:
                post(self.company, self.date, "Invoice 77", "Invoice", self.lines, reference=ref)

        self.assertEqual(ctx.exception.existing_entry_id, first.pk)
        self.assertEqual(JournalEntry.objects.for_company(self.company).count(), 1)


""" Posted rows are append-only """
class ImmutabilityTests(TestCase):

    def setUp(self):
        self.company = make_company("Test Co")
        acc = accounts_by_code(self.company)
        self.entry = post(self.company, "2025-09-15", "sale", "Manual Entry",
                          [dr(acc["1000"], "100"), cr(acc["4000"], "100")])

    def test_cannot_change_entry_amount_fields(self):
        self.entry.total = Decimal("1.00")
        with self.assertRaises(JournalValidationError):
            self.entry.save()

    def test_cannot_change_line_amount(self):
        line = self.entry.lines.first()
        line.debit = line.debit + 1
        with self.assertRaises(JournalValidationError):
            line.save()

    def test_cannot_delete_entry(self):
        with self.assertRaises(JournalValidationError):
            self.entry.delete()
        self.assertTrue(JournalEntry.objects.filter(pk=self.entry.pk).exists())

    def test_queryset_delete_of_lines_blocked(self):
        with self.assertRaises(JournalValidationError):
            with transaction.atomic():
                JournalLine.objects.filter(journal=self.entry).delete()
        self.assertEqual(self.entry.lines.count(), 2)


""" Looking entries up """
class EntryLookupTests(TestCase):

    def setUp(self):
        self.company = make_company("Test Co")
        self.acc = accounts_by_code(self.company)
        self.lines = [dr(self.acc["1100"], "10"), cr(self.acc["4000"], "10")]

    def _post(self, date, reference=None, company=None, lines=None):
        return post(company or self.company, date, "entry", "Invoice",
                    lines or self.lines, reference=reference)

    def test_entries_in_range_is_inclusive_and_ordered(self):
        feb = self._post("2025-02-01")
        jan_end = self._post("2025-01-31")
        jan_start = self._post("2025-01-01")
        self._post("2024-12-31")

        entries = entries_in_range(self.company, datetime.date(2025, 1, 1), datetime.date(2025, 2, 1))
        self.assertEqual(list(entries), [jan_start, jan_end, feb])

    def test_entries_in_range_open_bounds(self):
        old = self._post("2024-06-30")
        new = self._post("2025-06-30")
        self.assertEqual(list(entries_in_range(self.company)), [old, new])
        self.assertEqual(list(entries_in_range(self.company, start=datetime.date(2025, 1, 1))), [new])
        self.assertEqual(list(entries_in_range(self.company, end=datetime.date(2025, 1, 1))), [old])

    def test_entries_in_range_is_tenant_scoped(self):
        other = make_company("Other Co")
        oacc = accounts_by_code(other)
        self._post("2025-01-10", company=other, lines=[dr(oacc["1100"], "10"), cr(oacc["4000"], "10")])
        self.assertFalse(entries_in_range(self.company).exists())

    def test_entries_for_source_document(self):
        revenue = self._post("2025-01-10", ReferenceBinding(ReferenceKind.INVOICE, 42, "revenue"))
        cogs = self._post(
            "2025-01-10", ReferenceBinding(ReferenceKind.INVOICE, 42, "cogs"),
            lines=[dr(self.acc["5000"], "6"), cr(self.acc["1200"], "6")],
        )
        self._post("2025-01-11", ReferenceBinding(ReferenceKind.INVOICE, 43))
        self._post("2025-01-11", ReferenceBinding(ReferenceKind.SALES_ORDER, 42))

        self.assertEqual(list(entries_for(self.company, "invoice", 42)), [revenue, cogs])
        self.assertEqual(list(entries_for(self.company, ReferenceKind.INVOICE, "42")), [revenue, cogs])
        self.assertFalse(entries_for(self.company, "invoice", 44).exists())

    def test_entries_for_rejects_unknown_kind(self):
        with self.assertRaises(JournalValidationError):
            entries_for(self.company, "spaceship", 1)
