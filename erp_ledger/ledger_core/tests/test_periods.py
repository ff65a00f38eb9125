import datetime
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import (OutOfOrderCloseError, PeriodAlreadyClosedError,
                          PeriodClosedError)
from ..models import (AuditLog, FinancialMonth, JournalEntry, MonthCloseSnapshot,
                      MonthStatus)
from ..services import periods as period_service
from ..services.periods import assert_open, close_month, current_open_from
from ..services.posting import post
from .utils import accounts_by_code, cr, dr, make_company

User = get_user_model()


class MonthCloseTests(TestCase):

    def setUp(self):
        self.company = make_company("Test Co")
        self.acc = accounts_by_code(self.company)
        self.user = User.objects.create_user(username="closer", password="pw")

    def _sale(self, date, amount="100.00", company=None, acc=None):
        company = company or self.company
        acc = acc or self.acc
        return post(company, date, "sale", "Manual Entry",
                    [dr(acc["1000"], amount), cr(acc["4000"], amount)])

    def test_close_flips_status_and_records_closer(self):
        self._sale("2025-01-10")
        snapshot = close_month(self.company, "2025-01-31", user=self.user)

        month = FinancialMonth.objects.get(company=self.company, year=2025, month=1)
        self.assertTrue(month.is_closed)
        self.assertEqual(month.closed_by, self.user)
        self.assertIsNotNone(month.closed_at)
        self.assertEqual(snapshot.financial_month, month)

    def test_snapshot_archives_month_totals(self):
        self._sale("2025-01-10", "100.00")
        self._sale("2025-01-20", "50.00")
        self._sale("2025-02-01", "999.00")  # next month, not in the snapshot

        snapshot = close_month(self.company, "2025-01-31")

        self.assertEqual(snapshot.entry_count, 2)
        self.assertEqual(snapshot.total_debit, Decimal("150.00"))
        self.assertEqual(snapshot.total_credit, Decimal("150.00"))
        by_code = {row["code"]: row for row in snapshot.account_movements}
        self.assertEqual(by_code["1000"]["debit"], "150.00")
        self.assertEqual(by_code["4000"]["balance"], "150.00")
        self.assertEqual(MonthCloseSnapshot.objects.for_company(self.company).count(), 1)

    def test_close_writes_audit_row(self):
        close_month(self.company, "2025-01-31", user=self.user)
        log = AuditLog.objects.for_company(self.company).get(action="close_month")
        self.assertEqual(log.object_type, "FinancialMonth")
        self.assertEqual(log.changes["month"], "2025-01")

    def test_posting_into_closed_month_fails_with_open_from(self):
        self._sale("2025-01-10")
        close_month(self.company, "2025-01-31")

        with self.assertRaises(PeriodClosedError) as ctx:
            self._sale("2025-01-15")

        self.assertEqual(ctx.exception.date, datetime.date(2025, 1, 15))
        self.assertEqual(ctx.exception.open_from, datetime.date(2025, 2, 1))
        self.assertEqual(JournalEntry.objects.for_company(self.company).count(), 1)

    def test_posting_before_the_closed_frontier_fails(self):
        close_month(self.company, "2025-01-31")
        with self.assertRaises(PeriodClosedError):
            self._sale("2024-11-30")

    def test_posting_into_next_month_still_works(self):
        close_month(self.company, "2025-01-31")
        entry = self._sale("2025-02-01")
        self.assertEqual(entry.date, datetime.date(2025, 2, 1))

    def test_month_end_may_be_any_date_in_month(self):
        snapshot = close_month(self.company, datetime.date(2025, 1, 5))
        self.assertEqual(snapshot.financial_month.start_date, datetime.date(2025, 1, 1))
        self.assertEqual(snapshot.financial_month.end_date, datetime.date(2025, 1, 31))

    def test_closing_twice_raises_already_closed(self):
        close_month(self.company, "2025-01-31")
        with self.assertRaises(PeriodAlreadyClosedError):
            close_month(self.company, "2025-01-31")

    def test_months_close_in_order(self):
        close_month(self.company, "2025-01-31")
        with self.assertRaises(OutOfOrderCloseError):
            close_month(self.company, "2025-03-31")  # February still open

        close_month(self.company, "2025-02-28")
        close_month(self.company, "2025-03-31")
        self.assertEqual(current_open_from(self.company), datetime.date(2025, 4, 1))

    def test_first_close_requires_earlier_months_closed(self):
        self._sale("2025-01-10")  # January materialized and open
        self._sale("2025-02-10")
        with self.assertRaises(OutOfOrderCloseError):
            close_month(self.company, "2025-02-28")
        self.assertFalse(
            FinancialMonth.objects.for_company(self.company).filter(status="closed").exists()
        )

    def test_cannot_close_month_before_the_frontier(self):
        close_month(self.company, "2025-01-31")
        with self.assertRaises(OutOfOrderCloseError):
            close_month(self.company, "2024-12-31")
        # rejected close leaves no row behind
        self.assertFalse(
            FinancialMonth.objects.filter(company=self.company, year=2024, month=12).exists()
        )

    def test_closing_year_boundary(self):
        close_month(self.company, "2024-12-31")
        close_month(self.company, "2025-01-31")
        self.assertEqual(current_open_from(self.company), datetime.date(2025, 2, 1))

    def test_calendars_are_per_company(self):
        other = make_company("Other Co")
        other_acc = accounts_by_code(other)
        close_month(self.company, "2025-01-31")

        # the other company's January is unaffected
        entry = self._sale("2025-01-15", company=other, acc=other_acc)
        self.assertEqual(entry.company, other)
        self.assertIsNone(current_open_from(other))

    def test_assert_open_without_lock_creates_nothing(self):
        assert_open(self.company, "2025-06-15")
        self.assertFalse(FinancialMonth.objects.exists())

    def test_closed_month_cannot_be_reopened(self):
        snapshot = close_month(self.company, "2025-01-31")
        month = snapshot.financial_month
        month.status = "open"
        with self.assertRaises(ValidationError):
            month.save()


class PeriodLockingTests(TestCase):
    """Which rows posting and closing lock before they decide."""

    def setUp(self):
        self.company = make_company("Test Co")
        self.acc = accounts_by_code(self.company)

    def _sale(self, date):
        return post(self.company, date, "sale", "Manual Entry",
                    [dr(self.acc["1000"], "10"), cr(self.acc["4000"], "10")])

    def test_close_locks_the_company_first(self):
        with mock.patch.object(period_service, "_lock_company",
                               wraps=period_service._lock_company) as lock_company:
            close_month(self.company, "2025-01-31")
        lock_company.assert_called_once_with(self.company)

    def test_posting_into_a_new_month_locks_the_company(self):
        with mock.patch.object(period_service, "_lock_company",
                               wraps=period_service._lock_company) as lock_company:
            self._sale("2025-01-10")
            self.assertEqual(lock_company.call_count, 1)

            # the month row exists now; only that row is locked
            self._sale("2025-01-11")
            self.assertEqual(lock_company.call_count, 1)

    def test_close_committed_while_waiting_for_the_lock(self):
        real_lock = period_service._lock_company

        def close_meanwhile(company):
            # another transaction closed January before our lock was granted
            FinancialMonth.objects.create(
                company=company, year=2025, month=1, status=MonthStatus.CLOSED,
            )
            return real_lock(company)

        with mock.patch.object(period_service, "_lock_company", side_effect=close_meanwhile):
            with self.assertRaises(PeriodClosedError) as ctx:
                self._sale("2025-01-10")

        self.assertEqual(ctx.exception.open_from, datetime.date(2025, 2, 1))
        self.assertFalse(JournalEntry.objects.for_company(self.company).exists())
