"""
Commission ledger tests: metrics rebuild, listing filters, payout
eligibility, the per-status breakdown, the creator list and the program
summary.
"""

import uuid
from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, Sum
from django.test import TestCase
from django.utils import timezone

from apps.affiliates.ledger_service import LedgerService
from apps.affiliates.models import CommissionTransaction, Creator, ReferralClick
from apps.affiliates.types import CREATOR_NOT_FOUND, VALIDATION_ERROR
from tests.factories import (
    CreatorCreationRequest,
    create_click,
    create_commission,
    create_creator,
    create_link,
    create_return,
)


class CreatorMetricsTests(TestCase):
    """LedgerService.compute_metrics / record_metrics"""

    def setUp(self):
        self.creator = create_creator()
        self.link = create_link(self.creator)

    def _populate(self):
        now = timezone.now()
        for _ in range(4):
            create_click(self.link)
        create_commission(create_click(self.link), order_amount=Decimal('100.00'), status='approved',
                          created_at=now - timedelta(days=2))
        create_commission(create_click(self.link), order_amount=Decimal('59.99'), status='paid',
                          created_at=now - timedelta(days=1))
        create_commission(create_click(self.link), order_amount=Decimal('500.00'), status='pending')
        create_commission(create_click(self.link), order_amount=Decimal('80.00'), status='cancelled')

    def test_metrics_match_independent_aggregation(self):
        self._populate()

        metrics = LedgerService.compute_metrics(self.creator.pk)

        qualifying = CommissionTransaction.objects.filter(creator=self.creator, status__in=['approved', 'paid'])
        expected = qualifying.aggregate(count=Count('id'), commission=Sum('commission_amount'))
        clicks = ReferralClick.objects.filter(creator=self.creator).count()
        self.assertEqual(metrics.total_clicks, clicks)
        self.assertEqual(metrics.total_clicks, 8)
        self.assertEqual(metrics.total_sales, expected['count'])
        self.assertEqual(metrics.total_sales, 2)
        self.assertEqual(metrics.total_commission, expected['commission'])
        self.assertEqual(metrics.total_commission, Decimal('16.00'))
        self.assertEqual(metrics.conversion_rate, Decimal('25.00'))
        self.assertEqual(metrics.last_sale_date, qualifying.order_by('-created_at').first().created_at)

    def test_repeated_rebuilds_do_not_drift(self):
        self._populate()

        first = LedgerService.record_metrics(self.creator.pk).unwrap()
        second = LedgerService.record_metrics(self.creator.pk).unwrap()

        self.assertEqual(first, second)
        self.creator.refresh_from_db()
        self.assertEqual(self.creator.total_sales, 2)
        self.assertEqual(self.creator.total_clicks, 8)
        self.assertEqual(self.creator.total_commission, Decimal('16.00'))

    def test_rebuild_overwrites_corrupted_cache(self):
        self._populate()
        Creator.objects.filter(pk=self.creator.pk).update(total_sales=999, total_commission=Decimal('12345.00'))

        LedgerService.record_metrics(self.creator.pk)

        self.assertEqual(LedgerService.get_metrics(self.creator.pk).unwrap(),
                         LedgerService.compute_metrics(self.creator.pk))

    def test_conversion_rate_rounds_half_up(self):
        for _ in range(2):
            create_click(self.link)
        create_commission(create_click(self.link))

        # 1 sale out of 3 clicks
        self.assertEqual(LedgerService.compute_metrics(self.creator.pk).conversion_rate, Decimal('33.33'))

    def test_empty_creator(self):
        metrics = LedgerService.compute_metrics(self.creator.pk)

        self.assertEqual(metrics.total_clicks, 0)
        self.assertEqual(metrics.total_sales, 0)
        self.assertEqual(metrics.total_commission, Decimal('0.00'))
        self.assertEqual(metrics.conversion_rate, Decimal('0.00'))
        self.assertIsNone(metrics.last_sale_date)

    def test_metrics_are_scoped_to_creator(self):
        other = create_creator()
        create_commission(create_click(create_link(other)), order_amount=Decimal('1000.00'))
        create_click(self.link)

        metrics = LedgerService.compute_metrics(self.creator.pk)

        self.assertEqual(metrics.total_clicks, 1)
        self.assertEqual(metrics.total_sales, 0)

    def test_as_dict_matches_model_fields(self):
        self._populate()
        stored = LedgerService.record_metrics(self.creator.pk).unwrap().as_dict()

        self.assertEqual(set(stored), {
            'total_clicks', 'total_sales', 'total_commission', 'conversion_rate', 'last_sale_date',
        })

    def test_return_nets_commission_but_not_sales_count(self):
        sale = create_commission(create_click(self.link), order_amount=Decimal('300.00'), status='approved')
        create_return(sale, Decimal('100.00'))

        metrics = LedgerService.compute_metrics(self.creator.pk)

        self.assertEqual(metrics.total_sales, 1)
        self.assertEqual(metrics.total_commission, Decimal('20.00'))
        self.assertEqual(metrics.last_sale_date, sale.created_at)

    def test_unknown_creator(self):
        self.assertEqual(LedgerService.record_metrics(uuid.uuid4()).unwrap_err().code, CREATOR_NOT_FOUND)
        self.assertEqual(LedgerService.get_metrics('garbage').unwrap_err().code, CREATOR_NOT_FOUND)


class TransactionListingTests(TestCase):
    def setUp(self):
        self.creator = create_creator()
        self.link = create_link(self.creator)
        now = timezone.now()
        self.old = create_commission(create_click(self.link), status='paid', created_at=now - timedelta(days=20))
        self.mid = create_commission(create_click(self.link), status='approved', created_at=now - timedelta(days=5))
        self.new = create_commission(create_click(self.link), status='pending', created_at=now)

    def test_newest_first(self):
        transactions = list(LedgerService.list_transactions(self.creator.pk).unwrap())

        self.assertEqual(transactions, [self.new, self.mid, self.old])

    def test_status_filter(self):
        transactions = list(LedgerService.list_transactions(self.creator.pk, status='approved').unwrap())

        self.assertEqual(transactions, [self.mid])

    def test_date_range_filter(self):
        now = timezone.now()
        transactions = list(
            LedgerService.list_transactions(
                self.creator.pk, date_from=now - timedelta(days=10), date_to=now - timedelta(days=1)
            ).unwrap()
        )

        self.assertEqual(transactions, [self.mid])

    def test_unknown_status(self):
        error = LedgerService.list_transactions(self.creator.pk, status='refunded').unwrap_err()

        self.assertEqual(error.code, VALIDATION_ERROR)
        self.assertEqual(error.field, 'status')

    def test_unknown_creator(self):
        self.assertEqual(LedgerService.list_transactions(uuid.uuid4()).unwrap_err().code, CREATOR_NOT_FOUND)


class PayoutEligibilityTests(TestCase):
    def setUp(self):
        self.creator = create_creator(CreatorCreationRequest(minimum_payout=Decimal('50.00')))
        self.link = create_link(self.creator)

    def _commission(self, commission_amount, status):
        # 10% rate, so the order amount is ten times the commission
        return create_commission(
            create_click(self.link), order_amount=Decimal(commission_amount) * 10, status=status
        )

    def test_below_minimum(self):
        self._commission('30.00', 'approved')
        self._commission('100.00', 'paid')
        self._commission('100.00', 'pending')

        eligibility = LedgerService.check_payout_eligibility(self.creator.pk).unwrap()

        self.assertEqual(eligibility.available_for_payout, Decimal('30.00'))
        self.assertEqual(eligibility.total_earnings, Decimal('130.00'))
        self.assertEqual(eligibility.minimum_payout, Decimal('50.00'))
        self.assertFalse(eligibility.is_eligible)

    def test_exactly_minimum_is_eligible(self):
        first = self._commission('20.00', 'approved')
        second = self._commission('30.00', 'approved')
        self._commission('15.00', 'cancelled')

        eligibility = LedgerService.check_payout_eligibility(self.creator.pk).unwrap()

        self.assertEqual(eligibility.available_for_payout, Decimal('50.00'))
        self.assertTrue(eligibility.is_eligible)
        self.assertEqual(set(eligibility.transaction_ids), {str(first.pk), str(second.pk)})
        self.assertEqual(eligibility.creator_id, str(self.creator.pk))

    def test_nothing_earned(self):
        eligibility = LedgerService.check_payout_eligibility(self.creator.pk).unwrap()

        self.assertEqual(eligibility.available_for_payout, Decimal('0.00'))
        self.assertEqual(eligibility.transaction_ids, [])
        self.assertFalse(eligibility.is_eligible)

    def test_unknown_creator(self):
        self.assertEqual(
            LedgerService.check_payout_eligibility(uuid.uuid4()).unwrap_err().code, CREATOR_NOT_FOUND
        )

    def test_approved_return_reduces_available_payout(self):
        sale = self._commission('80.00', 'approved')
        create_return(sale, Decimal('200.00'))

        eligibility = LedgerService.check_payout_eligibility(self.creator.pk).unwrap()

        self.assertEqual(eligibility.available_for_payout, Decimal('60.00'))
        self.assertEqual(eligibility.total_earnings, Decimal('60.00'))
        self.assertTrue(eligibility.is_eligible)


class CommissionBreakdownTests(TestCase):
    def test_every_status_is_present(self):
        creator = create_creator()
        link = create_link(creator)
        create_commission(create_click(link), order_amount=Decimal('100.00'), status='approved')
        create_commission(create_click(link), order_amount=Decimal('250.00'), status='approved')
        create_commission(create_click(link), order_amount=Decimal('40.00'), status='cancelled')

        breakdown = LedgerService.commission_breakdown(creator.pk).unwrap()

        self.assertEqual(set(breakdown), {'pending', 'approved', 'paid', 'cancelled'})
        self.assertEqual(breakdown['approved'], {'count': 2, 'amount': Decimal('35.00')})
        self.assertEqual(breakdown['cancelled'], {'count': 1, 'amount': Decimal('4.00')})
        self.assertEqual(breakdown['pending'], {'count': 0, 'amount': Decimal('0.00')})
        self.assertEqual(breakdown['paid']['count'], 0)


class CreatorListingTests(TestCase):
    """LedgerService.list_creators"""

    def setUp(self):
        self.ana = create_creator(display_name='Ana Lens', email='ana@example.com', creator_code='ANA001')
        self.bo = create_creator(display_name='Bo Beats', email='bo@studio.example', status='pending')
        self.cy = create_creator(display_name='Cy Cooks', email='cy@example.com', status='suspended')

    def test_search_matches_name_email_and_code(self):
        by_name = LedgerService.list_creators(search='lens').unwrap()
        by_email = LedgerService.list_creators(search='studio').unwrap()
        by_code = LedgerService.list_creators(search='ana0').unwrap()

        self.assertEqual(list(by_name), [self.ana])
        self.assertEqual(list(by_email), [self.bo])
        self.assertEqual(list(by_code), [self.ana])

    def test_status_filter(self):
        suspended = LedgerService.list_creators(status='suspended').unwrap()

        self.assertEqual(list(suspended), [self.cy])

    def test_ordering(self):
        Creator.objects.filter(pk=self.bo.pk).update(total_sales=7)
        Creator.objects.filter(pk=self.cy.pk).update(total_sales=3)

        ordered = LedgerService.list_creators(ordering='-total_sales').unwrap()

        self.assertEqual(list(ordered), [self.bo, self.cy, self.ana])

    def test_rejects_unknown_status_and_ordering(self):
        bad_status = LedgerService.list_creators(status='banned')
        bad_ordering = LedgerService.list_creators(ordering='password')

        self.assertEqual(bad_status.unwrap_err().field, 'status')
        self.assertEqual(bad_ordering.unwrap_err().code, VALIDATION_ERROR)


class ProgramSummaryTests(TestCase):
    """LedgerService.program_summary"""

    def setUp(self):
        self.now = timezone.now()
        self.top = create_creator(display_name='Top')
        self.runner_up = create_creator(display_name='Runner Up')
        self.top_link = create_link(self.top)
        self.runner_link = create_link(self.runner_up)

    def test_window_totals_are_net_of_returns(self):
        sale = create_commission(create_click(self.top_link), order_amount=Decimal('400.00'), status='approved')
        create_return(sale, Decimal('100.00'))
        create_commission(create_click(self.runner_link), order_amount=Decimal('100.00'), status='paid')
        create_commission(create_click(self.runner_link), order_amount=Decimal('50.00'), status='cancelled')

        summary = LedgerService.program_summary().unwrap()

        self.assertEqual(summary.total_commission, Decimal('40.00'))
        self.assertEqual(summary.total_paid, Decimal('10.00'))
        self.assertEqual([row.display_name for row in summary.top_creators], ['Top', 'Runner Up'])
        self.assertEqual(summary.top_creators[0].total_commission, Decimal('30.00'))
        self.assertEqual(summary.top_creators[0].total_sales, 1)

    def test_rows_outside_window_are_ignored(self):
        create_commission(create_click(self.top_link), order_amount=Decimal('500.00'), status='approved',
                          created_at=self.now - timedelta(days=45))
        create_commission(create_click(self.runner_link), order_amount=Decimal('100.00'), status='approved')

        summary = LedgerService.program_summary().unwrap()
        wider = LedgerService.program_summary(date_from=self.now - timedelta(days=60)).unwrap()

        self.assertEqual(summary.total_commission, Decimal('10.00'))
        self.assertEqual(wider.total_commission, Decimal('60.00'))
        self.assertEqual(summary.date_to - summary.date_from, timedelta(days=30))

    def test_pending_total_and_active_creators_ignore_window(self):
        create_commission(create_click(self.top_link), order_amount=Decimal('70.00'), status='pending',
                          created_at=self.now - timedelta(days=90))
        create_creator(status='suspended')

        summary = LedgerService.program_summary().unwrap()

        self.assertEqual(summary.pending_commission, Decimal('7.00'))
        self.assertEqual(summary.active_creators, 2)
        self.assertEqual(summary.top_creators, [])

    def test_inverted_window(self):
        result = LedgerService.program_summary(date_from=self.now, date_to=self.now - timedelta(days=1))

        self.assertEqual(result.unwrap_err().field, 'date_from')
