"""
Commission calculator tests.
Pure decimal arithmetic, no database.
"""

from decimal import Decimal

from django.test import SimpleTestCase

from apps.affiliates.commission_service import CommissionCalculator, to_decimal


class CommissionCalculatorTests(SimpleTestCase):
    """round_half_up(order_amount * rate / 100, 2)"""

    EXPECTED = {
        ('0.01', '10'): '0.00',
        ('0.01', '12'): '0.00',
        ('0.01', '15'): '0.00',
        ('0.01', '18'): '0.00',
        ('9.99', '10'): '1.00',
        ('9.99', '12'): '1.20',
        ('9.99', '15'): '1.50',
        ('9.99', '18'): '1.80',
        ('100.00', '10'): '10.00',
        ('100.00', '12'): '12.00',
        ('100.00', '15'): '15.00',
        ('100.00', '18'): '18.00',
        ('1234.56', '10'): '123.46',
        ('1234.56', '12'): '148.15',
        ('1234.56', '15'): '185.18',
        ('1234.56', '18'): '222.22',
    }

    def test_tier_rates_across_order_amounts(self):
        """Every tier rate applied to small, odd and large amounts"""
        for (amount, rate), expected in self.EXPECTED.items():
            with self.subTest(amount=amount, rate=rate):
                self.assertEqual(
                    CommissionCalculator.calculate(Decimal(amount), Decimal(rate)),
                    Decimal(expected),
                )

    def test_half_cent_rounds_up(self):
        """0.005 rounds to 0.01, not to the even 0.00"""
        self.assertEqual(CommissionCalculator.calculate(Decimal('0.05'), Decimal('10')), Decimal('0.01'))
        self.assertEqual(CommissionCalculator.calculate(Decimal('0.25'), Decimal('10')), Decimal('0.03'))

    def test_end_to_end_example(self):
        """200.00 at 10% is 20.00"""
        self.assertEqual(CommissionCalculator.calculate(Decimal('200.00'), Decimal('10.00')), Decimal('20.00'))

    def test_float_inputs_go_through_their_string_form(self):
        """0.1 + 0.2 style float noise does not leak into the result"""
        self.assertEqual(CommissionCalculator.calculate(19.99, 15), Decimal('3.00'))
        self.assertEqual(CommissionCalculator.calculate('19.99', '15'), Decimal('3.00'))

    def test_zero_amount_and_zero_rate(self):
        self.assertEqual(CommissionCalculator.calculate(Decimal('0.00'), Decimal('18')), Decimal('0.00'))
        self.assertEqual(CommissionCalculator.calculate(Decimal('500.00'), Decimal('0')), Decimal('0.00'))

    def test_result_has_two_decimal_places(self):
        result = CommissionCalculator.calculate(Decimal('100'), Decimal('10'))
        self.assertEqual(result.as_tuple().exponent, -2)

    def test_to_decimal_rejects_garbage(self):
        with self.assertRaises(ValueError):
            to_decimal('twelve')
        with self.assertRaises(ValueError):
            to_decimal(None)
