import tempfile
import threading
from decimal import Decimal
from pathlib import Path
from unittest import mock

import pandas as pd
from django.db import DatabaseError, connection
from django.test import SimpleTestCase, TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from customer.models import Customer
from . import calculator
from .exceptions import InvalidInput, InvalidState, NotFound, StorageError
from .models import MAX_INTEREST_RATE, MAX_LOAN_AMOUNT, MAX_LOAN_PERIOD_YEARS, Loan, Payment
from .services import LedgerEngine
from .tasks import ingest_loan_data, ingest_payment_data
"""UNIT TESTS FOR THE LENDING LEDGER"""


class CalculatorTest(SimpleTestCase):
    def test_simple_interest_scenario(self):
        terms = calculator.compute(12000, 1, 10)
        self.assertEqual(terms.interest, Decimal('1200'))
        self.assertEqual(terms.total_amount, Decimal('13200'))
        self.assertEqual(terms.monthly_emi, Decimal('1100'))

    def test_totals_follow_simple_interest_formula(self):
        cases = [
            (Decimal('10000'), 2, Decimal('5')),
            (Decimal('2500.50'), 3, Decimal('7.25')),
            (Decimal('1'), 30, Decimal('0')),
            (Decimal('999999.99'), 5, Decimal('18.5')),
        ]
        for principal, years, rate in cases:
            with self.subTest(principal=principal, years=years, rate=rate):
                terms = calculator.compute(principal, years, rate)
                expected_total = principal + principal * years * (rate / 100)
                self.assertEqual(terms.total_amount, expected_total)
                self.assertEqual(terms.monthly_emi, expected_total / (years * 12))

    def test_zero_rate_has_no_interest(self):
        terms = calculator.compute(1200, 1, 0)
        self.assertEqual(terms.interest, 0)
        self.assertEqual(terms.total_amount, Decimal('1200'))
        self.assertEqual(terms.monthly_emi, Decimal('100'))

    def test_remaining_balance_is_floored(self):
        self.assertEqual(calculator.remaining_balance(Decimal('1200'), Decimal('1300')), 0)
        self.assertEqual(calculator.remaining_balance(Decimal('1200'), Decimal('200')), Decimal('1000'))

    def test_emis_left(self):
        self.assertEqual(calculator.count_emis_left(Decimal('13200'), Decimal('1100')), 12)
        self.assertEqual(calculator.count_emis_left(Decimal('1150'), Decimal('1100')), 2)
        self.assertEqual(calculator.count_emis_left(Decimal('0'), Decimal('1100')), 0)
        self.assertEqual(calculator.count_emis_left(Decimal('500'), Decimal('0')), 0)

    def test_emis_left_ignores_sub_cent_residual(self):
        emi = Decimal('458.33333333')
        self.assertEqual(calculator.count_emis_left(Decimal('11000'), emi), 24)
        self.assertEqual(calculator.count_emis_left(Decimal('10541.67'), emi), 23)
        self.assertEqual(calculator.count_emis_left(Decimal('0.08'), emi), 1)


class LedgerEngineTestCase(TestCase):
    def setUp(self):
        self.engine = LedgerEngine()
        self.loan = self.create_loan(customer_id='C100', loan_amount=1200, loan_period_years=1, interest_rate_yearly=0)

    def create_loan(self, **kwargs):
        result = self.engine.create_loan(**kwargs)
        return Loan.objects.get(loan_id=result['loan_id'])


class LoanCreationTest(LedgerEngineTestCase):
    def test_create_loan_persists_active_loan(self):
        result = self.engine.create_loan('C1', 10000, 2, 5)
        loan = Loan.objects.get(loan_id=result['loan_id'])

        self.assertEqual(loan.status, Loan.Status.ACTIVE)
        self.assertEqual(loan.customer_id, 'C1')
        self.assertEqual(loan.total_amount, Decimal('11000'))
        self.assertAlmostEqual(float(loan.monthly_emi), 458.3333, places=4)
        self.assertEqual(result['total_amount_payable'], Decimal('11000'))
        self.assertEqual(result['total_interest'], Decimal('1000'))

    def test_loan_ids_are_unique(self):
        first = self.engine.create_loan('C1', 1000, 1, 5)
        second = self.engine.create_loan('C1', 1000, 1, 5)
        self.assertNotEqual(first['loan_id'], second['loan_id'])

    def test_unknown_customer_is_provisioned(self):
        self.engine.create_loan('NEW-7', 5000, 1, 12)
        customer = Customer.objects.get(customer_id='NEW-7')
        self.assertEqual(customer.name, 'Customer NEW-7')

    def test_existing_customer_is_not_renamed(self):
        Customer.objects.create(customer_id='C2', name='Asha Rao')
        self.engine.create_loan('C2', 5000, 1, 12)
        self.assertEqual(Customer.objects.get(customer_id='C2').name, 'Asha Rao')
        self.assertEqual(Customer.objects.filter(customer_id='C2').count(), 1)

    def test_provisioning_failure_does_not_block_loan(self):
        with mock.patch(
            'django.db.models.query.QuerySet.get_or_create',
            side_effect=DatabaseError('customers table unavailable'),
        ):
            result = self.engine.create_loan('GHOST', 5000, 1, 12)

        self.assertTrue(Loan.objects.filter(loan_id=result['loan_id']).exists())
        self.assertFalse(Customer.objects.filter(customer_id='GHOST').exists())

    def test_invalid_input_is_rejected_before_storage(self):
        invalid = [
            dict(customer_id='', loan_amount=1000, loan_period_years=1, interest_rate_yearly=5),
            dict(customer_id='C1', loan_amount=None, loan_period_years=1, interest_rate_yearly=5),
            dict(customer_id='C1', loan_amount=0, loan_period_years=1, interest_rate_yearly=5),
            dict(customer_id='C1', loan_amount=-10, loan_period_years=1, interest_rate_yearly=5),
            dict(customer_id='C1', loan_amount='abc', loan_period_years=1, interest_rate_yearly=5),
            dict(customer_id='C1', loan_amount=1000, loan_period_years=0, interest_rate_yearly=5),
            dict(customer_id='C1', loan_amount=1000, loan_period_years=1.5, interest_rate_yearly=5),
            dict(customer_id='C1', loan_amount=1000, loan_period_years=1, interest_rate_yearly=-1),
        ]
        loans_before = Loan.objects.count()
        for kwargs in invalid:
            with self.subTest(**kwargs):
                with self.assertRaises(InvalidInput):
                    self.engine.create_loan(**kwargs)
        self.assertEqual(Loan.objects.count(), loans_before)
        self.assertFalse(Customer.objects.filter(customer_id='C1').exists())

    def test_fractional_rate_is_kept_exactly(self):
        result = self.engine.create_loan('C1', 10000, 1, Decimal('7.123456'))
        loan = Loan.objects.get(loan_id=result['loan_id'])
        self.assertEqual(loan.interest_rate, Decimal('7.123456'))
        self.assertEqual(loan.total_amount, Decimal('10712.3456'))

    def test_limits(self):
        too_large = [
            dict(loan_amount=MAX_LOAN_AMOUNT + 1, loan_period_years=1, interest_rate_yearly=5),
            dict(loan_amount=1000, loan_period_years=MAX_LOAN_PERIOD_YEARS + 1, interest_rate_yearly=5),
            dict(loan_amount=1000, loan_period_years=1, interest_rate_yearly=MAX_INTEREST_RATE + 1),
            dict(loan_amount=Decimal('1000.000000001'), loan_period_years=1, interest_rate_yearly=5),
        ]
        for kwargs in too_large:
            with self.subTest(**kwargs):
                with self.assertRaises(InvalidInput):
                    self.engine.create_loan('C1', **kwargs)

    def test_largest_loan_fits_storage(self):
        result = self.engine.create_loan('C1', MAX_LOAN_AMOUNT, MAX_LOAN_PERIOD_YEARS, MAX_INTEREST_RATE)
        loan = Loan.objects.get(loan_id=result['loan_id'])
        self.assertEqual(loan.total_amount, MAX_LOAN_AMOUNT * 501)
        self.assertEqual(loan.monthly_emi, (MAX_LOAN_AMOUNT * 501 / 600).quantize(Decimal('0.00000001')))

    def test_storage_failure_raises_storage_error(self):
        with mock.patch(
            'django.db.models.query.QuerySet.create',
            side_effect=DatabaseError('disk full'),
        ):
            with self.assertRaises(StorageError):
                self.engine.create_loan('C1', 1000, 1, 5)


class PaymentRecordingTest(LedgerEngineTestCase):
    def test_emi_payment_reduces_balance(self):
        loan = self.create_loan(customer_id='C1', loan_amount=10000, loan_period_years=2, interest_rate_yearly=5)
        result = self.engine.record_payment(loan.loan_id, Decimal('458.33'), 'EMI')

        self.assertEqual(result['remaining_balance'], Decimal('10541.67'))
        self.assertEqual(result['emis_left'], 23)
        self.assertEqual(result['status'], Loan.Status.ACTIVE)
        self.assertIn('ACTIVE', result['message'])
        loan.refresh_from_db()
        self.assertEqual(loan.status, Loan.Status.ACTIVE)

    def test_lump_sum_uses_same_reconciliation(self):
        emi_loan = self.create_loan(customer_id='C1', loan_amount=12000, loan_period_years=1, interest_rate_yearly=10)
        lump_loan = self.create_loan(customer_id='C1', loan_amount=12000, loan_period_years=1, interest_rate_yearly=10)

        emi = self.engine.record_payment(emi_loan.loan_id, 3000, 'EMI')
        lump = self.engine.record_payment(lump_loan.loan_id, 3000, 'LUMP_SUM')

        self.assertEqual(emi['remaining_balance'], lump['remaining_balance'])
        self.assertEqual(emi['emis_left'], lump['emis_left'])
        self.assertEqual(lump['remaining_balance'], Decimal('10200'))
        self.assertEqual(lump['emis_left'], 10)

    def test_overpayment_clamps_to_zero_and_pays_off(self):
        result = self.engine.record_payment(self.loan.loan_id, 5000, 'LUMP_SUM')

        self.assertEqual(result['remaining_balance'], 0)
        self.assertEqual(result['emis_left'], 0)
        self.assertEqual(result['status'], Loan.Status.PAID_OFF)
        self.loan.refresh_from_db()
        self.assertEqual(self.loan.status, Loan.Status.PAID_OFF)

    def test_exact_payment_pays_off(self):
        result = self.engine.record_payment(self.loan.loan_id, 1200, 'LUMP_SUM')
        self.assertEqual(result['status'], Loan.Status.PAID_OFF)

    def test_paid_off_loan_rejects_payments(self):
        self.engine.record_payment(self.loan.loan_id, 1200, 'LUMP_SUM')

        for payment_type in ('EMI', 'LUMP_SUM'):
            with self.subTest(payment_type=payment_type):
                with self.assertRaises(InvalidState):
                    self.engine.record_payment(self.loan.loan_id, 100, payment_type)

        self.assertEqual(Payment.objects.filter(loan=self.loan).count(), 1)

    def test_unknown_loan(self):
        with self.assertRaises(NotFound):
            self.engine.record_payment('does-not-exist', 100, 'EMI')
        self.assertEqual(Payment.objects.count(), 0)

    def test_invalid_payment_input(self):
        for amount, payment_type in [(0, 'EMI'), (-5, 'EMI'), (None, 'EMI'), (100, 'PARTIAL'), (100, None)]:
            with self.subTest(amount=amount, payment_type=payment_type):
                with self.assertRaises(InvalidInput):
                    self.engine.record_payment(self.loan.loan_id, amount, payment_type)
        self.assertEqual(Payment.objects.count(), 0)

    def test_amount_paid_matches_sum_of_payments(self):
        amounts = [Decimal('100.10'), Decimal('250'), Decimal('49.90'), Decimal('300')]
        for amount in amounts:
            self.engine.record_payment(self.loan.loan_id, amount, 'EMI')

        ledger = self.engine.get_ledger(self.loan.loan_id)
        self.assertEqual(ledger['amount_paid'], sum(amounts))
        self.assertEqual(ledger['balance_amount'], Decimal('1200') - sum(amounts))
        self.assertEqual(
            list(Payment.objects.filter(loan=self.loan).values_list('sequence', flat=True)),
            [1, 2, 3, 4],
        )

    def test_sub_cent_payments_are_stored_exactly(self):
        amounts = [Decimal('0.004'), Decimal('0.005'), Decimal('100.006')]
        first = self.engine.record_payment(self.loan.loan_id, amounts[0], 'EMI')
        for amount in amounts[1:]:
            self.engine.record_payment(self.loan.loan_id, amount, 'LUMP_SUM')

        self.assertEqual(first['remaining_balance'], Decimal('1199.996'))
        self.assertEqual(
            list(Payment.objects.filter(loan=self.loan).values_list('amount', flat=True)),
            amounts,
        )
        ledger = self.engine.get_ledger(self.loan.loan_id)
        self.assertEqual(ledger['amount_paid'], Decimal('100.015'))
        self.assertEqual(ledger['balance_amount'], Decimal('1099.985'))

    def test_amount_finer_than_storage_is_rejected(self):
        for amount in (Decimal('0.000000001'), Decimal('12.123456789')):
            with self.subTest(amount=amount):
                with self.assertRaises(InvalidInput):
                    self.engine.record_payment(self.loan.loan_id, amount, 'EMI')
        self.assertEqual(Payment.objects.count(), 0)

    def test_paying_the_returned_emi(self):
        created = self.engine.create_loan('C1', 10000, 2, 5)
        result = self.engine.record_payment(created['loan_id'], created['monthly_emi'], 'EMI')

        self.assertEqual(result['remaining_balance'], Decimal('10541.66666667'))
        self.assertEqual(result['emis_left'], 23)

    def test_failed_status_update_rolls_back_payment(self):
        with mock.patch.object(Loan, 'save', side_effect=DatabaseError('lost connection')):
            with self.assertRaises(StorageError):
                self.engine.record_payment(self.loan.loan_id, 1200, 'LUMP_SUM')

        self.assertEqual(Payment.objects.filter(loan=self.loan).count(), 0)
        self.loan.refresh_from_db()
        self.assertEqual(self.loan.status, Loan.Status.ACTIVE)

    def test_payment_order_does_not_change_outcome(self):
        first = self.create_loan(customer_id='C9', loan_amount=1200, loan_period_years=1, interest_rate_yearly=0)
        second = self.create_loan(customer_id='C9', loan_amount=1200, loan_period_years=1, interest_rate_yearly=0)

        self.engine.record_payment(first.loan_id, 700, 'LUMP_SUM')
        final_first = self.engine.record_payment(first.loan_id, 600, 'LUMP_SUM')
        self.engine.record_payment(second.loan_id, 600, 'LUMP_SUM')
        final_second = self.engine.record_payment(second.loan_id, 700, 'LUMP_SUM')

        for final, loan in ((final_first, first), (final_second, second)):
            self.assertEqual(final['remaining_balance'], 0)
            self.assertEqual(final['status'], Loan.Status.PAID_OFF)
            ledger = self.engine.get_ledger(loan.loan_id)
            self.assertEqual(ledger['amount_paid'], Decimal('1300'))
            self.assertEqual(ledger['balance_amount'], 0)
            self.assertEqual(ledger['emis_left'], 0)
            self.assertEqual(ledger['status'], Loan.Status.PAID_OFF)


class LedgerReadTest(LedgerEngineTestCase):
    def test_ledger_without_payments(self):
        loan = self.create_loan(customer_id='C1', loan_amount=10000, loan_period_years=2, interest_rate_yearly=5)
        ledger = self.engine.get_ledger(loan.loan_id)

        self.assertEqual(ledger['amount_paid'], 0)
        self.assertEqual(ledger['balance_amount'], Decimal('11000'))
        self.assertEqual(ledger['emis_left'], 24)
        self.assertEqual(ledger['transactions'], [])
        self.assertEqual(ledger['status'], Loan.Status.ACTIVE)

    def test_transactions_in_recorded_order(self):
        ids = [
            self.engine.record_payment(self.loan.loan_id, amount, kind)['payment_id']
            for amount, kind in [(100, 'EMI'), (300, 'LUMP_SUM'), (100, 'EMI')]
        ]
        ledger = self.engine.get_ledger(self.loan.loan_id)

        self.assertEqual([t['transaction_id'] for t in ledger['transactions']], ids)
        self.assertEqual([t['type'] for t in ledger['transactions']], ['EMI', 'LUMP_SUM', 'EMI'])
        self.assertEqual(ledger['amount_paid'], Decimal('500'))
        self.assertEqual(ledger['emis_left'], 7)

    def test_ledger_read_is_idempotent(self):
        self.engine.record_payment(self.loan.loan_id, 250, 'EMI')
        self.assertEqual(self.engine.get_ledger(self.loan.loan_id), self.engine.get_ledger(self.loan.loan_id))

    def test_ledger_never_fixes_up_status(self):
        # Payments written outside the engine leave the persisted status alone
        Payment.objects.create(loan=self.loan, amount=Decimal('1200'), payment_type='LUMP_SUM', sequence=1)
        ledger = self.engine.get_ledger(self.loan.loan_id)

        self.assertEqual(ledger['balance_amount'], 0)
        self.assertEqual(ledger['status'], Loan.Status.ACTIVE)
        self.loan.refresh_from_db()
        self.assertEqual(self.loan.status, Loan.Status.ACTIVE)

    def test_unknown_loan(self):
        with self.assertRaises(NotFound):
            self.engine.get_ledger('missing')


class ConcurrentPaymentTest(TransactionTestCase):
    """
    Two payments racing on one loan must serialize: through the row lock on
    PostgreSQL, through the write lock taken at BEGIN IMMEDIATE on SQLite
    """

    def test_concurrent_payments_serialize(self):
        engine = LedgerEngine()
        loan_id = engine.create_loan('RACE', 1200, 1, 0)['loan_id']
        barrier = threading.Barrier(2)
        results, errors = [], []

        def pay(amount):
            try:
                barrier.wait()
                results.append(engine.record_payment(loan_id, amount, 'LUMP_SUM'))
            except Exception as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=pay, args=(amount,)) for amount in (700, 600)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        # Either 700 then 600 or 600 then 700, never both against the same balance
        balances = sorted(r['remaining_balance'] for r in results)
        self.assertIn(balances, ([Decimal('0'), Decimal('500')], [Decimal('0'), Decimal('600')]))
        ledger = engine.get_ledger(loan_id)
        self.assertEqual(ledger['amount_paid'], Decimal('1300'))
        self.assertEqual(ledger['balance_amount'], 0)
        self.assertEqual(ledger['status'], Loan.Status.PAID_OFF)
        self.assertEqual(sorted(Payment.objects.filter(loan_id=loan_id).values_list('sequence', flat=True)), [1, 2])


""" Test cases for the loan API views """


class LoanViewTestCase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.create_url = reverse('create-loan')

    def create_loan(self, **overrides):
        data = {
            "customer_id": "CUST-1",
            "loan_amount": 10000,
            "loan_period_years": 2,
            "interest_rate_yearly": 5
        }
        data.update(overrides)
        return self.client.post(self.create_url, data, format='json')


class CreateLoanViewTest(LoanViewTestCase):
    def test_create_loan_success(self):
        response = self.create_loan()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_id'], 'CUST-1')
        self.assertEqual(response.data['total_amount_payable'], 11000.0)
        self.assertEqual(response.data['total_interest'], 1000.0)
        self.assertAlmostEqual(response.data['monthly_emi'], 458.33, places=2)
        self.assertTrue(Loan.objects.filter(loan_id=response.data['loan_id']).exists())

    def test_create_loan_scenario(self):
        response = self.create_loan(loan_amount=12000, loan_period_years=1, interest_rate_yearly=10)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_interest'], 1200.0)
        self.assertEqual(response.data['total_amount_payable'], 13200.0)
        self.assertEqual(response.data['monthly_emi'], 1100.0)

    def test_create_loan_missing_fields(self):
        response = self.client.post(self.create_url, {"customer_id": "CUST-1"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('message', response.data)
        self.assertIn('loan_amount', response.data['error'])
        self.assertEqual(Loan.objects.count(), 0)

    def test_create_loan_invalid_values(self):
        for overrides in (
            {"loan_amount": 0},
            {"loan_amount": -500},
            {"loan_period_years": 0},
            {"interest_rate_yearly": -2},
            {"customer_id": ""},
        ):
            with self.subTest(**overrides):
                response = self.create_loan(**overrides)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Loan.objects.count(), 0)
        self.assertEqual(Customer.objects.count(), 0)

    def test_create_loan_fractional_rate(self):
        response = self.create_loan(interest_rate_yearly=7.123456)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Loan.objects.get(loan_id=response.data['loan_id']).interest_rate, Decimal('7.123456'))

    def test_create_loan_above_limits(self):
        for overrides in (
            {"loan_amount": 1000000000001},
            {"loan_period_years": 51},
            {"interest_rate_yearly": 1000.5},
            {"loan_amount": "1000.000000001"},
        ):
            with self.subTest(**overrides):
                response = self.create_loan(**overrides)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertIn('message', response.data)
        self.assertEqual(Loan.objects.count(), 0)

    def test_create_loan_storage_error(self):
        with mock.patch.object(LedgerEngine, 'create_loan', side_effect=StorageError('Error creating loan.', error='disk full')):
            response = self.create_loan()
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'message': 'Error creating loan.', 'error': 'disk full'})


class RecordPaymentViewTest(LoanViewTestCase):
    def setUp(self):
        super().setUp()
        created = self.create_loan().data
        self.loan_id = created['loan_id']
        self.monthly_emi = created['monthly_emi']
        self.payment_url = reverse('record-payment', kwargs={'loan_id': self.loan_id})

    def test_record_emi_payment(self):
        response = self.client.post(self.payment_url, {"amount": 458.33, "payment_type": "EMI"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['loan_id'], self.loan_id)
        self.assertAlmostEqual(response.data['remaining_balance'], 10541.67, places=2)
        self.assertEqual(response.data['emis_left'], 23)
        self.assertIn('payment_id', response.data)
        self.assertIn('ACTIVE', response.data['message'])

    def test_pay_returned_monthly_emi(self):
        response = self.client.post(self.payment_url, {"amount": self.monthly_emi, "payment_type": "EMI"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertAlmostEqual(response.data['remaining_balance'], 10541.67, places=2)
        self.assertEqual(response.data['emis_left'], 23)
        self.assertEqual(Payment.objects.get(loan_id=self.loan_id).amount, Decimal('458.33333333'))

    def test_sub_cent_payment(self):
        response = self.client.post(self.payment_url, {"amount": 0.005, "payment_type": "LUMP_SUM"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Payment.objects.get(loan_id=self.loan_id).amount, Decimal('0.005'))

        response = self.client.post(self.payment_url, {"amount": "1.123456789", "payment_type": "EMI"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Payment.objects.filter(loan_id=self.loan_id).count(), 1)

    def test_pay_off_then_reject(self):
        response = self.client.post(self.payment_url, {"amount": 11000, "payment_type": "LUMP_SUM"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['remaining_balance'], 0.0)
        self.assertEqual(response.data['status'], 'PAID_OFF')

        response = self.client.post(self.payment_url, {"amount": 10, "payment_type": "EMI"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'Loan is already paid off.')
        self.assertEqual(Payment.objects.filter(loan_id=self.loan_id).count(), 1)

    def test_payment_loan_not_found(self):
        url = reverse('record-payment', kwargs={'loan_id': 'no-such-loan'})
        response = self.client.post(url, {"amount": 100, "payment_type": "EMI"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Loan not found.')

    def test_payment_invalid_data(self):
        for data in (
            {"amount": 100},
            {"payment_type": "EMI"},
            {"amount": 0, "payment_type": "EMI"},
            {"amount": -1, "payment_type": "LUMP_SUM"},
            {"amount": 100, "payment_type": "WEEKLY"},
        ):
            with self.subTest(**data):
                response = self.client.post(self.payment_url, data, format='json')
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertIn('error', response.data)
        self.assertEqual(Payment.objects.count(), 0)


class LoanLedgerViewTest(LoanViewTestCase):
    def setUp(self):
        super().setUp()
        self.loan_id = self.create_loan(loan_amount=12000, loan_period_years=1, interest_rate_yearly=10).data['loan_id']
        self.ledger_url = reverse('loan-ledger', kwargs={'loan_id': self.loan_id})

    def test_ledger_without_payments(self):
        response = self.client.get(self.ledger_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['loan_id'], self.loan_id)
        self.assertEqual(response.data['customer_id'], 'CUST-1')
        self.assertEqual(response.data['principal'], 12000.0)
        self.assertEqual(response.data['total_amount'], 13200.0)
        self.assertEqual(response.data['amount_paid'], 0.0)
        self.assertEqual(response.data['balance_amount'], 13200.0)
        self.assertEqual(response.data['emis_left'], 12)
        self.assertEqual(response.data['transactions'], [])

    def test_ledger_with_payments(self):
        payment_url = reverse('record-payment', kwargs={'loan_id': self.loan_id})
        self.client.post(payment_url, {"amount": 1100, "payment_type": "EMI"}, format='json')
        self.client.post(payment_url, {"amount": 5000, "payment_type": "LUMP_SUM"}, format='json')

        response = self.client.get(self.ledger_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['amount_paid'], 6100.0)
        self.assertEqual(response.data['balance_amount'], 7100.0)
        self.assertEqual(response.data['emis_left'], 7)
        self.assertEqual(response.data['status'], 'ACTIVE')
        transactions = response.data['transactions']
        self.assertEqual([t['amount'] for t in transactions], [1100.0, 5000.0])
        self.assertEqual([t['type'] for t in transactions], ['EMI', 'LUMP_SUM'])
        self.assertTrue(all(t['date'] for t in transactions))

    def test_ledger_not_found(self):
        response = self.client.get(reverse('loan-ledger', kwargs={'loan_id': 'missing'}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_ledger_storage_error(self):
        with mock.patch.object(LedgerEngine, 'get_ledger', side_effect=StorageError('Error fetching transactions.')):
            response = self.client.get(self.ledger_url)
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'message': 'Error fetching transactions.'})


""" Test cases for the loan and payment ingestion tasks """


class LoanIngestionTest(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.data_dir = Path(self.tmp.name)

    def write(self, name, rows):
        pd.DataFrame(rows).to_excel(self.data_dir / name, index=False)

    def test_ingest_loans_and_payments(self):
        self.write('loan_data.xlsx', [
            {'Loan ID': 'L-1', 'Customer ID': 7, 'Loan Amount': 1200, 'Loan Period (Years)': 1, 'Interest Rate': 0},
            {'Loan ID': 'L-2', 'Customer ID': 8, 'Loan Amount': 12000, 'Loan Period (Years)': 1, 'Interest Rate': 10},
            {'Loan ID': 'L-3', 'Customer ID': 8, 'Loan Amount': -5, 'Loan Period (Years)': 1, 'Interest Rate': 10},
        ])
        self.write('payment_data.xlsx', [
            {'Loan ID': 'L-1', 'Amount': 700, 'Payment Type': 'LUMP_SUM'},
            {'Loan ID': 'L-1', 'Amount': 600, 'Payment Type': 'emi'},
            {'Loan ID': 'L-1', 'Amount': 100, 'Payment Type': 'EMI'},
            {'Loan ID': 'L-2', 'Amount': 1100, 'Payment Type': 'EMI'},
            {'Loan ID': 'L-404', 'Amount': 50, 'Payment Type': 'EMI'},
            {'Loan ID': 'L-2', 'Amount': 50, 'Payment Type': 'WEEKLY'},
        ])

        with override_settings(DATA_DIR=self.data_dir):
            loans = ingest_loan_data()
            payments = ingest_payment_data()

        self.assertEqual(loans['status'], 'success')
        self.assertEqual(loans['count'], 2)
        self.assertEqual(loans['skip_reasons'], {'invalid_input': 1})
        self.assertEqual(Customer.objects.get(customer_id='7').name, 'Customer 7')

        self.assertEqual(payments['status'], 'success')
        self.assertEqual(payments['count'], 3)
        self.assertEqual(
            payments['skip_reasons'],
            {'loan_paid_off': 1, 'loan_not_found': 1, 'invalid_input': 1},
        )
        self.assertEqual(Loan.objects.get(loan_id='L-1').status, Loan.Status.PAID_OFF)
        self.assertEqual(LedgerEngine().get_ledger('L-2')['emis_left'], 11)

    def test_duplicate_loans_are_skipped(self):
        self.write('loan_data.xlsx', [
            {'Loan ID': 'L-1', 'Customer ID': 'A', 'Loan Amount': 1000, 'Loan Period (Years)': 1, 'Interest Rate': 5},
        ])
        with override_settings(DATA_DIR=self.data_dir):
            ingest_loan_data()
            result = ingest_loan_data()

        self.assertEqual(result['count'], 0)
        self.assertEqual(result['skip_reasons'], {'duplicate_loan': 1})
        self.assertEqual(Loan.objects.count(), 1)

    def test_missing_file(self):
        with override_settings(DATA_DIR=self.data_dir):
            result = ingest_payment_data()
        self.assertEqual(result['status'], 'error')
        self.assertIn('payment_data.xlsx', result['message'])

    def test_missing_columns(self):
        self.write('loan_data.xlsx', [{'Customer ID': 'A', 'Loan Amount': 1000}])
        with override_settings(DATA_DIR=self.data_dir):
            result = ingest_loan_data()
        self.assertEqual(result['status'], 'error')
        self.assertIn('Loan Period (Years)', result['message'])
