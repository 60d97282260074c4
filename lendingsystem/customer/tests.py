# tests.py
import tempfile
from io import StringIO
from pathlib import Path

import pandas as pd
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status

from lendingsystem.celery import app as celery_app
from loan.models import Loan, Payment
from loan.services import LedgerEngine
from .models import Customer
from .tasks import ingest_customer_data, clean_id


class AccountOverviewTest(APITestCase):
    """Test cases for the Account Overview API"""

    def setUp(self):
        self.engine = LedgerEngine()
        self.first = self.engine.create_loan('CUST-9', 12000, 1, 10)
        self.second = self.engine.create_loan('CUST-9', 1200, 1, 0)
        self.engine.record_payment(self.first['loan_id'], 1100, 'EMI')
        self.engine.record_payment(self.second['loan_id'], 1200, 'LUMP_SUM')
        self.overview_url = reverse('customer-overview', kwargs={'customer_id': 'CUST-9'})

    def test_overview_lists_every_loan(self):
        """Test overview returns one entry per loan"""
        response = self.client.get(self.overview_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()

        self.assertEqual(data['customer_id'], 'CUST-9')
        self.assertEqual(data['total_loans'], 2)
        self.assertEqual(
            {loan['loan_id'] for loan in data['loans']},
            {self.first['loan_id'], self.second['loan_id']}
        )

    def test_overview_figures(self):
        """Test per-loan figures are recomputed from payments"""
        response = self.client.get(self.overview_url)
        loans = {loan['loan_id']: loan for loan in response.json()['loans']}

        active = loans[self.first['loan_id']]
        self.assertEqual(active['principal'], 12000)
        self.assertEqual(active['total_amount'], 13200)
        self.assertEqual(active['total_interest'], 1200)
        self.assertEqual(active['emi_amount'], 1100)
        self.assertEqual(active['amount_paid'], 1100)
        self.assertEqual(active['balance_amount'], 12100)
        self.assertEqual(active['emis_left'], 11)
        self.assertEqual(active['status'], 'ACTIVE')

        paid_off = loans[self.second['loan_id']]
        self.assertEqual(paid_off['total_interest'], 0)
        self.assertEqual(paid_off['amount_paid'], 1200)
        self.assertEqual(paid_off['emis_left'], 0)
        self.assertEqual(paid_off['status'], 'PAID_OFF')

    def test_overview_customer_without_loans(self):
        """Test a known customer with no loans is reported as not found"""
        Customer.objects.create(customer_id='EMPTY', name='No Loans')
        response = self.client.get(reverse('customer-overview', kwargs={'customer_id': 'EMPTY'}))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('message', response.json())

    def test_overview_unknown_customer(self):
        """Test unknown customer id"""
        response = self.client.get(reverse('customer-overview', kwargs={'customer_id': 'nobody'}))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_overview_does_not_touch_other_customers(self):
        """Test loans of other customers are not included"""
        self.engine.create_loan('OTHER', 5000, 2, 8)
        response = self.client.get(self.overview_url)
        self.assertEqual(response.json()['total_loans'], 2)


class CustomerModelTest(TestCase):
    """Simple model tests"""

    def test_customer_creation(self):
        """Test creating a customer"""
        customer = Customer.objects.create(customer_id='42', name='Test User')

        self.assertEqual(str(customer), "Test User (42)")
        self.assertIsNotNone(customer.created_at)

    def test_unique_constraints(self):
        """Test customer_id uniqueness"""
        Customer.objects.create(customer_id='42', name='Test User')

        with self.assertRaises(Exception):
            Customer.objects.create(customer_id='42', name='Another User')

    def test_loans_relation(self):
        """Test loans are reachable from their customer"""
        LedgerEngine().create_loan('42', 1000, 1, 5)
        customer = Customer.objects.get(customer_id='42')
        self.assertEqual(customer.loans.count(), 1)


class CustomerIngestionTest(TestCase):
    """Test cases for ingestion from Excel workbooks"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.data_dir = Path(self.tmp.name)

    def write(self, name, rows):
        pd.DataFrame(rows).to_excel(self.data_dir / name, index=False)

    def test_clean_id(self):
        self.assertEqual(clean_id(12.0), '12')
        self.assertEqual(clean_id(' C-1 '), 'C-1')
        self.assertIsNone(clean_id(float('nan')))
        self.assertIsNone(clean_id('  '))

    def test_ingest_customers(self):
        self.write('customer_data.xlsx', [
            {'Customer ID': 1, 'Name': 'Ravi Kumar'},
            {'Customer ID': 2, 'Name': None},
            {'Customer ID': None, 'Name': 'Nobody'},
        ])

        with override_settings(DATA_DIR=self.data_dir):
            result = ingest_customer_data()

        self.assertEqual(result['status'], 'success')
        self.assertEqual(result['count'], 2)
        self.assertEqual(result['skipped'], 1)
        self.assertEqual(Customer.objects.get(customer_id='1').name, 'Ravi Kumar')
        self.assertEqual(Customer.objects.get(customer_id='2').name, 'Customer 2')

    def test_ingest_customers_ignores_existing(self):
        Customer.objects.create(customer_id='1', name='Original')
        self.write('customer_data.xlsx', [{'Customer ID': 1, 'Name': 'Replacement'}])

        with override_settings(DATA_DIR=self.data_dir):
            ingest_customer_data()

        self.assertEqual(Customer.objects.get(customer_id='1').name, 'Original')

    def test_missing_file(self):
        with override_settings(DATA_DIR=self.data_dir):
            result = ingest_customer_data()
        self.assertEqual(result['status'], 'error')


class IngestInitialDataCommandTest(TestCase):
    """Test the ingestion management command end to end"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.data_dir = Path(self.tmp.name)

        previous = celery_app.conf.task_always_eager
        celery_app.conf.task_always_eager = True
        self.addCleanup(setattr, celery_app.conf, 'task_always_eager', previous)

        pd.DataFrame([{'Customer ID': 'A1', 'Name': 'Meera Shah'}]).to_excel(
            self.data_dir / 'customer_data.xlsx', index=False)
        pd.DataFrame([{
            'Loan ID': 'L-100', 'Customer ID': 'A1', 'Loan Amount': 12000,
            'Loan Period (Years)': 1, 'Interest Rate': 10,
        }]).to_excel(self.data_dir / 'loan_data.xlsx', index=False)
        pd.DataFrame([
            {'Loan ID': 'L-100', 'Amount': 1100, 'Payment Type': 'EMI'},
            {'Loan ID': 'L-100', 'Amount': 1100, 'Payment Type': 'EMI'},
        ]).to_excel(self.data_dir / 'payment_data.xlsx', index=False)

    def run_command(self, *args):
        out = StringIO()
        with override_settings(DATA_DIR=self.data_dir):
            call_command('ingest_initial_data', *args, stdout=out)
        return out.getvalue()

    def test_full_ingestion(self):
        output = self.run_command()

        self.assertIn('Final counts - Customers: 1, Loans: 1, Payments: 2', output)
        self.assertEqual(Customer.objects.get(customer_id='A1').name, 'Meera Shah')
        self.assertEqual(LedgerEngine().get_ledger('L-100')['emis_left'], 10)

    def test_existing_data_is_left_alone(self):
        self.run_command()
        output = self.run_command()

        self.assertIn('Data already exists', output)
        self.assertEqual(Payment.objects.count(), 2)

    def test_payments_only(self):
        self.run_command()
        self.run_command('--payments-only')

        self.assertEqual(Payment.objects.count(), 4)
        self.assertEqual(Loan.objects.count(), 1)
