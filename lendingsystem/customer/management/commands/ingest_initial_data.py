from django.core.management.base import BaseCommand
from customer.models import Customer
from loan.models import Loan, Payment
from customer.tasks import ingest_customer_data
from loan.tasks import ingest_loan_data, ingest_payment_data

TASK_TIMEOUT = 300


class Command(BaseCommand):
    help = 'Ingest customers, loans and payment history from Excel files using Celery'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help='Force ingestion even if data exists',
        )
        parser.add_argument(
            '--payments-only',
            action='store_true',
            help='Only replay payment history (skip customers and loans)',
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS('Checking if initial data ingestion is needed...'))

        customer_count = Customer.objects.count()
        loan_count = Loan.objects.count()

        self.stdout.write(f'Current counts - Customers: {customer_count}, Loans: {loan_count}')

        if options['force']:
            self.stdout.write(self.style.WARNING('Force flag used - proceeding with full ingestion'))
            self.run_full_ingestion()
        elif options['payments_only']:
            self.stdout.write(self.style.SUCCESS('Running payments-only ingestion...'))
            self.run_step('Payments', ingest_payment_data)
        elif loan_count > 0:
            self.stdout.write(
                self.style.WARNING(
                    f'Data already exists (Customers: {customer_count}, Loans: {loan_count}). '
                    'Use --force to override or --payments-only to just replay payments.'
                )
            )
            return
        else:
            self.stdout.write(self.style.SUCCESS('No loans found. Running full ingestion...'))
            self.run_full_ingestion()

        self.stdout.write(
            self.style.SUCCESS(
                f'Final counts - Customers: {Customer.objects.count()}, '
                f'Loans: {Loan.objects.count()}, Payments: {Payment.objects.count()}'
            )
        )

    def run_step(self, label, task):
        """Dispatch one ingestion task and wait for it; returns True on success"""
        try:
            result = task.delay().get(timeout=TASK_TIMEOUT)
        except Exception as e:
            self.stdout.write(self.style.ERROR(f'{label} ingestion failed: {str(e)}'))
            return False

        if result['status'] != 'success':
            self.stdout.write(self.style.ERROR(f"{label} ingestion failed: {result['message']}"))
            return False

        self.stdout.write(self.style.SUCCESS(f"{label}: {result['message']}"))
        return True

    def run_full_ingestion(self):
        """Run the complete ingestion step by step"""
        self.stdout.write(self.style.SUCCESS('Starting full data ingestion using Celery...'))

        steps = [
            ('Customers', ingest_customer_data),
            ('Loans', ingest_loan_data),
            ('Payments', ingest_payment_data),
        ]
        for number, (label, task) in enumerate(steps, start=1):
            self.stdout.write(f'Step {number}: Ingesting {label.lower()}...')
            if not self.run_step(label, task):
                return
