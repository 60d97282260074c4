import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone

from customer.models import Customer


# Largest values accepted on input; the columns below are sized to hold
# the totals they produce
MAX_LOAN_AMOUNT = Decimal('1000000000000')
MAX_INTEREST_RATE = Decimal('1000')
MAX_LOAN_PERIOD_YEARS = 50
MAX_PAYMENT_AMOUNT = Decimal('1000000000000')


def generate_id():
    return str(uuid.uuid4())


class Loan(models.Model):
    class Status(models.TextChoices):
        ACTIVE = 'ACTIVE', 'Active'
        PAID_OFF = 'PAID_OFF', 'Paid off'

    loan_id = models.CharField(max_length=36, primary_key=True, default=generate_id, editable=False)
    # No DB constraint: a loan is still written when provisioning its customer failed
    customer = models.ForeignKey(
        Customer,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='loans',
    )
    principal_amount = models.DecimalField(max_digits=21, decimal_places=8)
    total_amount = models.DecimalField(max_digits=28, decimal_places=8)
    interest_rate = models.DecimalField(max_digits=12, decimal_places=8, help_text="Annual rate in percent")
    loan_period_years = models.PositiveIntegerField()
    monthly_emi = models.DecimalField(max_digits=28, decimal_places=8)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Loan {self.loan_id} - Customer {self.customer_id}"

    @property
    def total_interest(self):
        return self.total_amount - self.principal_amount

    @property
    def is_paid_off(self):
        return self.status == self.Status.PAID_OFF

    class Meta:
        db_table = 'loans'
        # using indexes to speed up the account overview lookup
        indexes = [
            models.Index(fields=["customer"], name="loans_customer_idx"),
        ]


class Payment(models.Model):
    class PaymentType(models.TextChoices):
        EMI = 'EMI', 'EMI'
        LUMP_SUM = 'LUMP_SUM', 'Lump sum'

    payment_id = models.CharField(max_length=36, primary_key=True, default=generate_id, editable=False)
    loan = models.ForeignKey(Loan, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(max_digits=21, decimal_places=8)
    payment_type = models.CharField(max_length=10, choices=PaymentType.choices)
    payment_date = models.DateTimeField(default=timezone.now)
    sequence = models.PositiveIntegerField(help_text="1-based position within the loan's ledger")

    def __str__(self):
        return f"Payment {self.payment_id} of {self.amount} on loan {self.loan_id}"

    class Meta:
        db_table = 'payments'
        ordering = ['payment_date', 'sequence']
        constraints = [
            models.UniqueConstraint(fields=['loan', 'sequence'], name='unique_payment_sequence_per_loan'),
        ]
        indexes = [
            models.Index(fields=["loan", "payment_date"], name="payments_loan_date_idx"),
        ]
