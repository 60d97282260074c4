"""
Ledger engine: loan creation, payment reconciliation, ledger and overview reads.

The engine is constructed with an explicit database alias and never relies
on request state, so the HTTP views, the ingestion tasks and the tests all
drive the same code path.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction
from django.db.models import Count, Sum

from customer.models import Customer, placeholder_name
from . import calculator
from .exceptions import InvalidInput, InvalidState, NotFound, StorageError
from .models import (
    MAX_INTEREST_RATE, MAX_LOAN_AMOUNT, MAX_LOAN_PERIOD_YEARS, MAX_PAYMENT_AMOUNT,
    Loan, Payment, generate_id,
)

logger = logging.getLogger(__name__)

# Precision of every stored amount and rate column
STORAGE_QUANTUM = Decimal('0.00000001')
ZERO = Decimal('0')


def _to_decimal(value, field, max_value=None):
    """
    Parse ``value`` as a finite Decimal. With ``max_value`` the number must
    also fit the storage columns exactly; it is never rounded to fit.
    """
    if value is None or value == '':
        raise InvalidInput(f"{field} is required.")
    if isinstance(value, bool):
        raise InvalidInput(f"{field} must be a number.")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"{field} must be a number.")
    if not number.is_finite():
        raise InvalidInput(f"{field} must be a finite number.")
    if max_value is not None:
        if number > max_value:
            raise InvalidInput(f"{field} must not exceed {max_value}.")
        if number.normalize().as_tuple().exponent < STORAGE_QUANTUM.as_tuple().exponent:
            raise InvalidInput(f"{field} must have at most 8 decimal places.")
    return number


def _to_int(value, field):
    number = _to_decimal(value, field)
    if number != number.to_integral_value():
        raise InvalidInput(f"{field} must be a whole number.")
    return int(number)


class LedgerEngine:
    """Operations of the lending ledger against one database."""

    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    # ------------------------------------------------------------------
    # Customers

    def get_or_provision_customer(self, customer_id):
        """
        Return ``(customer, created)`` for ``customer_id``, creating a
        placeholder customer when none exists.

        Provisioning is best-effort: a database failure is logged and
        ``(None, False)`` is returned so loan creation can go ahead.
        """
        try:
            with transaction.atomic(using=self.using):
                return Customer.objects.using(self.using).get_or_create(
                    customer_id=customer_id,
                    defaults={'name': placeholder_name(customer_id)},
                )
        except DatabaseError as e:
            logger.warning(f"Could not provision customer {customer_id}: {e}")
            return None, False

    # ------------------------------------------------------------------
    # Loans

    def create_loan(self, customer_id, loan_amount, loan_period_years, interest_rate_yearly, loan_id=None):
        """
        Validate the request, provision the customer and persist an ACTIVE loan.

        ``loan_id`` is generated unless given; ingestion passes the id from
        the source workbook so later payment rows can refer to it.
        """
        if customer_id is None or str(customer_id).strip() == '':
            raise InvalidInput("customer_id is required.")
        customer_id = str(customer_id).strip()
        principal = _to_decimal(loan_amount, 'loan_amount', MAX_LOAN_AMOUNT)
        years = _to_int(loan_period_years, 'loan_period_years')
        rate = _to_decimal(interest_rate_yearly, 'interest_rate_yearly', MAX_INTEREST_RATE)

        if principal <= 0:
            raise InvalidInput("loan_amount must be greater than 0.")
        if years <= 0:
            raise InvalidInput("loan_period_years must be at least 1.")
        if years > MAX_LOAN_PERIOD_YEARS:
            raise InvalidInput(f"loan_period_years must not exceed {MAX_LOAN_PERIOD_YEARS}.")
        if rate < 0:
            raise InvalidInput("interest_rate_yearly must be non-negative.")

        customer, created = self.get_or_provision_customer(customer_id)
        if created:
            logger.info(f"Provisioned placeholder customer {customer_id}")

        terms = calculator.compute(principal, years, rate)

        try:
            loan = Loan.objects.using(self.using).create(
                loan_id=loan_id or generate_id(),
                customer_id=customer_id,
                principal_amount=principal,
                total_amount=terms.total_amount.quantize(STORAGE_QUANTUM),
                interest_rate=rate,
                loan_period_years=years,
                monthly_emi=terms.monthly_emi.quantize(STORAGE_QUANTUM),
                status=Loan.Status.ACTIVE,
            )
        except DatabaseError as e:
            logger.error(f"Error creating loan for customer {customer_id}: {e}")
            raise StorageError("Error creating loan.", error=str(e)) from e

        logger.info(
            f"Created loan {loan.loan_id} for customer {customer_id}: "
            f"total={loan.total_amount} emi={loan.monthly_emi}"
        )
        return {
            'loan_id': loan.loan_id,
            'customer_id': customer_id,
            'total_amount_payable': loan.total_amount,
            'monthly_emi': loan.monthly_emi,
            'total_interest': loan.total_interest,
        }

    # ------------------------------------------------------------------
    # Payments

    def record_payment(self, loan_id, amount, payment_type):
        """
        Record a payment and reconcile the loan's status in one transaction.

        The loan row stays locked from the first read until commit, so
        concurrent payments on the same loan are applied one after another.
        """
        amount = _to_decimal(amount, 'amount', MAX_PAYMENT_AMOUNT)
        if amount <= 0:
            raise InvalidInput("Payment amount must be positive.")
        if payment_type not in Payment.PaymentType.values:
            raise InvalidInput(
                f"payment_type must be one of {', '.join(Payment.PaymentType.values)}."
            )

        try:
            with transaction.atomic(using=self.using):
                loan = (
                    Loan.objects.using(self.using)
                    .select_for_update()
                    .filter(loan_id=loan_id)
                    .first()
                )
                if loan is None:
                    raise NotFound("Loan not found.")
                if loan.is_paid_off:
                    raise InvalidState("Loan is already paid off.")

                prior = Payment.objects.using(self.using).filter(loan=loan).aggregate(
                    total=Sum('amount'),
                    count=Count('payment_id'),
                )
                amount_paid_till_date = prior['total'] or ZERO

                remaining_balance = loan.total_amount - amount_paid_till_date - amount
                new_status = Loan.Status.ACTIVE
                if remaining_balance <= 0:
                    remaining_balance = ZERO
                    new_status = Loan.Status.PAID_OFF

                emis_left = calculator.count_emis_left(remaining_balance, loan.monthly_emi)

                payment = Payment.objects.using(self.using).create(
                    loan=loan,
                    amount=amount,
                    payment_type=payment_type,
                    sequence=prior['count'] + 1,
                )

                if new_status != loan.status:
                    loan.status = new_status
                    loan.save(using=self.using, update_fields=['status'])
                    logger.info(f"Loan {loan.loan_id} is now {new_status}")
        except DatabaseError as e:
            logger.error(f"Error recording payment on loan {loan_id}: {e}")
            raise StorageError("Error recording payment.", error=str(e)) from e

        logger.info(
            f"Recorded {payment_type} payment {payment.payment_id} of {amount} "
            f"on loan {loan_id}, remaining {remaining_balance}"
        )
        return {
            'payment_id': payment.payment_id,
            'loan_id': loan.loan_id,
            'message': f"Payment recorded successfully. Loan status: {new_status}",
            'remaining_balance': remaining_balance,
            'emis_left': emis_left,
            'status': new_status,
        }

    # ------------------------------------------------------------------
    # Reads

    def _get_loan(self, loan_id):
        try:
            return Loan.objects.using(self.using).get(loan_id=loan_id)
        except Loan.DoesNotExist:
            raise NotFound("Loan not found.")

    def _summarize(self, loan, amount_paid):
        balance = calculator.remaining_balance(loan.total_amount, amount_paid)
        return {
            'amount_paid': amount_paid,
            'balance_amount': balance,
            'emis_left': calculator.count_emis_left(balance, loan.monthly_emi),
        }

    def get_ledger(self, loan_id):
        """Loan summary plus its payments in the order they were recorded."""
        try:
            loan = self._get_loan(loan_id)
            payments = list(
                Payment.objects.using(self.using)
                .filter(loan=loan)
                .order_by('payment_date', 'sequence')
            )
        except DatabaseError as e:
            logger.error(f"Error reading ledger of loan {loan_id}: {e}")
            raise StorageError("Error fetching transactions.", error=str(e)) from e

        amount_paid = sum((payment.amount for payment in payments), ZERO)
        summary = self._summarize(loan, amount_paid)
        return {
            'loan_id': loan.loan_id,
            'customer_id': loan.customer_id,
            'principal': loan.principal_amount,
            'total_amount': loan.total_amount,
            'monthly_emi': loan.monthly_emi,
            'status': loan.status,
            'transactions': [
                {
                    'transaction_id': payment.payment_id,
                    'date': payment.payment_date,
                    'amount': payment.amount,
                    'type': payment.payment_type,
                }
                for payment in payments
            ],
            **summary,
        }

    def get_account_overview(self, customer_id):
        """Every loan of a customer with its repayment figures."""
        try:
            loans = list(Loan.objects.using(self.using).filter(customer_id=customer_id))
            if not loans:
                raise NotFound("Customer or loans for this customer not found.")

            overview = []
            for loan in loans:
                amount_paid = Payment.objects.using(self.using).filter(loan=loan).aggregate(
                    total=Sum('amount')
                )['total'] or ZERO
                overview.append({
                    'loan_id': loan.loan_id,
                    'principal': loan.principal_amount,
                    'total_amount': loan.total_amount,
                    'total_interest': loan.total_interest,
                    'emi_amount': loan.monthly_emi,
                    'status': loan.status,
                    **self._summarize(loan, amount_paid),
                })
        except DatabaseError as e:
            logger.error(f"Error building overview for customer {customer_id}: {e}")
            raise StorageError("Error processing loan details.", error=str(e)) from e

        return {
            'customer_id': customer_id,
            'total_loans': len(overview),
            'loans': overview,
        }
