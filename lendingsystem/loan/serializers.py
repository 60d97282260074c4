from rest_framework import serializers

from .models import (
    MAX_INTEREST_RATE, MAX_LOAN_AMOUNT, MAX_LOAN_PERIOD_YEARS, MAX_PAYMENT_AMOUNT,
    Payment,
)


class LoanRequestSerializer(serializers.Serializer):
    """
    Serializer for loan creation requests
    """
    customer_id = serializers.CharField(
        max_length=64,
        required=True,
        error_messages={
            'required': 'Customer ID is required.',
            'blank': 'Customer ID cannot be blank.',
        }
    )
    # Precision is checked by the engine, which stores amounts exactly
    loan_amount = serializers.DecimalField(
        max_digits=None,
        decimal_places=None,
        max_value=MAX_LOAN_AMOUNT,
        required=True,
        error_messages={'required': 'Loan amount is required.'}
    )
    loan_period_years = serializers.IntegerField(
        min_value=1,
        max_value=MAX_LOAN_PERIOD_YEARS,
        required=True,
        error_messages={
            'required': 'Loan period is required.',
            'min_value': 'Loan period must be at least 1 year.',
            'max_value': f'Loan period must not exceed {MAX_LOAN_PERIOD_YEARS} years.'
        }
    )
    interest_rate_yearly = serializers.DecimalField(
        max_digits=None,
        decimal_places=None,
        max_value=MAX_INTEREST_RATE,
        required=True,
        error_messages={'required': 'Interest rate is required.'}
    )

    def validate_customer_id(self, value):
        return value.strip()

    def validate_loan_amount(self, value):
        """Validate loan amount is positive"""
        if value <= 0:
            raise serializers.ValidationError("Loan amount must be greater than 0.")
        return value

    def validate_interest_rate_yearly(self, value):
        """Validate interest rate is non-negative"""
        if value < 0:
            raise serializers.ValidationError("Interest rate must be non-negative.")
        return value


class PaymentRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(
        max_digits=None,
        decimal_places=None,
        max_value=MAX_PAYMENT_AMOUNT,
        required=True,
        error_messages={'required': 'Payment amount is required.'}
    )
    payment_type = serializers.ChoiceField(
        choices=Payment.PaymentType.choices,
        required=True,
        error_messages={
            'required': 'Payment type is required.',
            'invalid_choice': 'Payment type must be EMI or LUMP_SUM.'
        }
    )

    def validate_amount(self, value):
        """Validate payment amount is positive"""
        if value <= 0:
            raise serializers.ValidationError("Payment amount must be positive.")
        return value


class CreateLoanResponseSerializer(serializers.Serializer):
    loan_id = serializers.CharField()
    customer_id = serializers.CharField()
    total_amount_payable = serializers.FloatField()
    monthly_emi = serializers.FloatField()
    total_interest = serializers.FloatField()


class PaymentResponseSerializer(serializers.Serializer):
    payment_id = serializers.CharField()
    loan_id = serializers.CharField()
    message = serializers.CharField()
    remaining_balance = serializers.FloatField()
    emis_left = serializers.IntegerField()
    status = serializers.CharField()


class TransactionSerializer(serializers.Serializer):
    transaction_id = serializers.CharField()
    date = serializers.DateTimeField()
    amount = serializers.FloatField()
    type = serializers.CharField()


class LedgerResponseSerializer(serializers.Serializer):
    loan_id = serializers.CharField()
    customer_id = serializers.CharField()
    principal = serializers.FloatField()
    total_amount = serializers.FloatField()
    monthly_emi = serializers.FloatField()
    amount_paid = serializers.FloatField()
    balance_amount = serializers.FloatField()
    emis_left = serializers.IntegerField()
    status = serializers.CharField()
    transactions = TransactionSerializer(many=True)
