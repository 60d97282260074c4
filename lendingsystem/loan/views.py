import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import LedgerError
from .serializers import (
    LoanRequestSerializer,
    PaymentRequestSerializer,
    CreateLoanResponseSerializer,
    PaymentResponseSerializer,
    LedgerResponseSerializer,
)
from .services import LedgerEngine

logger = logging.getLogger(__name__)


def error_response(exc):
    """Render a ledger error as a ``{message, error?}`` body"""
    body = {'message': exc.message}
    if exc.error is not None:
        body['error'] = exc.error
    return Response(body, status=exc.status_code)


def validation_error_response(errors):
    return Response(
        {
            'message': 'Missing or invalid parameters.',
            'error': errors
        },
        status=status.HTTP_400_BAD_REQUEST
    )


def internal_error_response(message, exc):
    return Response(
        {
            'message': message,
            'error': str(exc)
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


class LedgerAPIView(APIView):
    """Base view holding the engine the ledger endpoints run against"""
    engine = LedgerEngine()


class CreateLoanView(LedgerAPIView):
    """API View for lending a new loan"""

    def post(self, request):
        """
        Create a loan
        POST /api/v1/loans
        """
        serializer = LoanRequestSerializer(data=request.data)

        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data

        try:
            result = self.engine.create_loan(
                customer_id=data['customer_id'],
                loan_amount=data['loan_amount'],
                loan_period_years=data['loan_period_years'],
                interest_rate_yearly=data['interest_rate_yearly'],
            )
        except LedgerError as e:
            return error_response(e)
        except Exception as e:
            logger.exception("Unexpected error while creating loan")
            return internal_error_response('Error creating loan.', e)

        response_serializer = CreateLoanResponseSerializer(data=result)
        if response_serializer.is_valid():
            return Response(response_serializer.data, status=status.HTTP_201_CREATED)

        return Response(response_serializer.errors, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class RecordPaymentView(LedgerAPIView):
    """API View for recording EMI and lump-sum payments"""

    def post(self, request, loan_id):
        """
        Record a payment against a loan
        POST /api/v1/loans/{loan_id}/payments
        """
        serializer = PaymentRequestSerializer(data=request.data)

        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data

        try:
            result = self.engine.record_payment(
                loan_id=loan_id,
                amount=data['amount'],
                payment_type=data['payment_type'],
            )
        except LedgerError as e:
            return error_response(e)
        except Exception as e:
            logger.exception(f"Unexpected error while recording payment on loan {loan_id}")
            return internal_error_response('Error recording payment.', e)

        response_serializer = PaymentResponseSerializer(data=result)
        if response_serializer.is_valid():
            return Response(response_serializer.data, status=status.HTTP_200_OK)

        return Response(response_serializer.errors, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


class LoanLedgerView(LedgerAPIView):
    """API View for a loan's details and transaction history"""

    def get(self, request, loan_id):
        """
        View a loan ledger
        GET /api/v1/loans/{loan_id}/ledger
        """
        try:
            ledger = self.engine.get_ledger(loan_id)
        except LedgerError as e:
            return error_response(e)
        except Exception as e:
            logger.exception(f"Unexpected error while reading ledger of loan {loan_id}")
            return internal_error_response('Error fetching transactions.', e)

        return Response(LedgerResponseSerializer(ledger).data, status=status.HTTP_200_OK)
