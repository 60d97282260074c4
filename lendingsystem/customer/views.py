import logging

from rest_framework import status
from rest_framework.response import Response

from loan.exceptions import LedgerError
from loan.views import LedgerAPIView, error_response, internal_error_response
from .serializers import AccountOverviewResponseSerializer

logger = logging.getLogger(__name__)


class AccountOverviewView(LedgerAPIView):
    """
    API View for all loans of a customer - Only GET requests allowed
    """

    def get(self, request, customer_id):
        """
        Account overview
        GET /api/v1/customers/{customer_id}/overview
        """
        try:
            overview = self.engine.get_account_overview(customer_id)
        except LedgerError as e:
            return error_response(e)
        except Exception as e:
            logger.exception(f"Unexpected error while building overview for customer {customer_id}")
            return internal_error_response('Error processing loan details.', e)

        return Response(AccountOverviewResponseSerializer(overview).data, status=status.HTTP_200_OK)
