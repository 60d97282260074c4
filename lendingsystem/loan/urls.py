from django.urls import path
from .views import CreateLoanView, RecordPaymentView, LoanLedgerView

urlpatterns = [
    path('loans', CreateLoanView.as_view(), name='create-loan'),
    path('loans/<str:loan_id>/payments', RecordPaymentView.as_view(), name='record-payment'),
    path('loans/<str:loan_id>/ledger', LoanLedgerView.as_view(), name='loan-ledger'),
]
