from .views import AccountOverviewView
from django.urls import path


urlpatterns = [
    path('<str:customer_id>/overview', AccountOverviewView.as_view(), name='customer-overview'),
]
