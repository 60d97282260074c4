from django.urls import path, include

urlpatterns = [
    path('api/v1/', include('loan.urls')),
    path('api/v1/customers/', include('customer.urls')),
]
