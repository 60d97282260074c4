from rest_framework import serializers


class LoanOverviewSerializer(serializers.Serializer):
    """
    Serializer for one loan inside an account overview
    """
    loan_id = serializers.CharField()
    principal = serializers.FloatField()
    total_amount = serializers.FloatField()
    total_interest = serializers.FloatField()
    emi_amount = serializers.FloatField()
    amount_paid = serializers.FloatField()
    balance_amount = serializers.FloatField()
    emis_left = serializers.IntegerField()
    status = serializers.CharField()


class AccountOverviewResponseSerializer(serializers.Serializer):
    """
    Serializer for the account overview response data
    """
    customer_id = serializers.CharField()
    total_loans = serializers.IntegerField()
    loans = LoanOverviewSerializer(many=True)
