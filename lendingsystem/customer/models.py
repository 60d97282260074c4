from django.db import models


def placeholder_name(customer_id):
    return f"Customer {customer_id}"


class Customer(models.Model):
    # Supplied by the caller, never generated here
    customer_id = models.CharField(max_length=64, primary_key=True)
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.customer_id})"

    class Meta:
        db_table = 'customers'
