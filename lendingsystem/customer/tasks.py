from celery import shared_task
import pandas as pd
import logging
import os
from django.db import transaction
from django.conf import settings
from .models import Customer, placeholder_name

logger = logging.getLogger(__name__)


def clean_id(value):
    """Normalize an identifier cell; Excel hands numeric ids back as floats"""
    if pd.isna(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    value = str(value).strip()
    return value or None


@shared_task
def ingest_customer_data():
    """
    Step 1: Ingest customer data from Excel file
    """
    try:
        file_path = settings.DATA_DIR / 'customer_data.xlsx'

        if not os.path.exists(file_path):
            logger.error(f"Customer data file not found: {file_path}")
            return {"status": "error", "message": "Customer data file not found"}

        df = pd.read_excel(file_path)
        logger.info(f"Customer Excel columns: {list(df.columns)}")

        if 'Customer ID' not in df.columns:
            return {"status": "error", "message": f"Customer ID column not found. Available: {list(df.columns)}"}

        customers_to_create = []
        skipped = 0

        for index, row in df.iterrows():
            customer_id = clean_id(row['Customer ID'])
            if customer_id is None:
                logger.warning(f"Row {index}: missing Customer ID, skipping")
                skipped += 1
                continue

            name = row.get('Name')
            if pd.isna(name) or not str(name).strip():
                name = placeholder_name(customer_id)

            customers_to_create.append(Customer(customer_id=customer_id, name=str(name).strip()))

        # Bulk create with transaction
        with transaction.atomic():
            Customer.objects.bulk_create(customers_to_create, batch_size=1000, ignore_conflicts=True)

        logger.info(f"Successfully ingested {len(customers_to_create)} customers, skipped {skipped}")
        return {
            "status": "success",
            "count": len(customers_to_create),
            "skipped": skipped,
            "skip_reasons": {"missing_customer_id": skipped} if skipped else {},
            "message": f"Successfully ingested {len(customers_to_create)} customers"
        }

    except Exception as e:
        logger.error(f"Error ingesting customers: {str(e)}")
        return {"status": "error", "message": str(e)}
