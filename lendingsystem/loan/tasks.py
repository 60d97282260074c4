from celery import shared_task
import pandas as pd
import logging
import os
from django.conf import settings
from customer.tasks import clean_id
from .exceptions import LedgerError, InvalidInput, InvalidState, NotFound
from .models import Loan
from .services import LedgerEngine

logger = logging.getLogger(__name__)

LOAN_COLUMNS = ['Customer ID', 'Loan Amount', 'Loan Period (Years)', 'Interest Rate']
PAYMENT_COLUMNS = ['Loan ID', 'Amount', 'Payment Type']


def _read_workbook(file_name, required_columns):
    """Read a workbook from DATA_DIR, returning (df, error_result)"""
    file_path = settings.DATA_DIR / file_name

    if not os.path.exists(file_path):
        logger.error(f"Data file not found: {file_path}")
        return None, {"status": "error", "message": f"{file_name} not found"}

    df = pd.read_excel(file_path)
    logger.info(f"{file_name} columns: {list(df.columns)}")

    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        return None, {"status": "error", "message": f"Missing columns {missing}. Available: {list(df.columns)}"}

    return df, None


def _skip(skip_reasons, reason):
    skip_reasons[reason] = skip_reasons.get(reason, 0) + 1


def _result(kind, created, skipped, total_rows, skip_reasons):
    if skip_reasons:
        logger.info(f"Skip reasons: {skip_reasons}")
    logger.info(f"Total rows: {total_rows}, Created: {created}, Skipped: {skipped}")
    return {
        "status": "success",
        "count": created,
        "skipped": skipped,
        "total_rows": total_rows,
        "skip_reasons": skip_reasons,
        "message": f"Successfully ingested {created} {kind}, skipped {skipped}"
    }


@shared_task
def ingest_loan_data():
    """
    Step 2: Ingest loan data from Excel file

    Every row goes through the ledger engine, so totals and EMIs are
    computed exactly as for loans created over the API.
    """
    try:
        df, error = _read_workbook('loan_data.xlsx', LOAN_COLUMNS)
        if error:
            return error

        engine = LedgerEngine()
        created = 0
        skipped = 0
        skip_reasons = {}

        for index, row in df.iterrows():
            loan_id = clean_id(row.get('Loan ID'))

            if loan_id and Loan.objects.filter(loan_id=loan_id).exists():
                logger.warning(f"Row {index}: Loan {loan_id} already exists, skipping")
                skipped += 1
                _skip(skip_reasons, 'duplicate_loan')
                continue

            try:
                engine.create_loan(
                    customer_id=clean_id(row['Customer ID']),
                    loan_amount=None if pd.isna(row['Loan Amount']) else row['Loan Amount'],
                    loan_period_years=None if pd.isna(row['Loan Period (Years)']) else row['Loan Period (Years)'],
                    interest_rate_yearly=None if pd.isna(row['Interest Rate']) else row['Interest Rate'],
                    loan_id=loan_id,
                )
                created += 1
            except InvalidInput as e:
                logger.warning(f"Row {index}: invalid loan row: {e.message}")
                skipped += 1
                _skip(skip_reasons, 'invalid_input')
            except LedgerError as e:
                logger.error(f"Row {index}: could not create loan: {e.message}")
                skipped += 1
                _skip(skip_reasons, 'storage_error')

        return _result('loans', created, skipped, len(df), skip_reasons)

    except Exception as e:
        logger.error(f"Error ingesting loans: {str(e)}")
        return {"status": "error", "message": str(e)}


@shared_task
def ingest_payment_data():
    """
    Step 3: Replay payment history from Excel file, in file order

    Rows are recorded through the engine so loan statuses end up exactly
    as if the payments had been submitted over the API.
    """
    try:
        df, error = _read_workbook('payment_data.xlsx', PAYMENT_COLUMNS)
        if error:
            return error

        engine = LedgerEngine()
        created = 0
        skipped = 0
        skip_reasons = {}

        for index, row in df.iterrows():
            loan_id = clean_id(row['Loan ID'])
            if loan_id is None:
                skipped += 1
                _skip(skip_reasons, 'missing_loan_id')
                continue

            payment_type = row['Payment Type']
            payment_type = None if pd.isna(payment_type) else str(payment_type).strip().upper()

            try:
                engine.record_payment(
                    loan_id=loan_id,
                    amount=None if pd.isna(row['Amount']) else row['Amount'],
                    payment_type=payment_type,
                )
                created += 1
            except NotFound:
                logger.warning(f"Row {index}: Loan {loan_id} not found")
                skipped += 1
                _skip(skip_reasons, 'loan_not_found')
            except InvalidState:
                logger.warning(f"Row {index}: Loan {loan_id} is already paid off")
                skipped += 1
                _skip(skip_reasons, 'loan_paid_off')
            except InvalidInput as e:
                logger.warning(f"Row {index}: invalid payment row: {e.message}")
                skipped += 1
                _skip(skip_reasons, 'invalid_input')
            except LedgerError as e:
                logger.error(f"Row {index}: could not record payment: {e.message}")
                skipped += 1
                _skip(skip_reasons, 'storage_error')

        return _result('payments', created, skipped, len(df), skip_reasons)

    except Exception as e:
        logger.error(f"Error ingesting payments: {str(e)}")
        return {"status": "error", "message": str(e)}
