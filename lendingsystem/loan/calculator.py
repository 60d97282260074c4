"""
Simple-interest amortization arithmetic.

All functions are pure and work on ``Decimal`` values; nothing here rounds
except ``count_emis_left``, which ignores a sub-cent residual.
"""
from decimal import Decimal
from typing import NamedTuple

HUNDRED = Decimal('100')
MONTHS_PER_YEAR = 12
CENT = Decimal('0.01')


class LoanTerms(NamedTuple):
    interest: Decimal
    total_amount: Decimal
    monthly_emi: Decimal


def compute(principal, years, annual_rate_pct):
    """
    Compute total simple interest, total payable and the monthly installment.

    interest     = principal * years * rate / 100
    total_amount = principal + interest
    monthly_emi  = total_amount / (years * 12)

    The caller guarantees principal > 0, years >= 1 and rate >= 0.
    """
    principal = Decimal(str(principal))
    annual_rate_pct = Decimal(str(annual_rate_pct))
    interest = principal * years * (annual_rate_pct / HUNDRED)
    total_amount = principal + interest
    monthly_emi = total_amount / (years * MONTHS_PER_YEAR)
    return LoanTerms(interest=interest, total_amount=total_amount, monthly_emi=monthly_emi)


def remaining_balance(total_amount, amount_paid):
    """Outstanding amount, floored at zero."""
    return max(Decimal('0'), Decimal(str(total_amount)) - Decimal(str(amount_paid)))


def count_emis_left(balance, monthly_emi):
    """
    Number of installments still needed to clear ``balance``.

    Equivalent to ceil(balance / monthly_emi), except that a residual below
    one cent after the whole installments does not count as another one.
    """
    balance = Decimal(str(balance))
    monthly_emi = Decimal(str(monthly_emi))
    if monthly_emi <= 0 or balance <= 0:
        return 0
    whole, residual = divmod(balance, monthly_emi)
    emis = int(whole)
    if residual >= CENT:
        emis += 1
    return emis
