"""
Period (month/year) arithmetic and money helpers shared by the billing engine.
"""
from calendar import monthrange
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .exceptions import InvalidInput

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


# ═══════════════════════════════════════════════════════════
#  MONEY
# ═══════════════════════════════════════════════════════════

def to_decimal(value, field='amount', allow_none=False):
    """Parse user/DB input into a Decimal, rejecting non-numeric values."""
    if value is None or value == '':
        if allow_none:
            return None
        raise InvalidInput(f'{field} is required.')
    if isinstance(value, bool):
        raise InvalidInput(f'{field} must be a number.')
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInput(f'{field} must be a number.')
    if not result.is_finite():
        raise InvalidInput(f'{field} must be a finite number.')
    return result


def quantize(value):
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


# ═══════════════════════════════════════════════════════════
#  PERIODS
# ═══════════════════════════════════════════════════════════

def validate_period(month, year):
    try:
        month, year = int(month), int(year)
    except (TypeError, ValueError):
        raise InvalidInput('month and year must be integers.')
    if not 1 <= month <= 12:
        raise InvalidInput('month must be between 1 and 12.')
    if not 1900 <= year <= 9999:
        raise InvalidInput('year is out of range.')
    return month, year


def period_index(month, year):
    """Monotonic index so (month, year) pairs compare chronologically."""
    return year * 12 + (month - 1)


def shift_month(month, year, offset):
    idx = period_index(month, year) + offset
    return idx % 12 + 1, idx // 12


def month_bounds(month, year):
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def usage_period(month, year, post_paid=False):
    """Calendar month a bill covers; post-paid bills cover the previous month."""
    if post_paid:
        return shift_month(month, year, -1)
    return month, year


def is_locked_period(month, year, today):
    # Editable: the current month and the one before it.
    return period_index(month, year) < period_index(today.month, today.year) - 1


def prorate(amount, start_date, period_start, period_end):
    """
    Scale a monthly amount by the days remaining in the period when
    start_date falls strictly inside it.
    """
    if not start_date or start_date <= period_start or start_date > period_end:
        return quantize(amount)
    total_days = (period_end - period_start).days + 1
    billed_days = (period_end - start_date).days + 1
    return quantize(Decimal(amount) * billed_days / total_days)
