"""
RentVelo — Bill Recalculator and ledgers

recalculate_bill is the single place that writes a bill's derived fields
(total_expenses, total_amount, paid_amount, balance, status). Every mutation
path (expenses, payments, meter readings, direct edits) ends by calling it.

Bills of one tenant in one unit form a time-ordered chain. A changed balance
is carried into the next bill's previous_balance and the walk continues
forward until a write would be a no-op.
"""
import logging
from datetime import date

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Q, Sum
from django.utils import timezone

from .exceptions import BillLocked, InvalidInput, NotFound
from .meter import UTILITY_KINDS, calculate_utility_amount, unit_config
from .models import BillExpense, MeterReading, Payment, RentBill
from .utils import ZERO, quantize, to_decimal

logger = logging.getLogger(__name__)

DERIVED_FIELDS = ['total_expenses', 'total_amount', 'paid_amount', 'balance', 'status',
                  'updated_at']

_AMOUNT_FIELDS = ('rent_amount', 'electricity_amount', 'water_amount', 'previous_balance')
_READING_FIELDS = ('prev_reading', 'curr_reading', 'water_prev_reading', 'water_curr_reading')
_DATE_FIELDS = ('period_start', 'period_end')
EDITABLE_FIELDS = _AMOUNT_FIELDS + _READING_FIELDS + _DATE_FIELDS + ('notes',)

_READING_FIELDS_BY_KIND = {
    'electricity': ('prev_reading', 'curr_reading', 'electricity_amount'),
    'water': ('water_prev_reading', 'water_curr_reading', 'water_amount'),
}


# ═══════════════════════════════════════════════════════════
#  LOOKUPS
# ═══════════════════════════════════════════════════════════

def get_or_none(model, pk):
    try:
        return model.objects.filter(pk=pk).first()
    except (ValueError, DjangoValidationError):
        return None


def get_bill(bill_id):
    bill = get_or_none(RentBill, bill_id)
    if bill is None:
        raise NotFound(f'Bill {bill_id} not found.')
    return bill


def previous_bill(tenant_id, unit_id, month, year):
    """Nearest earlier bill in the tenant+unit chain, ignoring gaps."""
    return RentBill.objects.filter(
        tenant_id=tenant_id, unit_id=unit_id
    ).filter(
        Q(year__lt=year) | Q(year=year, month__lt=month)
    ).order_by('-year', '-month').first()


def next_bill(tenant_id, unit_id, month, year):
    """Nearest later bill in the tenant+unit chain, ignoring gaps."""
    return RentBill.objects.filter(
        tenant_id=tenant_id, unit_id=unit_id
    ).filter(
        Q(year__gt=year) | Q(year=year, month__gt=month)
    ).order_by('year', 'month').first()


def _ensure_editable(bill):
    if settings.RENT_LOCK_HISTORICAL_BILLS and bill.is_locked():
        raise BillLocked(
            f'Bill {bill.bill_number or bill.pk} for {bill.month:02d}/{bill.year} is locked.'
        )


# ═══════════════════════════════════════════════════════════
#  RECALCULATION
# ═══════════════════════════════════════════════════════════

def compute_bill_status(total_amount, paid_amount):
    """Status as a pure function of the bill's totals. First match wins."""
    balance = total_amount - paid_amount
    if paid_amount == 0:
        return 'pending'
    if balance < 0:
        return 'overpaid'
    if balance == 0:
        return 'paid'
    if 0 < balance < total_amount:
        return 'partial'
    return 'pending'


def _refresh_totals(bill):
    total_expenses = bill.expenses.aggregate(total=Sum('amount'))['total'] or ZERO
    paid_amount = bill.payments.filter(
        status='paid'
    ).aggregate(total=Sum('amount'))['total'] or ZERO

    bill.total_expenses = quantize(total_expenses)
    bill.total_amount = quantize(
        bill.rent_amount + bill.electricity_amount + bill.water_amount
        + bill.total_expenses + bill.previous_balance
    )
    bill.paid_amount = quantize(paid_amount)
    bill.balance = bill.total_amount - bill.paid_amount
    bill.status = compute_bill_status(bill.total_amount, bill.paid_amount)
    bill.save(update_fields=DERIVED_FIELDS)


def recalculate_bill(bill_id):
    """
    Recompute a bill from its ledgers and cascade the new balance forward.

    Idempotent. A missing bill is logged and returns None instead of
    raising, so callers chaining several writes are never interrupted.
    """
    bill = get_or_none(RentBill, bill_id)
    if bill is None:
        logger.warning('Recalculation skipped: bill %s not found', bill_id)
        return None

    _refresh_totals(bill)

    current = bill
    hops = 0
    while True:
        following = next_bill(current.tenant_id, current.unit_id, current.month, current.year)
        if following is None or following.previous_balance == current.balance:
            break
        following.previous_balance = current.balance
        following.save(update_fields=['previous_balance', 'updated_at'])
        _refresh_totals(following)
        hops += 1
        current = following

    if hops:
        logger.debug('Bill %s balance %s cascaded through %d later bill(s)',
                     bill.pk, bill.balance, hops)
    return bill


# ═══════════════════════════════════════════════════════════
#  EXPENSE LEDGER
# ═══════════════════════════════════════════════════════════

def add_expense_to_bill(bill_id, label, amount, is_recurring=False):
    """Add a signed line item (negative = discount) and recalculate the bill."""
    bill = get_bill(bill_id)
    _ensure_editable(bill)

    label = (label or '').strip()
    if not label:
        raise InvalidInput('label is required.')
    amount = quantize(to_decimal(amount, 'amount'))
    if amount == 0:
        raise InvalidInput('amount cannot be zero.')

    expense = BillExpense.objects.create(
        bill=bill, label=label, amount=amount, is_recurring=bool(is_recurring),
    )
    recalculate_bill(bill.pk)
    return expense


def remove_expense(expense_id):
    """
    Delete an expense and return its bill id.
    The caller recalculates that bill.
    """
    expense = get_or_none(BillExpense, expense_id)
    if expense is None:
        raise NotFound(f'Expense {expense_id} not found.')
    _ensure_editable(expense.bill)
    bill_id = expense.bill_id
    expense.delete()
    return bill_id


def get_bill_expenses(bill_id):
    return list(get_bill(bill_id).expenses.order_by('-created_at'))


# ═══════════════════════════════════════════════════════════
#  PAYMENT LEDGER
# ═══════════════════════════════════════════════════════════

def add_payment_to_bill(bill_id, amount, payment_method='cash', payment_date=None,
                        notes='', photo_uri='', payment_type='rent'):
    """
    Record a received payment against a bill.
    The caller recalculates the bill afterwards.
    """
    bill = get_bill(bill_id)
    _ensure_editable(bill)

    amount = quantize(to_decimal(amount, 'amount'))
    if amount <= 0:
        raise InvalidInput('Payment amount must be greater than zero.')
    if payment_method not in dict(Payment.PAYMENT_METHOD_CHOICES):
        raise InvalidInput(f'Unknown payment method "{payment_method}".')
    if payment_type not in dict(Payment.PAYMENT_TYPE_CHOICES):
        raise InvalidInput(f'Unknown payment type "{payment_type}".')

    return Payment.objects.create(
        bill=bill,
        property_id=bill.property_id,
        tenant_id=bill.tenant_id,
        unit_id=bill.unit_id,
        amount=amount,
        payment_method=payment_method,
        payment_type=payment_type,
        payment_date=payment_date or timezone.localdate(),
        notes=notes or '',
        photo_uri=photo_uri or '',
        status='paid',
    )


def remove_payment_from_bill(payment_id):
    """
    Hard-delete a payment and return the bill id it belonged to (may be None).
    The caller recalculates that bill.
    """
    payment = get_or_none(Payment, payment_id)
    if payment is None:
        raise NotFound(f'Payment {payment_id} not found.')
    if payment.bill_id:
        _ensure_editable(payment.bill)
    bill_id = payment.bill_id
    payment.delete()
    return bill_id


def get_bill_payments(bill_id):
    bill = get_bill(bill_id)
    return list(bill.payments.filter(status='paid').order_by('-payment_date', '-created_at'))


# ═══════════════════════════════════════════════════════════
#  DIRECT EDITS
# ═══════════════════════════════════════════════════════════

def _parse_date(value, field):
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidInput(f'{field} must be a date (YYYY-MM-DD).')


def update_bill(bill_id, **fields):
    """
    Apply direct field edits (rent override, previous balance override,
    utility amounts, readings, period dates, notes).
    The caller recalculates the bill afterwards.
    """
    bill = get_bill(bill_id)
    _ensure_editable(bill)

    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidInput(f'Fields cannot be edited: {", ".join(sorted(unknown))}.')

    changes = {}
    for name, value in fields.items():
        if name in _AMOUNT_FIELDS:
            amount = quantize(to_decimal(value, name))
            # previous_balance is signed; charges are not
            if name != 'previous_balance' and amount < 0:
                raise InvalidInput(f'{name} cannot be negative.')
            changes[name] = amount
        elif name in _READING_FIELDS:
            reading = to_decimal(value, name, allow_none=True)
            changes[name] = None if reading is None else quantize(reading)
        elif name in _DATE_FIELDS:
            changes[name] = _parse_date(value, name)
        else:
            changes[name] = value or ''

    def merged(name):
        return changes[name] if name in changes else getattr(bill, name)

    start, end = merged('period_start'), merged('period_end')
    if start and end and start > end:
        raise InvalidInput('period_start must not be after period_end.')
    for prev_field, curr_field, _ in _READING_FIELDS_BY_KIND.values():
        prev, curr = merged(prev_field), merged(curr_field)
        if prev is not None and curr is not None and curr < prev:
            raise InvalidInput(f'{curr_field} cannot be lower than {prev_field}.')

    if not changes:
        return bill
    for name, value in changes.items():
        setattr(bill, name, value)
    bill.save(update_fields=list(changes) + ['updated_at'])
    return bill


# ═══════════════════════════════════════════════════════════
#  METER READINGS
# ═══════════════════════════════════════════════════════════

def apply_meter_reading(bill_id, current_reading, kind='electricity', reading_date=None):
    """
    Price a new meter reading onto a bill, keep it in the unit's reading
    history and recalculate.

    The previous reading is the bill's own, else the prior bill's current
    reading, else the unit's initial reading.
    """
    if kind not in UTILITY_KINDS:
        raise InvalidInput(f'Unknown utility "{kind}".')

    bill = get_bill(bill_id)
    _ensure_editable(bill)
    unit = bill.unit
    config = unit_config(unit, kind)
    if not config['metered']:
        raise InvalidInput(f'{unit.name} has no {kind} meter.')

    prev_field, curr_field, amount_field = _READING_FIELDS_BY_KIND[kind]
    previous = getattr(bill, prev_field)
    if previous is None:
        prior = previous_bill(bill.tenant_id, bill.unit_id, bill.month, bill.year)
        if prior is not None:
            previous = getattr(prior, curr_field)
    if previous is None:
        previous = config['initial'] if config['initial'] is not None else ZERO

    charge = calculate_utility_amount(unit, kind, current_reading, previous)
    current = quantize(to_decimal(current_reading, 'current_reading'))

    setattr(bill, prev_field, quantize(previous))
    setattr(bill, curr_field, current)
    setattr(bill, amount_field, charge.amount)
    bill.save(update_fields=[prev_field, curr_field, amount_field, 'updated_at'])

    MeterReading.objects.create(
        property_id=bill.property_id,
        unit=unit,
        bill=bill,
        reading_type=kind,
        previous_reading=quantize(previous),
        current_reading=current,
        units_billed=quantize(charge.units_billed),
        amount=charge.amount,
        reading_date=reading_date or timezone.localdate(),
    )
    return recalculate_bill(bill.pk)
