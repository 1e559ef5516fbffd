"""
RentVelo — Bill Generator

Ensures one RentBill per active tenant per billing period. Safe to call
repeatedly: existing bills are never touched.
"""
import logging

from django.conf import settings
from django.db import transaction

from .exceptions import BillingError
from .ledger import get_or_none, previous_bill, recalculate_bill
from .models import BillExpense, Property, RentBill, Tenant
from .utils import ZERO, month_bounds, prorate, quantize, usage_period, validate_period

logger = logging.getLogger(__name__)


def _next_bill_number(property_id):
    """One past the highest number issued for the property; gaps are never refilled."""
    prefix = settings.RENT_BILL_NUMBER_PREFIX
    numbers = RentBill.objects.filter(
        property_id=property_id, bill_number__startswith=prefix
    ).values_list('bill_number', flat=True)
    highest = 0
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f'{prefix}{highest + 1:04d}'


def _opening_balance(tenant, prior):
    """Carry the prior bill's balance; a first bill starts from advance rent."""
    if prior is not None:
        return prior.balance
    if tenant.advance_rent and tenant.advance_rent > 0:
        return -quantize(tenant.advance_rent)
    return ZERO


def _utility_seed(unit, prior, kind):
    """Initial (amount, previous_reading) for one utility on a new bill."""
    if kind == 'electricity':
        metered, fixed, initial = (unit.is_metered, unit.electricity_fixed_amount,
                                   unit.initial_electricity_reading)
        prior_reading = prior.curr_reading if prior is not None else None
    else:
        metered, fixed, initial = (unit.is_water_metered, unit.water_fixed_amount,
                                   unit.initial_water_reading)
        prior_reading = prior.water_curr_reading if prior is not None else None

    if not metered:
        return quantize(fixed or ZERO), None
    return ZERO, prior_reading if prior_reading is not None else initial


def _skip_reason(tenant, prop, period_start, period_end):
    unit = tenant.unit
    if unit is None:
        return 'no unit assigned'
    if unit.property_id != prop.pk:
        return f'unit {unit.pk} belongs to another property'
    start = tenant.get_billing_start_date()
    if start and start > period_end:
        return f'rent starts on {start}'
    if tenant.lease_type == 'fixed' and tenant.lease_end_date and tenant.lease_end_date < period_start:
        return f'lease ended on {tenant.lease_end_date}'
    return None


def _generate_tenant_bill(prop, tenant, month, year):
    usage_month, usage_year = usage_period(month, year, prop.is_post_paid)
    period_start, period_end = month_bounds(usage_month, usage_year)

    reason = _skip_reason(tenant, prop, period_start, period_end)
    if reason:
        logger.info('Skipping tenant %s for %02d/%d: %s', tenant.pk, month, year, reason)
        return None

    unit = tenant.unit
    if RentBill.objects.filter(tenant=tenant, unit=unit, month=month, year=year).exists():
        return None

    prior = previous_bill(tenant.pk, unit.pk, month, year)
    electricity_amount, prev_reading = _utility_seed(unit, prior, 'electricity')
    water_amount, water_prev_reading = _utility_seed(unit, prior, 'water')

    with transaction.atomic():
        bill = RentBill.objects.create(
            property=prop,
            unit=unit,
            tenant=tenant,
            month=month,
            year=year,
            bill_number=_next_bill_number(prop.pk),
            rent_amount=prorate(unit.rent_amount, tenant.get_billing_start_date(),
                                period_start, period_end),
            electricity_amount=electricity_amount,
            water_amount=water_amount,
            prev_reading=prev_reading,
            water_prev_reading=water_prev_reading,
            previous_balance=_opening_balance(tenant, prior),
            period_start=period_start,
            period_end=period_end,
        )
        if prior is not None:
            BillExpense.objects.bulk_create([
                BillExpense(bill=bill, label=expense.label, amount=expense.amount,
                            is_recurring=True)
                for expense in prior.expenses.filter(is_recurring=True)
            ])

    # Also refreshes a later bill when this one fills a gap in the chain.
    return recalculate_bill(bill.pk)


def generate_bills_for_property(property_id, month, year):
    """
    Create the missing bills of every active tenant of a property for
    (month, year). Returns the bills created by this call.

    Tenants that cannot be billed are skipped and logged; the rest of the
    property is still processed.
    """
    month, year = validate_period(month, year)

    prop = get_or_none(Property, property_id)
    if prop is None:
        logger.warning('Bill generation skipped: property %s not found', property_id)
        return []

    tenants = Tenant.objects.filter(
        property=prop, status='active'
    ).select_related('unit').order_by('created_at')

    created = []
    for tenant in tenants:
        try:
            bill = _generate_tenant_bill(prop, tenant, month, year)
        except BillingError as exc:
            logger.warning('Bill generation failed for tenant %s: %s', tenant.pk, exc)
            continue
        if bill is not None:
            created.append(bill)

    logger.info('Generated %d bill(s) for property %s, %02d/%d',
                len(created), prop.pk, month, year)
    return created
