"""
RentVelo — Read path
Per-unit bill rows for a property month, the tenant rent ledger and the
collection dashboard. Nothing here writes.
"""
from django.db.models import Count, Q, Sum

from .exceptions import NotFound
from .ledger import get_or_none
from .models import Property, RentBill, Tenant, Unit
from .utils import ZERO, month_bounds, usage_period, validate_period


def _lease_state(tenant, period_start, period_end):
    """(is_not_moved_in, is_lease_expired) for a tenant against a usage period."""
    start = tenant.get_billing_start_date()
    not_moved_in = bool(start and start > period_end)
    lease_expired = bool(
        tenant.lease_type == 'fixed'
        and tenant.lease_end_date
        and tenant.lease_end_date < period_start
    )
    return not_moved_in, lease_expired


def get_bills_for_property_month(property_id, month, year):
    """
    One row per unit of the property for (month, year):
    {unit, tenant, bill, is_vacant, is_not_moved_in, is_lease_expired}.

    Lease flags are judged against the usage month, the same window the
    generator gates on, so on a post-paid property they explain a missing bill.
    """
    month, year = validate_period(month, year)
    prop = get_or_none(Property, property_id)
    if prop is None:
        raise NotFound(f'Property {property_id} not found.')

    period_start, period_end = month_bounds(*usage_period(month, year, prop.is_post_paid))

    active_by_unit = {}
    for tenant in Tenant.objects.filter(property=prop, status='active',
                                        unit__isnull=False).order_by('created_at'):
        active_by_unit.setdefault(tenant.unit_id, tenant)

    bills = RentBill.objects.filter(
        property=prop, month=month, year=year
    ).select_related('tenant')
    bills_by_unit = {}
    for bill in bills:
        bills_by_unit.setdefault(bill.unit_id, []).append(bill)

    rows = []
    for unit in prop.units.order_by('name'):
        tenant = active_by_unit.get(unit.pk)
        unit_bills = bills_by_unit.get(unit.pk, [])
        bill = None
        if tenant is not None:
            bill = next((b for b in unit_bills if b.tenant_id == tenant.pk), None)
        if bill is None and unit_bills:
            # Former tenant's bill for this month
            bill = unit_bills[0]

        not_moved_in, lease_expired = (
            _lease_state(tenant, period_start, period_end) if tenant else (False, False)
        )
        rows.append({
            'unit': unit,
            'tenant': tenant,
            'bill': bill,
            'is_vacant': tenant is None,
            'is_not_moved_in': not_moved_in,
            'is_lease_expired': lease_expired,
        })
    return rows


def get_tenant_ledger(tenant_id):
    """The tenant's bills in chronological order, with running totals."""
    tenant = get_or_none(Tenant, tenant_id)
    if tenant is None:
        raise NotFound(f'Tenant {tenant_id} not found.')

    bills = list(
        RentBill.objects.filter(tenant=tenant)
        .select_related('unit')
        .order_by('year', 'month', 'created_at')
    )
    totals = RentBill.objects.filter(tenant=tenant).aggregate(
        billed=Sum('total_amount'), paid=Sum('paid_amount'),
    )
    # Each unit is its own chain; its latest bill carries everything before it
    latest_by_unit = {}
    for bill in bills:
        latest_by_unit[bill.unit_id] = bill
    outstanding = sum((b.balance for b in latest_by_unit.values()), ZERO)
    return {
        'tenant': tenant,
        'bills': bills,
        'total_billed': totals['billed'] or ZERO,
        'total_paid': totals['paid'] or ZERO,
        'outstanding': outstanding,
    }


def get_dashboard_data(month, year, property_id=None):
    """Collection summary for a month, optionally for one property."""
    month, year = validate_period(month, year)

    bills = RentBill.objects.filter(month=month, year=year)
    units = Unit.objects.all()
    if property_id is not None:
        if get_or_none(Property, property_id) is None:
            raise NotFound(f'Property {property_id} not found.')
        bills = bills.filter(property_id=property_id)
        units = units.filter(property_id=property_id)

    sums = bills.aggregate(
        expected=Sum('total_amount'),
        collected=Sum('paid_amount'),
        pending=Sum('balance'),
        pending_tenants=Count('tenant', filter=Q(balance__gt=0), distinct=True),
    )
    total_rooms = units.count()
    occupied = units.filter(tenants__status='active').distinct().count()

    return {
        'month': month,
        'year': year,
        'expected': sums['expected'] or ZERO,
        'collected': sums['collected'] or ZERO,
        'pending': sums['pending'] or ZERO,
        'pending_tenant_count': sums['pending_tenants'] or 0,
        'occupied_count': occupied,
        'vacant_count': total_rooms - occupied,
        'total_rooms': total_rooms,
    }
