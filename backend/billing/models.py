"""
RentVelo — Data Models
Relational schema for the rent bill lifecycle engine.

Model hierarchy:
  Property (building / PG / house)
  ├── Unit (rentable room or flat)
  │    └── MeterReading (applied electricity/water readings)
  ├── Tenant (occupant of a unit)
  └── RentBill (one per tenant + unit + month + year)
       ├── BillExpense (signed line items)
       └── Payment (received amounts)
"""

import uuid
from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone

from .utils import is_locked_period


MONEY = {'max_digits': 12, 'decimal_places': 2}


# ═══════════════════════════════════════════════════════════
#  PROPERTY
# ═══════════════════════════════════════════════════════════

class Property(models.Model):
    """
    A rental property. Carries the billing convention consumed by the
    bill generator (pre-paid vs post-paid).
    """
    TYPE_CHOICES = [
        ('house', 'House'),
        ('pg', 'PG / Hostel'),
        ('flat', 'Flat'),
        ('building', 'Building'),
        ('shop', 'Shop'),
    ]
    RENT_PAYMENT_TYPE_CHOICES = [
        ('current_month', 'Pre-paid (current month)'),
        ('previous_month', 'Post-paid (previous month)'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200, db_index=True)
    address = models.CharField(max_length=500, blank=True, default='')
    property_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='building')
    rent_payment_type = models.CharField(max_length=15, choices=RENT_PAYMENT_TYPE_CHOICES,
                                         default='current_month')
    owner_name = models.CharField(max_length=200, blank=True, default='')
    owner_phone = models.CharField(max_length=30, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'properties'
        ordering = ['name']
        verbose_name_plural = 'properties'

    def __str__(self):
        return self.name

    @property
    def is_post_paid(self):
        return self.rent_payment_type == 'previous_month'


# ═══════════════════════════════════════════════════════════
#  UNIT
# ═══════════════════════════════════════════════════════════

class Unit(models.Model):
    """
    A rentable room/flat within a property, with its rent and metering
    configuration. Read-only to the billing engine.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name='units')
    name = models.CharField(max_length=100, help_text='e.g. Room 101')
    floor = models.CharField(max_length=20, blank=True, default='')
    unit_type = models.CharField(max_length=50, blank=True, default='',
                                 help_text='e.g. 1BHK, Single Room')
    rent_amount = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])

    # Electricity
    is_metered = models.BooleanField(default=False)
    electricity_rate = models.DecimalField(**MONEY, null=True, blank=True,
                                           help_text='Per unit consumed')
    electricity_fixed_amount = models.DecimalField(**MONEY, null=True, blank=True)
    electricity_default_units = models.DecimalField(**MONEY, null=True, blank=True,
                                                    help_text='Minimum billed units')
    initial_electricity_reading = models.DecimalField(**MONEY, null=True, blank=True)

    # Water
    is_water_metered = models.BooleanField(default=False)
    water_rate = models.DecimalField(**MONEY, null=True, blank=True)
    water_fixed_amount = models.DecimalField(**MONEY, null=True, blank=True)
    water_default_units = models.DecimalField(**MONEY, null=True, blank=True)
    initial_water_reading = models.DecimalField(**MONEY, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'units'
        ordering = ['name']
        indexes = [
            models.Index(fields=['property', 'name'], name='units_property_name_idx'),
        ]

    def __str__(self):
        return f'{self.name} ({self.property.name})'


# ═══════════════════════════════════════════════════════════
#  TENANT
# ═══════════════════════════════════════════════════════════

class Tenant(models.Model):
    """
    An occupant. Only active tenants with a unit are billed.
    """
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('archived', 'Archived'),
    ]
    LEASE_TYPE_CHOICES = [
        ('monthly', 'Monthly'),
        ('fixed', 'Fixed term'),
        ('yearly', 'Yearly'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name='tenants')
    unit = models.ForeignKey(Unit, on_delete=models.CASCADE, null=True, blank=True,
                             related_name='tenants')
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=30, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active',
                              db_index=True)
    move_in_date = models.DateField(null=True, blank=True)
    rent_start_date = models.DateField(null=True, blank=True)
    move_out_date = models.DateField(null=True, blank=True)
    lease_type = models.CharField(max_length=10, choices=LEASE_TYPE_CHOICES, default='monthly')
    lease_start_date = models.DateField(null=True, blank=True)
    lease_end_date = models.DateField(null=True, blank=True)
    security_deposit = models.DecimalField(**MONEY, default=0)
    advance_rent = models.DecimalField(**MONEY, default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tenants'
        ordering = ['name']
        indexes = [
            models.Index(fields=['unit', 'status'], name='tenants_unit_status_idx'),
            models.Index(fields=['property', 'status'], name='tenants_property_status_idx'),
        ]

    def __str__(self):
        return self.name

    def get_billing_start_date(self):
        return self.rent_start_date or self.move_in_date


# ═══════════════════════════════════════════════════════════
#  RENT BILL
# ═══════════════════════════════════════════════════════════

class RentBill(models.Model):
    """
    Monthly bill for one tenant in one unit.

    total_amount, paid_amount, balance and status are stored for listing
    queries and are only ever written by billing.ledger.recalculate_bill.
    """
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('partial', 'Partially paid'),
        ('paid', 'Paid'),
        ('overpaid', 'Overpaid'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name='bills')
    unit = models.ForeignKey(Unit, on_delete=models.CASCADE, related_name='bills')
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='bills')
    month = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(12)])
    year = models.PositiveSmallIntegerField()
    bill_number = models.CharField(max_length=20, blank=True, default='')

    rent_amount = models.DecimalField(**MONEY, default=0)
    electricity_amount = models.DecimalField(**MONEY, default=0)
    water_amount = models.DecimalField(**MONEY, default=0)
    prev_reading = models.DecimalField(**MONEY, null=True, blank=True)
    curr_reading = models.DecimalField(**MONEY, null=True, blank=True)
    water_prev_reading = models.DecimalField(**MONEY, null=True, blank=True)
    water_curr_reading = models.DecimalField(**MONEY, null=True, blank=True)

    # Signed: positive = due carried forward, negative = advance credit
    previous_balance = models.DecimalField(**MONEY, default=0)
    total_expenses = models.DecimalField(**MONEY, default=0)
    total_amount = models.DecimalField(**MONEY, default=0)
    paid_amount = models.DecimalField(**MONEY, default=0)
    balance = models.DecimalField(**MONEY, default=0)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending',
                              db_index=True)

    period_start = models.DateField(null=True, blank=True)
    period_end = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rent_bills'
        ordering = ['year', 'month']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'unit', 'month', 'year'],
                                    name='uq_rent_bill_tenant_unit_period'),
        ]
        indexes = [
            models.Index(fields=['property', 'year', 'month'], name='rent_bills_property_period_idx'),
            models.Index(fields=['tenant', 'unit', 'year', 'month'], name='rent_bills_chain_idx'),
        ]

    def __str__(self):
        return f'{self.bill_number or "Bill"} — {self.month:02d}/{self.year} ({self.status})'

    def is_locked(self, today=None):
        """True once the bill is more than one calendar month old."""
        return is_locked_period(self.month, self.year, today or timezone.localdate())


# ═══════════════════════════════════════════════════════════
#  BILL EXPENSE
# ═══════════════════════════════════════════════════════════

class BillExpense(models.Model):
    """
    Signed line item on a bill. Negative amounts are discounts/credits.
    Recurring items are re-seeded onto the tenant's next generated bill.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    bill = models.ForeignKey(RentBill, on_delete=models.CASCADE, related_name='expenses')
    label = models.CharField(max_length=200)
    amount = models.DecimalField(**MONEY)
    is_recurring = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'bill_expenses'
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.label}: {self.amount}'


# ═══════════════════════════════════════════════════════════
#  PAYMENT
# ═══════════════════════════════════════════════════════════

class Payment(models.Model):
    """
    A received payment. Bill-linked payments with status 'paid' feed the
    bill's paid_amount.
    """
    PAYMENT_TYPE_CHOICES = [
        ('rent', 'Rent'),
        ('security_deposit', 'Security deposit'),
        ('advance', 'Advance'),
        ('maintenance', 'Maintenance'),
        ('other', 'Other'),
    ]
    PAYMENT_METHOD_CHOICES = [
        ('cash', 'Cash'),
        ('upi', 'UPI'),
        ('bank_transfer', 'Bank transfer'),
        ('cheque', 'Cheque'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('overdue', 'Overdue'),
        ('cancelled', 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name='payments')
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name='payments')
    unit = models.ForeignKey(Unit, on_delete=models.CASCADE, null=True, blank=True,
                             related_name='payments')
    bill = models.ForeignKey(RentBill, on_delete=models.CASCADE, null=True, blank=True,
                             related_name='payments')
    amount = models.DecimalField(**MONEY, validators=[MinValueValidator(0)])
    payment_date = models.DateField(default=timezone.localdate)
    payment_type = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES, default='rent')
    payment_method = models.CharField(max_length=15, choices=PAYMENT_METHOD_CHOICES,
                                      default='cash')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='paid',
                              db_index=True)
    notes = models.TextField(blank=True, default='')
    photo_uri = models.CharField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        ordering = ['-payment_date', '-created_at']
        indexes = [
            models.Index(fields=['bill', 'status'], name='payments_bill_status_idx'),
            models.Index(fields=['tenant', 'payment_date'], name='payments_tenant_date_idx'),
        ]

    def __str__(self):
        return f'{self.amount} ({self.payment_method}) — {self.payment_date}'


# ═══════════════════════════════════════════════════════════
#  METER READING (history of applied readings)
# ═══════════════════════════════════════════════════════════

class MeterReading(models.Model):
    READING_TYPE_CHOICES = [
        ('electricity', 'Electricity'),
        ('water', 'Water'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    property = models.ForeignKey(Property, on_delete=models.CASCADE, related_name='meter_readings')
    unit = models.ForeignKey(Unit, on_delete=models.CASCADE, related_name='meter_readings')
    bill = models.ForeignKey(RentBill, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name='meter_readings')
    reading_type = models.CharField(max_length=12, choices=READING_TYPE_CHOICES)
    previous_reading = models.DecimalField(**MONEY)
    current_reading = models.DecimalField(**MONEY)
    units_billed = models.DecimalField(**MONEY)
    amount = models.DecimalField(**MONEY)
    reading_date = models.DateField(default=timezone.localdate)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'meter_readings'
        ordering = ['-reading_date', '-created_at']
        indexes = [
            models.Index(fields=['unit', 'reading_type'], name='meter_readings_unit_type_idx'),
        ]

    def __str__(self):
        return f'{self.reading_type} {self.previous_reading} → {self.current_reading}'
