"""
RentVelo — REST API Serializers
Read serializers for the models and input serializers for the engine calls.
Engine-level validation (meter regressions, locks) stays in the services.
"""
from decimal import Decimal

from rest_framework import serializers

from .ledger import EDITABLE_FIELDS
from .meter import UTILITY_KINDS
from .models import (
    Unit, Tenant, RentBill, BillExpense, Payment, MeterReading,
)


# ═══════════════════════════════════════════════════════════
#  REFERENCE DATA
# ═══════════════════════════════════════════════════════════

class UnitSerializer(serializers.ModelSerializer):
    class Meta:
        model = Unit
        fields = ['id', 'property', 'name', 'floor', 'unit_type', 'rent_amount',
                  'is_metered', 'electricity_rate', 'electricity_fixed_amount',
                  'is_water_metered', 'water_rate', 'water_fixed_amount']
        read_only_fields = fields


class TenantSerializer(serializers.ModelSerializer):
    unit_name = serializers.CharField(source='unit.name', read_only=True, default=None)

    class Meta:
        model = Tenant
        fields = ['id', 'property', 'unit', 'unit_name', 'name', 'phone', 'status',
                  'move_in_date', 'rent_start_date', 'lease_type', 'lease_end_date',
                  'advance_rent']
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════
#  BILLS
# ═══════════════════════════════════════════════════════════

class BillExpenseSerializer(serializers.ModelSerializer):
    class Meta:
        model = BillExpense
        fields = ['id', 'bill', 'label', 'amount', 'is_recurring', 'created_at']
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ['id', 'property', 'tenant', 'unit', 'bill', 'amount', 'payment_date',
                  'payment_type', 'payment_method', 'status', 'notes', 'photo_uri',
                  'created_at']
        read_only_fields = fields


class MeterReadingSerializer(serializers.ModelSerializer):
    class Meta:
        model = MeterReading
        fields = ['id', 'unit', 'bill', 'reading_type', 'previous_reading',
                  'current_reading', 'units_billed', 'amount', 'reading_date']
        read_only_fields = fields


class RentBillSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source='tenant.name', read_only=True)
    unit_name = serializers.CharField(source='unit.name', read_only=True)
    is_locked = serializers.SerializerMethodField()

    class Meta:
        model = RentBill
        fields = ['id', 'bill_number', 'property', 'unit', 'unit_name', 'tenant',
                  'tenant_name', 'month', 'year', 'period_start', 'period_end',
                  'rent_amount', 'electricity_amount', 'water_amount',
                  'prev_reading', 'curr_reading', 'water_prev_reading', 'water_curr_reading',
                  'previous_balance', 'total_expenses', 'total_amount', 'paid_amount',
                  'balance', 'status', 'is_locked', 'notes', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_is_locked(self, obj):
        return obj.is_locked()


class RentBillDetailSerializer(RentBillSerializer):
    expenses = BillExpenseSerializer(many=True, read_only=True)
    payments = serializers.SerializerMethodField()
    meter_readings = MeterReadingSerializer(many=True, read_only=True)

    class Meta(RentBillSerializer.Meta):
        fields = RentBillSerializer.Meta.fields + ['expenses', 'payments', 'meter_readings']
        read_only_fields = fields

    def get_payments(self, obj):
        return PaymentSerializer(obj.payments.filter(status='paid'), many=True).data


class BillRowSerializer(serializers.Serializer):
    """Read-only row of the property month view."""
    unit = UnitSerializer()
    tenant = TenantSerializer(allow_null=True)
    bill = RentBillSerializer(allow_null=True)
    is_vacant = serializers.BooleanField()
    is_not_moved_in = serializers.BooleanField()
    is_lease_expired = serializers.BooleanField()


class TenantLedgerSerializer(serializers.Serializer):
    tenant = TenantSerializer()
    bills = RentBillSerializer(many=True)
    total_billed = serializers.DecimalField(max_digits=14, decimal_places=2)
    total_paid = serializers.DecimalField(max_digits=14, decimal_places=2)
    outstanding = serializers.DecimalField(max_digits=14, decimal_places=2)


class DashboardSerializer(serializers.Serializer):
    """Read-only serializer for dashboard data."""
    month = serializers.IntegerField()
    year = serializers.IntegerField()
    expected = serializers.DecimalField(max_digits=14, decimal_places=2)
    collected = serializers.DecimalField(max_digits=14, decimal_places=2)
    pending = serializers.DecimalField(max_digits=14, decimal_places=2)
    pending_tenant_count = serializers.IntegerField()
    occupied_count = serializers.IntegerField()
    vacant_count = serializers.IntegerField()
    total_rooms = serializers.IntegerField()


# ═══════════════════════════════════════════════════════════
#  INPUT
# ═══════════════════════════════════════════════════════════

class PeriodSerializer(serializers.Serializer):
    month = serializers.IntegerField(min_value=1, max_value=12)
    year = serializers.IntegerField(min_value=1900, max_value=9999)


class BillUpdateSerializer(serializers.Serializer):
    """PATCH body for a bill. Only the fields sent are applied."""
    rent_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                           required=False)
    electricity_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                                  required=False)
    water_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                            required=False)
    previous_balance = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    prev_reading = serializers.DecimalField(max_digits=12, decimal_places=2, required=False,
                                            allow_null=True)
    curr_reading = serializers.DecimalField(max_digits=12, decimal_places=2, required=False,
                                            allow_null=True)
    water_prev_reading = serializers.DecimalField(max_digits=12, decimal_places=2,
                                                  required=False, allow_null=True)
    water_curr_reading = serializers.DecimalField(max_digits=12, decimal_places=2,
                                                  required=False, allow_null=True)
    period_start = serializers.DateField(required=False, allow_null=True)
    period_end = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, data):
        unknown = set(self.initial_data) - set(EDITABLE_FIELDS)
        if unknown:
            raise serializers.ValidationError(
                f'Fields cannot be edited: {", ".join(sorted(unknown))}.'
            )
        return data


class ExpenseCreateSerializer(serializers.Serializer):
    label = serializers.CharField(max_length=200)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    is_recurring = serializers.BooleanField(required=False, default=False)


class PaymentCreateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    payment_method = serializers.ChoiceField(choices=Payment.PAYMENT_METHOD_CHOICES,
                                             required=False, default='cash')
    payment_type = serializers.ChoiceField(choices=Payment.PAYMENT_TYPE_CHOICES,
                                           required=False, default='rent')
    payment_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    photo_uri = serializers.CharField(required=False, allow_blank=True, default='')


class MeterReadingInputSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=UTILITY_KINDS, required=False, default='electricity')
    current_reading = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    reading_date = serializers.DateField(required=False, allow_null=True)
