from django.contrib import admin
from .models import (
    Property, Unit, Tenant, RentBill, BillExpense, Payment, MeterReading,
)

@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = ['name', 'property_type', 'rent_payment_type', 'owner_name']
    list_filter = ['property_type', 'rent_payment_type']
    search_fields = ['name', 'address']

@admin.register(Unit)
class UnitAdmin(admin.ModelAdmin):
    list_display = ['name', 'property', 'rent_amount', 'is_metered', 'is_water_metered']
    list_filter = ['property', 'is_metered', 'is_water_metered']
    search_fields = ['name']

@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['name', 'property', 'unit', 'status', 'lease_type', 'rent_start_date']
    list_filter = ['property', 'status', 'lease_type']
    search_fields = ['name', 'phone']

class BillExpenseInline(admin.TabularInline):
    model = BillExpense
    extra = 0

@admin.register(RentBill)
class RentBillAdmin(admin.ModelAdmin):
    list_display = ['bill_number', 'tenant', 'unit', 'month', 'year', 'total_amount',
                    'paid_amount', 'balance', 'status']
    list_filter = ['property', 'status', 'year', 'month']
    search_fields = ['bill_number', 'tenant__name', 'unit__name']
    # Written only by the recalculator
    readonly_fields = ['total_expenses', 'total_amount', 'paid_amount', 'balance', 'status']
    inlines = [BillExpenseInline]

@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'bill', 'amount', 'payment_method', 'status', 'payment_date']
    list_filter = ['property', 'status', 'payment_method']
    search_fields = ['tenant__name']

admin.site.register(MeterReading)
