"""
RentVelo — Billing engine tests
Bill generation, recalculation and cascade, ledgers, meter readings, the
read path and the REST endpoints.
"""
import uuid
from datetime import date
from decimal import Decimal

from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from billing.exceptions import BillLocked, InvalidInput, NotFound
from billing.generator import generate_bills_for_property
from billing.ledger import (
    add_expense_to_bill, add_payment_to_bill, apply_meter_reading, compute_bill_status,
    get_bill_expenses, get_bill_payments, recalculate_bill, remove_expense,
    remove_payment_from_bill, update_bill,
)
from billing.meter import calculate_metered_charge, calculate_utility_amount
from billing.models import (
    Property, Unit, Tenant, RentBill, BillExpense, Payment, MeterReading,
)
from billing.reports import get_bills_for_property_month, get_dashboard_data, get_tenant_ledger
from billing.utils import is_locked_period, prorate, shift_month, usage_period


class BaseTestCase(TestCase):
    """Property with a plain room, a vacant room and a metered room."""

    def setUp(self):
        self.client = APIClient()

        self.property = Property.objects.create(
            name='Sai Residency', address='12 MG Road, Pune',
        )

        # Units
        self.unit1 = Unit.objects.create(
            property=self.property, name='Room 101', rent_amount=Decimal('5000'),
        )
        self.unit2 = Unit.objects.create(
            property=self.property, name='Room 102', rent_amount=Decimal('5500'),
        )
        self.unit3 = Unit.objects.create(
            property=self.property, name='Room 103', rent_amount=Decimal('4000'),
            is_metered=True, electricity_rate=Decimal('8'),
            electricity_default_units=Decimal('20'),
            initial_electricity_reading=Decimal('1000'),
        )

        # Tenants (Room 102 is vacant)
        self.tenant1 = Tenant.objects.create(
            property=self.property, unit=self.unit1, name='Anil Deshpande',
            move_in_date=date(2019, 1, 1),
        )
        self.tenant3 = Tenant.objects.create(
            property=self.property, unit=self.unit3, name='Vikram Joshi',
            move_in_date=date(2019, 1, 1),
        )

    def generate(self, month=3, year=2024):
        return generate_bills_for_property(self.property.pk, month, year)

    def bill_for(self, tenant, month=3, year=2024):
        return RentBill.objects.get(tenant=tenant, month=month, year=year)

    def pay(self, bill, amount):
        payment = add_payment_to_bill(bill.pk, Decimal(amount))
        recalculate_bill(bill.pk)
        return payment


# ═══════════════════════════════════════════════════════════
#  PERIOD HELPERS
# ═══════════════════════════════════════════════════════════

class PeriodHelperTests(TestCase):

    def test_shift_month_crosses_year(self):
        self.assertEqual(shift_month(1, 2024, -1), (12, 2023))
        self.assertEqual(shift_month(12, 2023, 1), (1, 2024))
        self.assertEqual(shift_month(3, 2024, -14), (1, 2023))

    def test_usage_period(self):
        self.assertEqual(usage_period(3, 2024), (3, 2024))
        self.assertEqual(usage_period(1, 2024, post_paid=True), (12, 2023))

    def test_locked_period(self):
        today = date(2024, 5, 10)
        self.assertFalse(is_locked_period(5, 2024, today))
        self.assertFalse(is_locked_period(4, 2024, today))
        self.assertTrue(is_locked_period(3, 2024, today))

    def test_prorate(self):
        start, end = date(2024, 3, 1), date(2024, 3, 31)
        self.assertEqual(prorate(Decimal('5000'), date(2024, 3, 16), start, end),
                         Decimal('2580.65'))
        self.assertEqual(prorate(Decimal('5000'), date(2024, 3, 1), start, end),
                         Decimal('5000.00'))
        self.assertEqual(prorate(Decimal('5000'), None, start, end), Decimal('5000.00'))


# ═══════════════════════════════════════════════════════════
#  BILL GENERATOR
# ═══════════════════════════════════════════════════════════

class GeneratorTests(BaseTestCase):

    def test_one_bill_per_active_tenant(self):
        created = self.generate()
        self.assertEqual(len(created), 2)
        self.assertEqual(RentBill.objects.count(), 2)
        self.assertFalse(RentBill.objects.filter(unit=self.unit2).exists())

    def test_generation_is_idempotent(self):
        self.generate()
        bill = self.bill_for(self.tenant1)
        self.assertEqual(self.generate(), [])
        self.assertEqual(RentBill.objects.count(), 2)
        bill.refresh_from_db()
        self.assertEqual(bill.total_amount, Decimal('5000'))

    def test_inactive_tenant_not_billed(self):
        self.tenant3.status = 'inactive'
        self.tenant3.save()
        created = self.generate()
        self.assertEqual([b.tenant_id for b in created], [self.tenant1.pk])

    def test_first_bill_values(self):
        self.generate()
        bill = self.bill_for(self.tenant1)
        self.assertEqual(bill.rent_amount, Decimal('5000'))
        self.assertEqual(bill.previous_balance, Decimal('0'))
        self.assertEqual(bill.total_amount, Decimal('5000'))
        self.assertEqual(bill.balance, Decimal('5000'))
        self.assertEqual(bill.status, 'pending')
        self.assertEqual(bill.period_start, date(2024, 3, 1))
        self.assertEqual(bill.period_end, date(2024, 3, 31))

    def test_bill_numbers_sequential_per_property(self):
        self.generate()
        numbers = set(RentBill.objects.values_list('bill_number', flat=True))
        self.assertEqual(numbers, {'B-0001', 'B-0002'})

    def test_bill_numbers_not_reused_after_tenant_deleted(self):
        self.generate(3)
        self.generate(4)
        self.tenant1.delete()
        self.generate(5)
        self.generate(6)
        numbers = list(RentBill.objects.values_list('bill_number', flat=True))
        self.assertEqual(len(numbers), 4)
        self.assertEqual(len(numbers), len(set(numbers)))
        self.assertEqual(
            {self.bill_for(self.tenant3, 5).bill_number, self.bill_for(self.tenant3, 6).bill_number},
            {'B-0005', 'B-0006'},
        )

    @override_settings(RENT_BILL_NUMBER_PREFIX='INV-')
    def test_bill_number_prefix_setting(self):
        self.generate()
        self.assertTrue(self.bill_for(self.tenant1).bill_number.startswith('INV-'))

    def test_previous_balance_carried_forward(self):
        self.generate(3)
        self.pay(self.bill_for(self.tenant1, 3), '3000')
        self.generate(4)
        april = self.bill_for(self.tenant1, 4)
        self.assertEqual(april.previous_balance, Decimal('2000'))
        self.assertEqual(april.total_amount, Decimal('7000'))

    def test_advance_rent_credits_first_bill(self):
        self.tenant1.advance_rent = Decimal('1500')
        self.tenant1.save()
        self.generate(3)
        march = self.bill_for(self.tenant1, 3)
        self.assertEqual(march.previous_balance, Decimal('-1500'))
        self.assertEqual(march.total_amount, Decimal('3500'))

        # Only the first bill starts from the advance
        self.generate(4)
        april = self.bill_for(self.tenant1, 4)
        self.assertEqual(april.previous_balance, Decimal('3500'))

    def test_post_paid_property_bills_previous_month(self):
        self.property.rent_payment_type = 'previous_month'
        self.property.save()
        self.generate(3)
        bill = self.bill_for(self.tenant1, 3)
        self.assertEqual((bill.month, bill.year), (3, 2024))
        self.assertEqual(bill.period_start, date(2024, 2, 1))
        self.assertEqual(bill.period_end, date(2024, 2, 29))

    def test_mid_month_move_in_prorated(self):
        self.tenant1.move_in_date = date(2024, 3, 16)
        self.tenant1.save()
        self.generate(3)
        self.assertEqual(self.bill_for(self.tenant1, 3).rent_amount, Decimal('2580.65'))

    def test_tenant_not_yet_moved_in_skipped(self):
        self.tenant1.rent_start_date = date(2024, 5, 10)
        self.tenant1.save()
        with self.assertLogs('billing.generator', level='INFO') as logs:
            created = self.generate(3)
        self.assertEqual([b.tenant_id for b in created], [self.tenant3.pk])
        self.assertTrue(any('rent starts on 2024-05-10' in line for line in logs.output))

    def test_expired_fixed_lease_skipped(self):
        self.tenant1.lease_type = 'fixed'
        self.tenant1.lease_end_date = date(2024, 2, 15)
        self.tenant1.save()
        self.generate(3)
        self.assertFalse(RentBill.objects.filter(tenant=self.tenant1).exists())

    def test_fixed_utilities_seeded_for_unmetered_unit(self):
        self.unit1.electricity_fixed_amount = Decimal('300')
        self.unit1.water_fixed_amount = Decimal('100')
        self.unit1.save()
        self.generate()
        bill = self.bill_for(self.tenant1)
        self.assertEqual(bill.electricity_amount, Decimal('300'))
        self.assertEqual(bill.water_amount, Decimal('100'))
        self.assertEqual(bill.total_amount, Decimal('5400'))

    def test_metered_unit_seeds_initial_reading(self):
        self.generate()
        bill = self.bill_for(self.tenant3)
        self.assertEqual(bill.prev_reading, Decimal('1000'))
        self.assertIsNone(bill.curr_reading)
        self.assertEqual(bill.electricity_amount, Decimal('0'))

    def test_recurring_expenses_seeded_across_gap(self):
        self.generate(3)
        march = self.bill_for(self.tenant1, 3)
        add_expense_to_bill(march.pk, 'Parking', '500', is_recurring=True)
        add_expense_to_bill(march.pk, 'Plumbing repair', '200')

        self.generate(5)
        may = self.bill_for(self.tenant1, 5)
        labels = [e.label for e in may.expenses.all()]
        self.assertEqual(labels, ['Parking'])
        self.assertEqual(may.total_expenses, Decimal('500'))
        self.assertEqual(may.previous_balance, Decimal('5700'))
        self.assertEqual(may.total_amount, Decimal('11200'))

    def test_gap_fill_refreshes_later_bill(self):
        self.generate(3)
        self.generate(5)
        self.pay(self.bill_for(self.tenant1, 3), '5000')
        may = self.bill_for(self.tenant1, 5)
        self.assertEqual(may.previous_balance, Decimal('0'))

        self.generate(4)
        april = self.bill_for(self.tenant1, 4)
        may.refresh_from_db()
        self.assertEqual(april.previous_balance, Decimal('0'))
        self.assertEqual(may.previous_balance, Decimal('5000'))
        self.assertEqual(may.total_amount, Decimal('10000'))

    def test_missing_property_returns_empty(self):
        self.assertEqual(generate_bills_for_property(uuid.uuid4(), 3, 2024), [])

    def test_invalid_period_rejected(self):
        with self.assertRaises(InvalidInput):
            self.generate(13, 2024)
        with self.assertRaises(InvalidInput):
            generate_bills_for_property(self.property.pk, 'march', 2024)


# ═══════════════════════════════════════════════════════════
#  BILL RECALCULATOR
# ═══════════════════════════════════════════════════════════

class RecalculatorTests(BaseTestCase):

    def test_status_function(self):
        self.assertEqual(compute_bill_status(Decimal('1000'), Decimal('0')), 'pending')
        self.assertEqual(compute_bill_status(Decimal('1000'), Decimal('400')), 'partial')
        self.assertEqual(compute_bill_status(Decimal('1000'), Decimal('1000')), 'paid')
        self.assertEqual(compute_bill_status(Decimal('1000'), Decimal('1500')), 'overpaid')
        self.assertEqual(compute_bill_status(Decimal('0'), Decimal('0')), 'pending')
        self.assertEqual(compute_bill_status(Decimal('-500'), Decimal('0')), 'pending')
        self.assertEqual(compute_bill_status(Decimal('-500'), Decimal('100')), 'overpaid')

    def test_recalculate_is_idempotent(self):
        self.generate()
        bill = self.bill_for(self.tenant1)
        add_expense_to_bill(bill.pk, 'Cleaning', '250')
        first = recalculate_bill(bill.pk)
        second = recalculate_bill(bill.pk)
        for field in ('total_expenses', 'total_amount', 'paid_amount', 'balance', 'status'):
            self.assertEqual(getattr(first, field), getattr(second, field))

    def test_recalculate_repairs_stale_totals(self):
        self.generate()
        bill = self.bill_for(self.tenant1)
        RentBill.objects.filter(pk=bill.pk).update(total_amount=1, balance=1, status='paid')
        recalculate_bill(bill.pk)
        bill.refresh_from_db()
        self.assertEqual(bill.total_amount, Decimal('5000'))
        self.assertEqual(bill.balance, Decimal('5000'))
        self.assertEqual(bill.status, 'pending')

    def test_partial_payment(self):
        self.generate()
        bill = self.bill_for(self.tenant1)
        self.pay(bill, '2000')
        bill.refresh_from_db()
        self.assertEqual(bill.paid_amount, Decimal('2000'))
        self.assertEqual(bill.balance, Decimal('3000'))
        self.assertEqual(bill.status, 'partial')

    def test_partial_payment_cascades_through_chain(self):
        for month in (3, 4, 5):
            self.generate(month)
        self.assertEqual(self.bill_for(self.tenant1, 5).total_amount, Decimal('15000'))

        self.pay(self.bill_for(self.tenant1, 3), '2000')
        april = self.bill_for(self.tenant1, 4)
        may = self.bill_for(self.tenant1, 5)
        self.assertEqual(april.previous_balance, Decimal('3000'))
        self.assertEqual(april.total_amount, Decimal('8000'))
        self.assertEqual(may.previous_balance, Decimal('8000'))
        self.assertEqual(may.total_amount, Decimal('13000'))

    def test_overpayment_carries_credit(self):
        self.generate(3)
        march = self.bill_for(self.tenant1, 3)
        self.pay(march, '10000')
        march.refresh_from_db()
        self.assertEqual(march.balance, Decimal('-5000'))
        self.assertEqual(march.status, 'overpaid')

        self.generate(4)
        april = self.bill_for(self.tenant1, 4)
        self.assertEqual(april.previous_balance, Decimal('-5000'))
        self.assertEqual(april.total_amount, Decimal('0'))
        self.assertEqual(april.status, 'pending')

    def test_overpayment_cascades_into_existing_next_bill(self):
        self.generate(3)
        self.generate(4)
        april = self.bill_for(self.tenant1, 4)
        self.assertEqual(april.previous_balance, Decimal('5000'))
        self.assertEqual(april.total_amount, Decimal('10000'))

        self.pay(self.bill_for(self.tenant1, 3), '10000')
        april.refresh_from_db()
        self.assertEqual(april.previous_balance, Decimal('-5000'))
        self.assertEqual(april.total_amount, Decimal('0'))
        self.assertEqual(april.balance, Decimal('0'))

    def test_only_paid_payments_count(self):
        self.generate()
        bill = self.bill_for(self.tenant1)
        Payment.objects.create(
            property=self.property, tenant=self.tenant1, unit=self.unit1, bill=bill,
            amount=Decimal('1000'), status='cancelled',
        )
        recalculate_bill(bill.pk)
        bill.refresh_from_db()
        self.assertEqual(bill.paid_amount, Decimal('0'))

    def test_missing_bill_returns_none(self):
        with self.assertLogs('billing.ledger', level='WARNING'):
            self.assertIsNone(recalculate_bill(uuid.uuid4()))
        self.assertIsNone(recalculate_bill('not-a-uuid'))

    def test_chains_are_per_tenant(self):
        self.generate(3)
        self.generate(4)
        self.pay(self.bill_for(self.tenant1, 3), '5000')
        self.assertEqual(self.bill_for(self.tenant3, 4).previous_balance, Decimal('4000'))


# ═══════════════════════════════════════════════════════════
#  EXPENSE LEDGER
# ═══════════════════════════════════════════════════════════

class ExpenseLedgerTests(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.generate()
        self.bill = self.bill_for(self.tenant1)

    def test_add_expense_recalculates(self):
        add_expense_to_bill(self.bill.pk, 'Maintenance', '600')
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.total_expenses, Decimal('600'))
        self.assertEqual(self.bill.total_amount, Decimal('5600'))

    def test_negative_expense_is_discount(self):
        add_expense_to_bill(self.bill.pk, 'Festival discount', '-500')
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.total_expenses, Decimal('-500'))
        self.assertEqual(self.bill.total_amount, Decimal('4500'))

    def test_invalid_expense_rejected(self):
        for label, amount in (('', '100'), ('Fee', '0'), ('Fee', 'abc'), ('Fee', None)):
            with self.assertRaises(InvalidInput):
                add_expense_to_bill(self.bill.pk, label, amount)
        self.assertFalse(BillExpense.objects.exists())

    def test_expense_on_missing_bill(self):
        with self.assertRaises(NotFound):
            add_expense_to_bill(uuid.uuid4(), 'Fee', '100')

    def test_remove_expense(self):
        expense = add_expense_to_bill(self.bill.pk, 'Maintenance', '600')
        bill_id = remove_expense(expense.pk)
        self.assertEqual(bill_id, self.bill.pk)
        recalculate_bill(bill_id)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.total_amount, Decimal('5000'))
        with self.assertRaises(NotFound):
            remove_expense(expense.pk)

    def test_remove_discount_restores_total(self):
        before = self.bill.total_amount
        discount = add_expense_to_bill(self.bill.pk, 'Festival discount', '-500')
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.total_amount, before - Decimal('500'))

        recalculate_bill(remove_expense(discount.pk))
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.total_amount, before)
        self.assertEqual(self.bill.total_expenses, Decimal('0'))
        self.assertEqual(self.bill.balance, before)

    def test_list_expenses(self):
        add_expense_to_bill(self.bill.pk, 'Maintenance', '600')
        add_expense_to_bill(self.bill.pk, 'Parking', '300', is_recurring=True)
        self.assertEqual(len(get_bill_expenses(self.bill.pk)), 2)


# ═══════════════════════════════════════════════════════════
#  PAYMENT LEDGER
# ═══════════════════════════════════════════════════════════

class PaymentLedgerTests(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.generate()
        self.bill = self.bill_for(self.tenant1)

    def test_add_payment_copies_bill_links(self):
        payment = add_payment_to_bill(self.bill.pk, '1500', payment_method='upi',
                                      payment_date=date(2024, 3, 5), notes='March part')
        self.assertEqual(payment.property_id, self.property.pk)
        self.assertEqual(payment.tenant_id, self.tenant1.pk)
        self.assertEqual(payment.unit_id, self.unit1.pk)
        self.assertEqual(payment.status, 'paid')
        self.assertEqual(payment.amount, Decimal('1500'))

    def test_add_payment_leaves_recalculation_to_caller(self):
        add_payment_to_bill(self.bill.pk, '1500')
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.paid_amount, Decimal('0'))
        recalculate_bill(self.bill.pk)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.paid_amount, Decimal('1500'))

    def test_invalid_payment_rejected(self):
        for amount in ('0', '-100', 'abc'):
            with self.assertRaises(InvalidInput):
                add_payment_to_bill(self.bill.pk, amount)
        with self.assertRaises(InvalidInput):
            add_payment_to_bill(self.bill.pk, '100', payment_method='bitcoin')
        self.assertFalse(Payment.objects.exists())

    def test_remove_payment(self):
        payment = self.pay(self.bill, '5000')
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.status, 'paid')

        bill_id = remove_payment_from_bill(payment.pk)
        self.assertEqual(bill_id, self.bill.pk)
        recalculate_bill(bill_id)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.balance, Decimal('5000'))
        self.assertEqual(self.bill.status, 'pending')

    def test_remove_unlinked_payment_returns_none(self):
        payment = Payment.objects.create(
            property=self.property, tenant=self.tenant1, amount=Decimal('10000'),
            payment_type='security_deposit',
        )
        self.assertIsNone(remove_payment_from_bill(payment.pk))

    def test_remove_missing_payment(self):
        with self.assertRaises(NotFound):
            remove_payment_from_bill(uuid.uuid4())

    def test_list_payments_only_paid(self):
        self.pay(self.bill, '1000')
        Payment.objects.create(
            property=self.property, tenant=self.tenant1, bill=self.bill,
            amount=Decimal('700'), status='cancelled',
        )
        payments = get_bill_payments(self.bill.pk)
        self.assertEqual([p.amount for p in payments], [Decimal('1000')])


# ═══════════════════════════════════════════════════════════
#  METER / UTILITY CALCULATOR
# ═══════════════════════════════════════════════════════════

class MeterCalculatorTests(BaseTestCase):

    def test_metered_charge(self):
        charge = calculate_metered_charge(Decimal('1150'), Decimal('1000'), Decimal('8'))
        self.assertEqual(charge.units_used, Decimal('150'))
        self.assertEqual(charge.units_billed, Decimal('150'))
        self.assertEqual(charge.amount, Decimal('1200.00'))

    def test_default_units_floor(self):
        charge = calculate_metered_charge(Decimal('1010'), Decimal('1000'), Decimal('8'),
                                          default_units=Decimal('20'))
        self.assertEqual(charge.units_used, Decimal('10'))
        self.assertEqual(charge.units_billed, Decimal('20'))
        self.assertEqual(charge.amount, Decimal('160.00'))

        above = calculate_metered_charge(Decimal('1030'), Decimal('1000'), Decimal('8'),
                                         default_units=Decimal('20'))
        self.assertEqual(above.units_billed, Decimal('30'))

    def test_meter_regression_rejected(self):
        with self.assertRaises(InvalidInput):
            calculate_metered_charge(Decimal('990'), Decimal('1000'), Decimal('8'))

    def test_unmetered_uses_fixed_amount(self):
        self.unit1.electricity_fixed_amount = Decimal('300')
        charge = calculate_utility_amount(self.unit1, 'electricity')
        self.assertEqual(charge.amount, Decimal('300.00'))
        override = calculate_utility_amount(self.unit1, 'electricity', fixed_override='450')
        self.assertEqual(override.amount, Decimal('450.00'))
        self.assertEqual(calculate_utility_amount(self.unit1, 'water').amount, Decimal('0.00'))

    def test_metered_defaults_to_initial_reading(self):
        charge = calculate_utility_amount(self.unit3, 'electricity', current_reading='1100')
        self.assertEqual(charge.amount, Decimal('800.00'))

    def test_metered_requires_current_reading(self):
        with self.assertRaises(InvalidInput):
            calculate_utility_amount(self.unit3, 'electricity')

    def test_unknown_utility(self):
        with self.assertRaises(InvalidInput):
            calculate_utility_amount(self.unit3, 'gas')


class MeterReadingTests(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.generate(3)
        self.bill = self.bill_for(self.tenant3, 3)

    def test_apply_reading_prices_bill(self):
        bill = apply_meter_reading(self.bill.pk, '1150', reading_date=date(2024, 3, 31))
        self.assertEqual(bill.prev_reading, Decimal('1000'))
        self.assertEqual(bill.curr_reading, Decimal('1150'))
        self.assertEqual(bill.electricity_amount, Decimal('1200'))
        self.assertEqual(bill.total_amount, Decimal('5200'))

        reading = MeterReading.objects.get()
        self.assertEqual(reading.bill_id, self.bill.pk)
        self.assertEqual(reading.units_billed, Decimal('150'))

    def test_next_bill_starts_from_last_reading(self):
        apply_meter_reading(self.bill.pk, '1150')
        self.generate(4)
        april = self.bill_for(self.tenant3, 4)
        self.assertEqual(april.prev_reading, Decimal('1150'))

        with self.assertRaises(InvalidInput):
            apply_meter_reading(april.pk, '1140')
        april.refresh_from_db()
        self.assertIsNone(april.curr_reading)

    def test_reading_cascades_balance(self):
        self.generate(4)
        apply_meter_reading(self.bill.pk, '1150')
        april = self.bill_for(self.tenant3, 4)
        self.assertEqual(april.previous_balance, Decimal('5200'))

    def test_unmetered_unit_rejects_reading(self):
        bill = self.bill_for(self.tenant1, 3)
        with self.assertRaises(InvalidInput):
            apply_meter_reading(bill.pk, '500')

    def test_water_reading(self):
        self.unit3.is_water_metered = True
        self.unit3.water_rate = Decimal('0.05')
        self.unit3.initial_water_reading = Decimal('10000')
        self.unit3.save()
        bill = apply_meter_reading(self.bill.pk, '12000', kind='water')
        self.assertEqual(bill.water_prev_reading, Decimal('10000'))
        self.assertEqual(bill.water_amount, Decimal('100'))
        self.assertEqual(bill.electricity_amount, Decimal('0'))


# ═══════════════════════════════════════════════════════════
#  DIRECT EDITS & LOCKING
# ═══════════════════════════════════════════════════════════

class UpdateBillTests(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.generate()
        self.bill = self.bill_for(self.tenant1)

    def test_rent_override(self):
        update_bill(self.bill.pk, rent_amount='5500', notes='Rent revised')
        recalculate_bill(self.bill.pk)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.rent_amount, Decimal('5500'))
        self.assertEqual(self.bill.total_amount, Decimal('5500'))
        self.assertEqual(self.bill.notes, 'Rent revised')

    def test_previous_balance_override_may_be_negative(self):
        update_bill(self.bill.pk, previous_balance='-1000')
        recalculate_bill(self.bill.pk)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.total_amount, Decimal('4000'))

    def test_invalid_edits_rejected(self):
        cases = [
            {'total_amount': '1'},
            {'rent_amount': '-1'},
            {'rent_amount': 'abc'},
            {'period_start': '2024-04-01', 'period_end': '2024-03-01'},
            {'prev_reading': '100', 'curr_reading': '50'},
        ]
        for fields in cases:
            with self.assertRaises(InvalidInput):
                update_bill(self.bill.pk, **fields)
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.rent_amount, Decimal('5000'))


class LockTests(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.generate(3, 2020)
        self.bill = self.bill_for(self.tenant1, 3, 2020)

    def test_is_locked(self):
        self.assertTrue(self.bill.is_locked(today=date(2024, 5, 10)))
        self.assertFalse(self.bill.is_locked(today=date(2020, 4, 30)))

    def test_permissive_by_default(self):
        self.pay(self.bill, '1000')
        self.bill.refresh_from_db()
        self.assertEqual(self.bill.paid_amount, Decimal('1000'))

    @override_settings(RENT_LOCK_HISTORICAL_BILLS=True)
    def test_locked_bill_rejects_mutations(self):
        with self.assertRaises(BillLocked):
            add_payment_to_bill(self.bill.pk, '1000')
        with self.assertRaises(BillLocked):
            add_expense_to_bill(self.bill.pk, 'Fee', '100')
        with self.assertRaises(BillLocked):
            update_bill(self.bill.pk, rent_amount='1')
        # Recalculation is never blocked
        self.assertIsNotNone(recalculate_bill(self.bill.pk))


# ═══════════════════════════════════════════════════════════
#  READ PATH
# ═══════════════════════════════════════════════════════════

class ReportTests(BaseTestCase):

    def test_bill_rows_cover_every_unit(self):
        self.generate()
        rows = get_bills_for_property_month(self.property.pk, 3, 2024)
        by_unit = {row['unit'].pk: row for row in rows}
        self.assertEqual(len(rows), 3)
        self.assertTrue(by_unit[self.unit2.pk]['is_vacant'])
        self.assertIsNone(by_unit[self.unit2.pk]['bill'])
        self.assertEqual(by_unit[self.unit1.pk]['tenant'], self.tenant1)
        self.assertEqual(by_unit[self.unit1.pk]['bill'], self.bill_for(self.tenant1))

    def test_bill_rows_flag_lease_state(self):
        self.tenant1.rent_start_date = date(2024, 5, 10)
        self.tenant1.save()
        self.tenant3.lease_type = 'fixed'
        self.tenant3.lease_end_date = date(2024, 1, 31)
        self.tenant3.save()
        rows = {row['unit'].pk: row for row in get_bills_for_property_month(self.property.pk, 3, 2024)}
        self.assertTrue(rows[self.unit1.pk]['is_not_moved_in'])
        self.assertFalse(rows[self.unit1.pk]['is_lease_expired'])
        self.assertTrue(rows[self.unit3.pk]['is_lease_expired'])

    def test_post_paid_lease_flags_follow_usage_month(self):
        self.property.rent_payment_type = 'previous_month'
        self.property.save()
        self.tenant1.rent_start_date = date(2024, 3, 1)
        self.tenant1.save()

        # March bills February usage, before rent starts, so no bill either
        self.generate(3)
        self.assertFalse(RentBill.objects.filter(tenant=self.tenant1).exists())
        rows = {row['unit'].pk: row for row in get_bills_for_property_month(self.property.pk, 3, 2024)}
        self.assertTrue(rows[self.unit1.pk]['is_not_moved_in'])
        self.assertIsNone(rows[self.unit1.pk]['bill'])

        rows = {row['unit'].pk: row for row in get_bills_for_property_month(self.property.pk, 4, 2024)}
        self.assertFalse(rows[self.unit1.pk]['is_not_moved_in'])

    def test_bill_rows_missing_property(self):
        with self.assertRaises(NotFound):
            get_bills_for_property_month(uuid.uuid4(), 3, 2024)

    def test_dashboard_totals(self):
        self.generate()
        self.pay(self.bill_for(self.tenant1), '5000')
        data = get_dashboard_data(3, 2024, property_id=self.property.pk)
        self.assertEqual(data['expected'], Decimal('9000'))
        self.assertEqual(data['collected'], Decimal('5000'))
        self.assertEqual(data['pending'], Decimal('4000'))
        self.assertEqual(data['collected'] + data['pending'], data['expected'])
        self.assertEqual(data['pending_tenant_count'], 1)
        self.assertEqual(data['total_rooms'], 3)
        self.assertEqual(data['occupied_count'], 2)
        self.assertEqual(data['vacant_count'], 1)

    def test_tenant_ledger(self):
        self.generate(4)
        self.generate(3)
        ledger = get_tenant_ledger(self.tenant1.pk)
        self.assertEqual([(b.month, b.year) for b in ledger['bills']], [(3, 2024), (4, 2024)])
        self.assertEqual(ledger['outstanding'], Decimal('10000'))

    def test_tenant_ledger_sums_each_unit_chain(self):
        self.generate(3)
        self.pay(self.bill_for(self.tenant1, 3), '1000')

        # Move to Room 102; its chain starts fresh
        self.tenant1.unit = self.unit2
        self.tenant1.save()
        self.generate(4)
        april = self.bill_for(self.tenant1, 4)
        self.assertEqual(april.unit, self.unit2)
        self.assertEqual(april.previous_balance, Decimal('0'))

        ledger = get_tenant_ledger(self.tenant1.pk)
        self.assertEqual(len(ledger['bills']), 2)
        self.assertEqual(ledger['total_billed'], Decimal('10500'))
        self.assertEqual(ledger['total_paid'], Decimal('1000'))
        self.assertEqual(ledger['outstanding'], Decimal('9500'))


# ═══════════════════════════════════════════════════════════
#  REST API
# ═══════════════════════════════════════════════════════════

class BillApiTests(BaseTestCase):

    def generate_via_api(self, month=3, year=2024):
        return self.client.post(f'/api/properties/{self.property.pk}/bills/generate/',
                                {'month': month, 'year': year}, format='json')

    def test_generate_endpoint(self):
        resp = self.generate_via_api()
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data['created'], 2)

        resp = self.generate_via_api()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['created'], 0)

    def test_generate_invalid_month(self):
        resp = self.generate_via_api(month=13)
        self.assertEqual(resp.status_code, 400)

    def test_property_month_rows(self):
        self.generate_via_api()
        resp = self.client.get(f'/api/properties/{self.property.pk}/bills/?month=3&year=2024')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data), 3)
        self.assertEqual(sum(1 for row in resp.data if row['is_vacant']), 1)

    def test_list_and_filter_bills(self):
        self.generate_via_api()
        resp = self.client.get(f'/api/bills/?tenant={self.tenant1.pk}&month=3&year=2024')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data['count'], 1)
        self.assertEqual(resp.data['results'][0]['tenant_name'], 'Anil Deshpande')

    def test_payment_flow(self):
        self.generate_via_api()
        bill = self.bill_for(self.tenant1)

        resp = self.client.post(f'/api/bills/{bill.pk}/payments/',
                                {'amount': '2000', 'payment_method': 'upi'}, format='json')
        self.assertEqual(resp.status_code, 201)
        payment_id = resp.data['id']

        resp = self.client.get(f'/api/bills/{bill.pk}/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data['balance']), Decimal('3000'))
        self.assertEqual(resp.data['status'], 'partial')
        self.assertEqual(len(resp.data['payments']), 1)

        resp = self.client.delete(f'/api/payments/{payment_id}/')
        self.assertEqual(resp.status_code, 204)
        bill.refresh_from_db()
        self.assertEqual(bill.status, 'pending')

    def test_payment_must_be_positive(self):
        self.generate_via_api()
        bill = self.bill_for(self.tenant1)
        resp = self.client.post(f'/api/bills/{bill.pk}/payments/', {'amount': '0'}, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_expense_flow(self):
        self.generate_via_api()
        bill = self.bill_for(self.tenant1)

        resp = self.client.post(f'/api/bills/{bill.pk}/expenses/',
                                {'label': 'Parking', 'amount': '500', 'is_recurring': True},
                                format='json')
        self.assertEqual(resp.status_code, 201)
        bill.refresh_from_db()
        self.assertEqual(bill.total_amount, Decimal('5500'))

        resp = self.client.get(f'/api/bills/{bill.pk}/expenses/')
        self.assertEqual(len(resp.data), 1)

        resp = self.client.delete(f'/api/expenses/{resp.data[0]["id"]}/')
        self.assertEqual(resp.status_code, 204)
        bill.refresh_from_db()
        self.assertEqual(bill.total_amount, Decimal('5000'))

    def test_patch_bill(self):
        self.generate_via_api()
        bill = self.bill_for(self.tenant1)
        resp = self.client.patch(f'/api/bills/{bill.pk}/', {'rent_amount': '5500'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data['total_amount']), Decimal('5500'))

        resp = self.client.patch(f'/api/bills/{bill.pk}/', {'total_amount': '1'}, format='json')
        self.assertEqual(resp.status_code, 400)

    def test_meter_reading_endpoint(self):
        self.generate_via_api()
        bill = self.bill_for(self.tenant3)
        resp = self.client.post(f'/api/bills/{bill.pk}/meter-reading/',
                                {'kind': 'electricity', 'current_reading': '1150'}, format='json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data['electricity_amount']), Decimal('1200'))
        self.assertEqual(len(resp.data['meter_readings']), 1)

        resp = self.client.post(f'/api/bills/{bill.pk}/meter-reading/',
                                {'kind': 'electricity', 'current_reading': '900'}, format='json')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('lower than', resp.data['detail'])

    def test_recalculate_endpoint(self):
        self.generate_via_api()
        bill = self.bill_for(self.tenant1)
        RentBill.objects.filter(pk=bill.pk).update(total_amount=0, balance=0)
        resp = self.client.post(f'/api/bills/{bill.pk}/recalculate/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data['total_amount']), Decimal('5000'))

    def test_not_found(self):
        self.assertEqual(self.client.get(f'/api/bills/{uuid.uuid4()}/').status_code, 404)
        self.assertEqual(self.client.delete(f'/api/expenses/{uuid.uuid4()}/').status_code, 404)
        self.assertEqual(self.client.delete(f'/api/payments/{uuid.uuid4()}/').status_code, 404)
        self.assertEqual(self.client.get(f'/api/tenants/{uuid.uuid4()}/ledger/').status_code, 404)

    @override_settings(RENT_LOCK_HISTORICAL_BILLS=True)
    def test_locked_bill_conflict(self):
        self.generate_via_api(3, 2020)
        bill = self.bill_for(self.tenant1, 3, 2020)
        resp = self.client.post(f'/api/bills/{bill.pk}/payments/', {'amount': '100'}, format='json')
        self.assertEqual(resp.status_code, 409)
        self.assertIn('locked', resp.data['detail'])

    def test_dashboard_and_ledger_endpoints(self):
        self.generate_via_api()
        resp = self.client.get(f'/api/dashboard/?month=3&year=2024&property_id={self.property.pk}')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(Decimal(resp.data['expected']), Decimal('9000'))
        self.assertEqual(resp.data['vacant_count'], 1)

        resp = self.client.get(f'/api/tenants/{self.tenant1.pk}/ledger/')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.data['bills']), 1)
