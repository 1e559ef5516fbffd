"""
RentVelo — Seed Demo Data
Creates a demo property with units and tenants, then generates bills for
the last few months and records some payments so every status shows up.
Usage: python manage.py seed_data [--months 3]
"""
from datetime import date
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.utils import timezone

from billing.generator import generate_bills_for_property
from billing.ledger import add_expense_to_bill, add_payment_to_bill, recalculate_bill
from billing.models import Property, Unit, Tenant
from billing.utils import shift_month


class Command(BaseCommand):
    help = 'Seed database with RentVelo demo data'

    def add_arguments(self, parser):
        parser.add_argument('--months', type=int, default=3,
                            help='Number of months to bill, ending with the current one')

    def handle(self, *args, **options):
        self.stdout.write('🌱 Seeding RentVelo demo data...\n')

        # ── Property ─────────────────────────────
        prop, created = Property.objects.get_or_create(
            name='Sai Residency',
            defaults={
                'address': '12 MG Road, Pune',
                'property_type': 'building',
                'rent_payment_type': 'current_month',
                'owner_name': 'Ramesh Kulkarni',
                'owner_phone': '+91 98200 12345',
            }
        )
        if created:
            self.stdout.write(self.style.SUCCESS('  ✓ Property "Sai Residency" created'))
        else:
            self.stdout.write('  · Property already exists')

        # ── Units ────────────────────────────────
        units_data = [
            {'name': 'Room 101', 'floor': '1', 'unit_type': 'Single Room',
             'rent_amount': Decimal('6000'), 'is_metered': True,
             'electricity_rate': Decimal('8'), 'electricity_default_units': Decimal('20'),
             'initial_electricity_reading': Decimal('1200'),
             'water_fixed_amount': Decimal('200')},
            {'name': 'Room 102', 'floor': '1', 'unit_type': 'Single Room',
             'rent_amount': Decimal('6500'), 'electricity_fixed_amount': Decimal('500'),
             'water_fixed_amount': Decimal('200')},
            {'name': 'Flat 201', 'floor': '2', 'unit_type': '1BHK',
             'rent_amount': Decimal('12000'), 'is_metered': True,
             'electricity_rate': Decimal('9'), 'initial_electricity_reading': Decimal('540'),
             'is_water_metered': True, 'water_rate': Decimal('0.05'),
             'initial_water_reading': Decimal('10000')},
            {'name': 'Flat 202', 'floor': '2', 'unit_type': '1BHK',
             'rent_amount': Decimal('12500')},
        ]

        unit_objs = {}
        for ud in units_data:
            unit, u_created = Unit.objects.get_or_create(
                property=prop, name=ud['name'], defaults=ud,
            )
            unit_objs[ud['name']] = unit
            if u_created:
                self.stdout.write(f'  ✓ Unit {ud["name"]} created')

        # ── Tenants (Flat 202 stays vacant) ──────
        today = timezone.localdate()
        first_month, first_year = shift_month(today.month, today.year, 1 - options['months'])
        start = date(first_year, first_month, 1)

        tenants_data = [
            ('Anil Deshpande', '+91 98220 11111', 'Room 101', {'advance_rent': Decimal('3000')}),
            ('Priya Nair', '+91 98220 22222', 'Room 102', {}),
            ('Vikram Joshi', '+91 98220 33333', 'Flat 201', {'lease_type': 'fixed'}),
        ]
        for name, phone, unit_name, extra in tenants_data:
            tenant, t_created = Tenant.objects.get_or_create(
                property=prop,
                name=name,
                defaults={
                    'phone': phone,
                    'unit': unit_objs[unit_name],
                    'move_in_date': start,
                    'rent_start_date': start,
                    'security_deposit': unit_objs[unit_name].rent_amount * 2,
                    **extra,
                },
            )
            if t_created:
                self.stdout.write(f'  ✓ Tenant {name} ({unit_name}) created')

        # ── Bills ────────────────────────────────
        month, year = first_month, first_year
        for _ in range(options['months']):
            bills = generate_bills_for_property(prop.pk, month, year)
            self.stdout.write(self.style.SUCCESS(
                f'  ✓ {len(bills)} bill(s) generated for {month:02d}/{year}'
            ))
            for bill in bills:
                if bill.unit.name == 'Room 102' and not bill.expenses.exists():
                    add_expense_to_bill(bill.pk, 'Wi-Fi', Decimal('300'), is_recurring=True)
                    bill.refresh_from_db()
                # Pay everything except the latest month; Flat 201 pays half
                if (month, year) != (today.month, today.year) and bill.total_amount > 0:
                    amount = bill.total_amount
                    if bill.unit.name == 'Flat 201':
                        amount = (amount / 2).quantize(Decimal('1'))
                    add_payment_to_bill(bill.pk, amount, payment_method='upi',
                                        payment_date=date(year, month, 5))
                    recalculate_bill(bill.pk)
            month, year = shift_month(month, year, 1)

        self.stdout.write(self.style.SUCCESS(
            '\n✅ Demo data seeded successfully!\n'
            f'   Property: {prop.name} ({prop.pk})'
        ))
