import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import uuid
from django.db import migrations, models


def money(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=2, **kwargs)


class Migration(migrations.Migration):
    """Initial billing schema: properties, units, tenants, bills and their ledgers."""

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Property',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('address', models.CharField(blank=True, default='', max_length=500)),
                ('property_type', models.CharField(
                    choices=[('house', 'House'), ('pg', 'PG / Hostel'), ('flat', 'Flat'),
                             ('building', 'Building'), ('shop', 'Shop')],
                    default='building', max_length=10)),
                ('rent_payment_type', models.CharField(
                    choices=[('current_month', 'Pre-paid (current month)'),
                             ('previous_month', 'Post-paid (previous month)')],
                    default='current_month', max_length=15)),
                ('owner_name', models.CharField(blank=True, default='', max_length=200)),
                ('owner_phone', models.CharField(blank=True, default='', max_length=30)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'properties',
                'ordering': ['name'],
                'verbose_name_plural': 'properties',
            },
        ),
        migrations.CreateModel(
            name='Unit',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(help_text='e.g. Room 101', max_length=100)),
                ('floor', models.CharField(blank=True, default='', max_length=20)),
                ('unit_type', models.CharField(blank=True, default='', help_text='e.g. 1BHK, Single Room', max_length=50)),
                ('rent_amount', money(validators=[django.core.validators.MinValueValidator(0)])),
                ('is_metered', models.BooleanField(default=False)),
                ('electricity_rate', money(blank=True, help_text='Per unit consumed', null=True)),
                ('electricity_fixed_amount', money(blank=True, null=True)),
                ('electricity_default_units', money(blank=True, help_text='Minimum billed units', null=True)),
                ('initial_electricity_reading', money(blank=True, null=True)),
                ('is_water_metered', models.BooleanField(default=False)),
                ('water_rate', money(blank=True, null=True)),
                ('water_fixed_amount', money(blank=True, null=True)),
                ('water_default_units', money(blank=True, null=True)),
                ('initial_water_reading', money(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('property', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                               related_name='units', to='billing.property')),
            ],
            options={
                'db_table': 'units',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['property', 'name'], name='units_property_name_idx')],
            },
        ),
        migrations.CreateModel(
            name='Tenant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('phone', models.CharField(blank=True, default='', max_length=30)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('status', models.CharField(
                    choices=[('active', 'Active'), ('inactive', 'Inactive'), ('archived', 'Archived')],
                    db_index=True, default='active', max_length=10)),
                ('move_in_date', models.DateField(blank=True, null=True)),
                ('rent_start_date', models.DateField(blank=True, null=True)),
                ('move_out_date', models.DateField(blank=True, null=True)),
                ('lease_type', models.CharField(
                    choices=[('monthly', 'Monthly'), ('fixed', 'Fixed term'), ('yearly', 'Yearly')],
                    default='monthly', max_length=10)),
                ('lease_start_date', models.DateField(blank=True, null=True)),
                ('lease_end_date', models.DateField(blank=True, null=True)),
                ('security_deposit', money(default=0)),
                ('advance_rent', money(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('property', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                               related_name='tenants', to='billing.property')),
                ('unit', models.ForeignKey(blank=True, null=True,
                                           on_delete=django.db.models.deletion.CASCADE,
                                           related_name='tenants', to='billing.unit')),
            ],
            options={
                'db_table': 'tenants',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['unit', 'status'], name='tenants_unit_status_idx'),
                    models.Index(fields=['property', 'status'], name='tenants_property_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RentBill',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('month', models.PositiveSmallIntegerField(validators=[
                    django.core.validators.MinValueValidator(1),
                    django.core.validators.MaxValueValidator(12),
                ])),
                ('year', models.PositiveSmallIntegerField()),
                ('bill_number', models.CharField(blank=True, default='', max_length=20)),
                ('rent_amount', money(default=0)),
                ('electricity_amount', money(default=0)),
                ('water_amount', money(default=0)),
                ('prev_reading', money(blank=True, null=True)),
                ('curr_reading', money(blank=True, null=True)),
                ('water_prev_reading', money(blank=True, null=True)),
                ('water_curr_reading', money(blank=True, null=True)),
                ('previous_balance', money(default=0)),
                ('total_expenses', money(default=0)),
                ('total_amount', money(default=0)),
                ('paid_amount', money(default=0)),
                ('balance', money(default=0)),
                ('status', models.CharField(
                    choices=[('pending', 'Pending'), ('partial', 'Partially paid'),
                             ('paid', 'Paid'), ('overpaid', 'Overpaid')],
                    db_index=True, default='pending', max_length=10)),
                ('period_start', models.DateField(blank=True, null=True)),
                ('period_end', models.DateField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('property', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                               related_name='bills', to='billing.property')),
                ('unit', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                           related_name='bills', to='billing.unit')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                             related_name='bills', to='billing.tenant')),
            ],
            options={
                'db_table': 'rent_bills',
                'ordering': ['year', 'month'],
                'indexes': [
                    models.Index(fields=['property', 'year', 'month'], name='rent_bills_property_period_idx'),
                    models.Index(fields=['tenant', 'unit', 'year', 'month'], name='rent_bills_chain_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('tenant', 'unit', 'month', 'year'),
                                            name='uq_rent_bill_tenant_unit_period'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BillExpense',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('label', models.CharField(max_length=200)),
                ('amount', money()),
                ('is_recurring', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('bill', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                           related_name='expenses', to='billing.rentbill')),
            ],
            options={
                'db_table': 'bill_expenses',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount', money(validators=[django.core.validators.MinValueValidator(0)])),
                ('payment_date', models.DateField(default=django.utils.timezone.localdate)),
                ('payment_type', models.CharField(
                    choices=[('rent', 'Rent'), ('security_deposit', 'Security deposit'),
                             ('advance', 'Advance'), ('maintenance', 'Maintenance'),
                             ('other', 'Other')],
                    default='rent', max_length=20)),
                ('payment_method', models.CharField(
                    choices=[('cash', 'Cash'), ('upi', 'UPI'), ('bank_transfer', 'Bank transfer'),
                             ('cheque', 'Cheque'), ('other', 'Other')],
                    default='cash', max_length=15)),
                ('status', models.CharField(
                    choices=[('pending', 'Pending'), ('paid', 'Paid'), ('overdue', 'Overdue'),
                             ('cancelled', 'Cancelled')],
                    db_index=True, default='paid', max_length=10)),
                ('notes', models.TextField(blank=True, default='')),
                ('photo_uri', models.CharField(blank=True, default='', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('property', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                               related_name='payments', to='billing.property')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                             related_name='payments', to='billing.tenant')),
                ('unit', models.ForeignKey(blank=True, null=True,
                                           on_delete=django.db.models.deletion.CASCADE,
                                           related_name='payments', to='billing.unit')),
                ('bill', models.ForeignKey(blank=True, null=True,
                                           on_delete=django.db.models.deletion.CASCADE,
                                           related_name='payments', to='billing.rentbill')),
            ],
            options={
                'db_table': 'payments',
                'ordering': ['-payment_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['bill', 'status'], name='payments_bill_status_idx'),
                    models.Index(fields=['tenant', 'payment_date'], name='payments_tenant_date_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MeterReading',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('reading_type', models.CharField(
                    choices=[('electricity', 'Electricity'), ('water', 'Water')], max_length=12)),
                ('previous_reading', money()),
                ('current_reading', money()),
                ('units_billed', money()),
                ('amount', money()),
                ('reading_date', models.DateField(default=django.utils.timezone.localdate)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('property', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                               related_name='meter_readings', to='billing.property')),
                ('unit', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                           related_name='meter_readings', to='billing.unit')),
                ('bill', models.ForeignKey(blank=True, null=True,
                                           on_delete=django.db.models.deletion.SET_NULL,
                                           related_name='meter_readings', to='billing.rentbill')),
            ],
            options={
                'db_table': 'meter_readings',
                'ordering': ['-reading_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['unit', 'reading_type'], name='meter_readings_unit_type_idx'),
                ],
            },
        ),
    ]
