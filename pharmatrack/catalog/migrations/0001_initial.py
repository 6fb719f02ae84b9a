import django.db.models.deletion
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('pharmacies', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MasterBarcode',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('barcode', models.CharField(max_length=100, unique=True)),
                ('product_name', models.CharField(max_length=255)),
                ('category', models.CharField(blank=True, max_length=50, null=True)),
                ('manufacturer', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'master_barcode_library',
                'ordering': ['product_name'],
            },
        ),
        migrations.CreateModel(
            name='Medication',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=255)),
                ('category', models.CharField(choices=[('Tablet', 'Tablet'), ('Syrup', 'Syrup'), ('Capsule', 'Capsule'), ('Injection', 'Injection'), ('Cream', 'Cream'), ('Drops', 'Drops'), ('Inhaler', 'Inhaler'), ('Powder', 'Powder'), ('Vitamins', 'Vitamins'), ('Supplements', 'Supplements'), ('First Aid', 'First Aid'), ('Medical Devices', 'Medical Devices'), ('Baby Care', 'Baby Care'), ('Herbal Products', 'Herbal Products'), ('Skincare', 'Skincare'), ('Cosmetics', 'Cosmetics'), ('Toiletries', 'Toiletries'), ('Hygiene', 'Hygiene'), ('Hair Care', 'Hair Care'), ('Oral Care', 'Oral Care'), ('Beverages', 'Beverages'), ('Snacks', 'Snacks'), ('Household', 'Household'), ('Pet Care', 'Pet Care'), ('Stationery', 'Stationery'), ('Other', 'Other')], default='Other', max_length=50)),
                ('batch_number', models.CharField(blank=True, max_length=100)),
                ('current_stock', models.IntegerField(default=0)),
                ('reorder_level', models.IntegerField(default=10)),
                ('expiry_date', models.DateField()),
                ('manufacturing_date', models.DateField(blank=True, null=True)),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), help_text='Cost price', max_digits=12)),
                ('selling_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('wholesale_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('shelf_quantity', models.IntegerField(default=0)),
                ('store_quantity', models.IntegerField(default=0)),
                ('barcode_id', models.CharField(blank=True, db_index=True, max_length=100, null=True)),
                ('supplier', models.CharField(blank=True, max_length=255, null=True)),
                ('location', models.CharField(blank=True, max_length=100, null=True)),
                ('min_stock_alert', models.IntegerField(blank=True, null=True)),
                ('is_shelved', models.BooleanField(default=False)),
                ('is_controlled', models.BooleanField(default=False)),
                ('is_public', models.BooleanField(default=False)),
                ('is_featured', models.BooleanField(default=False)),
                ('featured_until', models.DateTimeField(blank=True, null=True)),
                ('nafdac_reg_number', models.CharField(blank=True, max_length=50, null=True)),
                ('dispensing_unit', models.CharField(choices=[('unit', 'Unit'), ('pack', 'Pack'), ('tab', 'Tab'), ('bottle', 'Bottle')], default='unit', max_length=10)),
                ('active_ingredients', models.JSONField(blank=True, default=list)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('last_notified_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('branch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='medications', to='pharmacies.branch')),
                ('pharmacy', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='medications', to='pharmacies.pharmacy')),
            ],
            options={
                'db_table': 'medications',
                'ordering': ['name', 'expiry_date'],
                'indexes': [
                    models.Index(fields=['pharmacy', 'name'], name='idx_med_pharmacy_name'),
                    models.Index(fields=['pharmacy', 'expiry_date'], name='idx_med_pharmacy_expiry'),
                    models.Index(fields=['pharmacy', 'barcode_id'], name='idx_med_pharmacy_barcode'),
                    models.Index(fields=['is_public', 'is_featured'], name='idx_med_marketplace'),
                ],
            },
        ),
    ]
