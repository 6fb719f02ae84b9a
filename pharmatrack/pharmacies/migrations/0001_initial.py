import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Pharmacy',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('email', models.EmailField(blank=True, db_index=True, max_length=254, null=True)),
                ('phone', models.CharField(blank=True, max_length=30, null=True)),
                ('address', models.TextField(blank=True)),
                ('license_number', models.CharField(blank=True, max_length=100, null=True)),
                ('pharmacist_in_charge', models.CharField(blank=True, max_length=255, null=True)),
                ('currency', models.CharField(default='NGN', max_length=3)),
                ('default_margin_percent', models.DecimalField(decimal_places=2, default=Decimal('20.00'), max_digits=5)),
                ('require_wifi_clock_in', models.BooleanField(default=False)),
                ('store_wifi_name', models.CharField(blank=True, max_length=100, null=True)),
                ('price_lock_enabled', models.BooleanField(default=False)),
                ('admin_pin_hash', models.CharField(blank=True, max_length=128, null=True)),
                ('subscription_plan', models.CharField(choices=[('lite', 'Lite'), ('starter', 'Starter'), ('pro', 'Pro'), ('enterprise', 'Enterprise')], default='starter', max_length=20)),
                ('subscription_status', models.CharField(choices=[('trial', 'Trial'), ('active', 'Active'), ('expired', 'Expired'), ('cancelled', 'Cancelled')], default='trial', max_length=20)),
                ('trial_ends_at', models.DateTimeField(blank=True, null=True)),
                ('subscription_ends_at', models.DateTimeField(blank=True, null=True)),
                ('auto_renew', models.BooleanField(default=True)),
                ('paystack_customer_code', models.CharField(blank=True, max_length=100, null=True)),
                ('paystack_subscription_code', models.CharField(blank=True, max_length=100, null=True)),
                ('paystack_email_token', models.CharField(blank=True, max_length=100, null=True)),
                ('max_users', models.IntegerField(default=1)),
                ('active_branches_limit', models.IntegerField(default=1)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('is_gifted', models.BooleanField(default=False)),
                ('termii_sender_id', models.CharField(blank=True, max_length=11, null=True)),
                ('alert_phone', models.CharField(blank=True, max_length=30, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='owned_pharmacies', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'pharmacies',
                'db_table': 'pharmacies',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Branch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('address', models.TextField(blank=True)),
                ('phone', models.CharField(blank=True, max_length=30, null=True)),
                ('is_main', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('pharmacy', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='branches', to='pharmacies.pharmacy')),
            ],
            options={
                'db_table': 'branches',
                'ordering': ['-is_main', 'name'],
                'unique_together': {('pharmacy', 'name')},
            },
        ),
    ]
