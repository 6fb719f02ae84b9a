import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('pharmacies', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MarketplaceSearch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('search_query', models.CharField(max_length=255)),
                ('location_filter', models.CharField(blank=True, max_length=255, null=True)),
                ('results_count', models.IntegerField(default=0)),
                ('viewer_ip', models.GenericIPAddressField(blank=True, null=True)),
                ('searched_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'marketplace_searches',
                'ordering': ['-searched_at'],
            },
        ),
        migrations.CreateModel(
            name='MarketplaceView',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('search_query', models.CharField(blank=True, max_length=255, null=True)),
                ('viewer_ip', models.GenericIPAddressField(blank=True, null=True)),
                ('viewed_at', models.DateTimeField(auto_now_add=True)),
                ('medication', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='marketplace_views', to='catalog.medication')),
                ('pharmacy', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='marketplace_views', to='pharmacies.pharmacy')),
            ],
            options={
                'db_table': 'marketplace_views',
                'ordering': ['-viewed_at'],
                'indexes': [models.Index(fields=['pharmacy', 'viewed_at'], name='idx_mkt_view_pharmacy')],
            },
        ),
    ]
