import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
        ('pharmacies', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='auditlog',
            name='pharmacy',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='pharmacies.pharmacy'),
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['pharmacy', '-created_at'], name='idx_audit_pharmacy_created'),
        ),
    ]
