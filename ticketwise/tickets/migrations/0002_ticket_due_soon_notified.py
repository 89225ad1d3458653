# Generated manually
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('tickets', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='ticket',
            name='due_soon_notified',
            field=models.BooleanField(default=False),
        ),
    ]
