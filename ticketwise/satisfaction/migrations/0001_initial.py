# Generated manually
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('tickets', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='SatisfactionSurvey',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('customer_email', models.EmailField(max_length=254)),
                ('survey_token', models.CharField(max_length=64, unique=True)),
                ('sent_at', models.DateTimeField(auto_now_add=True)),
                ('expires_at', models.DateTimeField()),
                ('status', models.CharField(choices=[('sent', 'Enviada'), ('responded', 'Respondida'), ('expired', 'Expirada')], default='sent', max_length=20)),
                ('rating', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('comments', models.TextField(blank=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('reminder_5d_sent', models.BooleanField(default=False)),
                ('reminder_3d_sent', models.BooleanField(default=False)),
                ('reminder_1d_sent', models.BooleanField(default=False)),
                ('company', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='satisfaction_surveys', to='core.company')),
                ('ticket', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='satisfaction_surveys', to='tickets.ticket')),
            ],
            options={
                'db_table': 'satisfaction_surveys',
                'ordering': ['-sent_at'],
                'indexes': [
                    models.Index(fields=['customer_email', 'status'], name='surveys_email_status_idx'),
                    models.Index(fields=['company', 'status'], name='surveys_company_status_idx'),
                ],
            },
        ),
    ]
