# Generated manually
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='EmailConfig',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('provider', models.CharField(choices=[('smtp', 'SMTP Personalizado'), ('brevo', 'Brevo (SendinBlue)'), ('sendgrid', 'SendGrid'), ('mailgun', 'Mailgun')], default='smtp', max_length=20)),
                ('host', models.CharField(blank=True, max_length=255)),
                ('port', models.PositiveIntegerField(default=587)),
                ('username', models.CharField(blank=True, max_length=255)),
                ('password', models.CharField(blank=True, max_length=255)),
                ('api_key', models.CharField(blank=True, max_length=255)),
                ('from_email', models.EmailField(max_length=254)),
                ('from_name', models.CharField(blank=True, max_length=200)),
                ('use_tls', models.BooleanField(default=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='email_config', to='core.company')),
            ],
            options={
                'db_table': 'email_configs',
            },
        ),
        migrations.CreateModel(
            name='EmailTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('type', models.CharField(choices=[('new_ticket', 'Novo Ticket'), ('ticket_assigned', 'Ticket Atribuído'), ('ticket_reply', 'Nova Resposta'), ('status_changed', 'Status Alterado'), ('ticket_resolved', 'Ticket Resolvido'), ('ticket_escalated', 'Ticket Escalado'), ('ticket_due_soon', 'Vencimento Próximo'), ('customer_registered', 'Cliente Registrado'), ('user_created', 'Usuário Criado'), ('system_maintenance', 'Manutenção do Sistema'), ('ticket_participant_added', 'Participante Adicionado'), ('ticket_participant_removed', 'Participante Removido')], max_length=50)),
                ('description', models.TextField(blank=True)),
                ('subject_template', models.CharField(max_length=500)),
                ('html_template', models.TextField()),
                ('text_template', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('is_default', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='email_templates', to='core.company')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_email_templates', to=settings.AUTH_USER_MODEL)),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='updated_email_templates', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'email_templates',
                'ordering': ['type', 'name'],
                'indexes': [models.Index(fields=['type', 'company', 'is_active'], name='email_tpl_lookup_idx')],
            },
        ),
        migrations.CreateModel(
            name='UserNotificationSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('new_ticket_assigned', models.BooleanField(default=True)),
                ('ticket_status_changed', models.BooleanField(default=True)),
                ('new_reply_received', models.BooleanField(default=True)),
                ('ticket_escalated', models.BooleanField(default=True)),
                ('ticket_due_soon', models.BooleanField(default=True)),
                ('ticket_participant_added', models.BooleanField(default=True)),
                ('ticket_participant_removed', models.BooleanField(default=True)),
                ('new_customer_registered', models.BooleanField(default=True)),
                ('new_user_created', models.BooleanField(default=True)),
                ('system_maintenance', models.BooleanField(default=True)),
                ('email_notifications', models.BooleanField(default=True)),
                ('notification_hours_start', models.PositiveSmallIntegerField(default=9, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(23)])),
                ('notification_hours_end', models.PositiveSmallIntegerField(default=18, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(24)])),
                ('weekend_notifications', models.BooleanField(default=False)),
                ('digest_frequency', models.CharField(choices=[('never', 'Nunca'), ('daily', 'Diário'), ('weekly', 'Semanal')], default='never', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='notification_settings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_notification_settings',
            },
        ),
    ]
