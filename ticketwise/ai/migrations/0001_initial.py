# Generated manually
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('organization', '0001_initial'),
        ('tickets', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AiConfiguration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('provider', models.CharField(choices=[('openai', 'OpenAI'), ('anthropic', 'Anthropic'), ('google', 'Google')], max_length=20)),
                ('model', models.CharField(max_length=100)),
                ('api_endpoint', models.URLField(blank=True, max_length=500)),
                ('system_prompt', models.TextField(blank=True)),
                ('user_prompt_template', models.TextField(blank=True)),
                ('temperature', models.DecimalField(decimal_places=2, default=0.3, max_digits=3, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(2)])),
                ('max_tokens', models.PositiveIntegerField(default=1500)),
                ('timeout_seconds', models.PositiveIntegerField(default=30)),
                ('max_retries', models.PositiveIntegerField(default=3)),
                ('analysis_type', models.CharField(choices=[('ticket_priority', 'Prioridade do Ticket'), ('ticket_suggestions', 'Sugestões de Atendimento')], default='ticket_suggestions', max_length=30)),
                ('is_active', models.BooleanField(default=True)),
                ('is_default', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='ai_configurations', to='core.company')),
                ('department', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='ai_configurations', to='organization.department')),
            ],
            options={
                'db_table': 'ai_configurations',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['company', 'analysis_type', 'is_active'], name='ai_config_lookup_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AiSuggestion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('similar_tickets_count', models.PositiveIntegerField(default=0)),
                ('success_rate', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('confidence_score', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('suggestion_type', models.CharField(default='hybrid', max_length=20)),
                ('prompt_used', models.TextField(blank=True)),
                ('ai_response', models.TextField(blank=True)),
                ('structured_suggestion', models.JSONField(blank=True, default=dict)),
                ('feedback_rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('feedback_comment', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('department', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ai_suggestions', to='organization.department')),
                ('ticket', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ai_suggestions', to='tickets.ticket')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ai_suggestions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'ai_suggestions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['ticket', '-created_at'], name='ai_suggestions_ticket_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AiSuggestionLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=50)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('suggestion', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='logs', to='ai.aisuggestion')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='ai_suggestion_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'ai_suggestion_logs',
                'ordering': ['-created_at'],
            },
        ),
    ]
