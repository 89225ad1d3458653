# Generated manually
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('notifications', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='emailtemplate',
            name='type',
            field=models.CharField(choices=[('new_ticket', 'Novo Ticket'), ('ticket_assigned', 'Ticket Atribuído'), ('ticket_reply', 'Nova Resposta'), ('status_changed', 'Status Alterado'), ('ticket_resolved', 'Ticket Resolvido'), ('ticket_escalated', 'Ticket Escalado'), ('ticket_due_soon', 'Vencimento Próximo'), ('customer_registered', 'Cliente Registrado'), ('user_created', 'Usuário Criado'), ('system_maintenance', 'Manutenção do Sistema'), ('ticket_participant_added', 'Participante Adicionado'), ('ticket_participant_removed', 'Participante Removido'), ('satisfaction_survey', 'Pesquisa de Satisfação')], max_length=50),
        ),
    ]
