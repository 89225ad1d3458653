"""
Management command to create the global default email templates
"""
from django.core.management.base import BaseCommand
from ticketwise.notifications.models import EmailTemplate
from ticketwise.notifications.templating import TEMPLATE_TYPES

FOOTER = '<p style="color:#6B7280;font-size:12px">{{system.company_name}} · {{system.support_email}}</p>'

DEFAULT_TEMPLATES = {
    'new_ticket': (
        'Novo ticket {{ticket.ticket_id}}: {{ticket.title}}',
        '<h2>Novo ticket aberto</h2><p><strong>{{ticket.ticket_id}}</strong> - {{ticket.title}}</p>'
        '<p>Solicitante: {{customer.name}} ({{customer.email}})</p>'
        '<p>Prioridade: {{ticket.priority_text}}</p><p>{{ticket.description}}</p>'
        '<p><a href="{{ticket.link}}">Abrir ticket</a></p>',
    ),
    'ticket_assigned': (
        'Ticket {{ticket.ticket_id}} atribuído a você',
        '<h2>Olá, {{user.name}}</h2><p>O ticket <strong>{{ticket.ticket_id}}</strong> - {{ticket.title}} '
        'foi atribuído a você.</p><p>Prioridade: {{ticket.priority_text}}</p>'
        '<p><a href="{{ticket.link}}">Abrir ticket</a></p>',
    ),
    'ticket_reply': (
        'Nova resposta no ticket {{ticket.ticket_id}}',
        '<h2>Nova resposta</h2><p>{{reply.user.name}} respondeu ao ticket '
        '<strong>{{ticket.ticket_id}}</strong>:</p><blockquote>{{reply.message}}</blockquote>'
        '<p><a href="{{ticket.link}}">Ver conversa</a></p>',
    ),
    'status_changed': (
        'Ticket {{ticket.ticket_id}}: status alterado para {{status_change.new_status_text}}',
        '<h2>Status atualizado</h2><p>O ticket <strong>{{ticket.ticket_id}}</strong> passou de '
        '{{status_change.old_status_text}} para {{status_change.new_status_text}}.</p>'
        '<p><a href="{{ticket.link}}">Abrir ticket</a></p>',
    ),
    'ticket_resolved': (
        'Ticket {{ticket.ticket_id}} resolvido',
        '<h2>Seu ticket foi resolvido</h2><p><strong>{{ticket.ticket_id}}</strong> - {{ticket.title}}</p>'
        '<p>Resolvido em {{ticket.resolved_at_formatted}}.</p>'
        '<p><a href="{{ticket.link}}">Ver detalhes</a></p>',
    ),
    'ticket_escalated': (
        'Ticket {{ticket.ticket_id}} escalado',
        '<h2>Ticket escalado</h2><p><strong>{{ticket.ticket_id}}</strong> - {{ticket.title}}</p>'
        '<p>{{system.message}}</p><p>Prioridade: {{ticket.priority_text}}</p>'
        '<p><a href="{{ticket.link}}">Abrir ticket</a></p>',
    ),
    'ticket_due_soon': (
        'Ticket {{ticket.ticket_id}} próximo do vencimento',
        '<h2>Atenção ao prazo</h2><p>O ticket <strong>{{ticket.ticket_id}}</strong> - {{ticket.title}} '
        'está próximo do vencimento.</p><p>{{system.message}}</p><p><a href="{{ticket.link}}">Abrir ticket</a></p>',
    ),
    'customer_registered': (
        'Novo cliente cadastrado: {{customer.name}}',
        '<h2>Novo cliente</h2><p>{{customer.name}} ({{customer.email}}) foi cadastrado.</p>'
        '<p>Empresa: {{customer.company}}</p>',
    ),
    'user_created': (
        'Bem-vindo ao {{system.company_name}}',
        '<h2>Olá, {{user.name}}</h2><p>Sua conta foi criada com o perfil {{user.role_text}}.</p>'
        '<p>Acesse: <a href="{{system.base_url}}">{{system.base_url}}</a></p>',
    ),
    'system_maintenance': (
        'Manutenção programada - {{system.company_name}}',
        '<h2>Manutenção do sistema</h2><p>{{system.message}}</p>',
    ),
    'ticket_participant_added': (
        'Você foi adicionado ao ticket {{ticket.ticket_id}}',
        '<h2>Olá, {{user.name}}</h2><p>Você agora acompanha o ticket <strong>{{ticket.ticket_id}}</strong>'
        ' - {{ticket.title}}.</p><p><a href="{{ticket.link}}">Abrir ticket</a></p>',
    ),
    'ticket_participant_removed': (
        'Você foi removido do ticket {{ticket.ticket_id}}',
        '<h2>Olá, {{user.name}}</h2><p>Você não acompanha mais o ticket '
        '<strong>{{ticket.ticket_id}}</strong>.</p>',
    ),
    'satisfaction_survey': (
        'Como foi nosso atendimento no ticket {{ticket.ticket_id}}?',
        '<h2>Olá, {{customer.name}}</h2><p>O ticket <strong>{{ticket.ticket_id}}</strong> foi resolvido. '
        'Conte como foi o atendimento: <a href="{{survey.link}}">{{survey.link}}</a></p>'
        '<p>A pesquisa fica disponível até {{survey.expires_at_formatted}}.</p>',
    ),
}


class Command(BaseCommand):
    help = 'Create the global default email template of every template type'

    def add_arguments(self, parser):
        parser.add_argument(
            '--overwrite',
            action='store_true',
            help='Replace the content of existing global default templates',
        )

    def handle(self, *args, **options):
        overwrite = options['overwrite']
        created_count = 0
        updated_count = 0

        for template_type, label in TEMPLATE_TYPES.items():
            subject, html = DEFAULT_TEMPLATES[template_type]
            existing = EmailTemplate.objects.filter(
                type=template_type, company__isnull=True, is_default=True
            ).first()

            if existing is None:
                EmailTemplate.objects.create(
                    name=f'{label} (padrão)',
                    type=template_type,
                    subject_template=subject,
                    html_template=html + FOOTER,
                    is_active=True,
                    is_default=True,
                )
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f'✓ Created template: {template_type}'))
            elif overwrite:
                existing.subject_template = subject
                existing.html_template = html + FOOTER
                existing.save(update_fields=['subject_template', 'html_template', 'updated_at'])
                updated_count += 1
                self.stdout.write(f'  Updated template: {template_type}')
            else:
                self.stdout.write(f'  Template already exists: {template_type}')

        self.stdout.write(self.style.SUCCESS(
            f'\nDone: {created_count} created, {updated_count} updated'
        ))
