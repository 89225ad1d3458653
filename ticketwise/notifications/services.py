"""
Email delivery and notification dispatch.

``EmailSender`` talks to the configured provider (SMTP through
``django.core.mail``, Brevo, SendGrid and Mailgun through their HTTP APIs).
``EmailNotificationService`` picks the template for an event, renders it for
every recipient that wants the notification and sends it. Notification
failures are logged and never propagate into the request that triggered them.
"""
import logging

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMultiAlternatives, get_connection
from django.db.models import Q
from django.utils import timezone

from ticketwise.core.exceptions import ServiceError
from .models import EmailConfig, EmailTemplate, UserNotificationSettings
from .templating import render_template, build_ticket_context, build_survey_context, system_context, person_context

logger = logging.getLogger('ticketwise.notifications')
User = get_user_model()

HTTP_TIMEOUT = 15

BREVO_SEND_URL = 'https://api.brevo.com/v3/smtp/email'
SENDGRID_SEND_URL = 'https://api.sendgrid.com/v3/mail/send'
MAILGUN_SEND_URL = 'https://api.mailgun.net/v3/{domain}/messages'

# Which preference flag gates each notification type
NOTIFICATION_FLAGS = {
    'new_ticket': 'new_ticket_assigned',
    'ticket_assigned': 'new_ticket_assigned',
    'ticket_reply': 'new_reply_received',
    'status_changed': 'ticket_status_changed',
    'ticket_resolved': 'ticket_status_changed',
    'ticket_escalated': 'ticket_escalated',
    'ticket_due_soon': 'ticket_due_soon',
    'customer_registered': 'new_customer_registered',
    'user_created': 'new_user_created',
    'system_maintenance': 'system_maintenance',
    'ticket_participant_added': 'ticket_participant_added',
    'ticket_participant_removed': 'ticket_participant_removed',
}


class EmailDeliveryError(ServiceError):
    pass


def get_email_config(company_id=None):
    """Company config, falling back to the global row (company is null)"""
    config = None
    if company_id is not None:
        config = EmailConfig.objects.filter(company_id=company_id).first()
    return config or EmailConfig.objects.filter(company__isnull=True).first()


class EmailSender:
    """Send one message through the provider of an EmailConfig"""

    def __init__(self, config=None):
        self.config = config

    @property
    def from_email(self):
        if self.config is None:
            return settings.DEFAULT_FROM_EMAIL
        return self.config.from_email

    @property
    def from_name(self):
        if self.config is None or not self.config.from_name:
            return ''
        return self.config.from_name

    def send(self, to_email, subject, html_body, text_body=''):
        provider = self.config.provider if self.config else 'smtp'
        handler = getattr(self, f'_send_{provider}', None)
        if handler is None:
            raise EmailDeliveryError(f"Provedor de email não suportado: {provider}")
        try:
            handler(to_email, subject, html_body, text_body or '')
        except requests.exceptions.RequestException as e:
            logger.error(f"{provider} delivery to {to_email} failed: {str(e)}")
            raise EmailDeliveryError(f"Falha ao enviar email via {provider}: {str(e)}")
        logger.info(f"Email '{subject}' sent to {to_email} via {provider}")
        return True

    def _formatted_sender(self):
        if self.from_name:
            return f"{self.from_name} <{self.from_email}>"
        return self.from_email

    def _send_smtp(self, to_email, subject, html_body, text_body):
        if self.config is None:
            connection = get_connection()
        else:
            connection = get_connection(
                'django.core.mail.backends.smtp.EmailBackend',
                host=self.config.host,
                port=self.config.port,
                username=self.config.username or None,
                password=self.config.password or None,
                use_tls=self.config.use_tls,
                timeout=HTTP_TIMEOUT,
            )
        message = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=self._formatted_sender(),
            to=[to_email],
            connection=connection,
        )
        message.attach_alternative(html_body, 'text/html')
        try:
            message.send()
        except OSError as e:
            logger.error(f"SMTP delivery to {to_email} failed: {str(e)}")
            raise EmailDeliveryError(f"Falha ao enviar email via SMTP: {str(e)}")

    def _send_brevo(self, to_email, subject, html_body, text_body):
        payload = {
            'sender': {'email': self.from_email, 'name': self.from_name or self.from_email},
            'to': [{'email': to_email}],
            'subject': subject,
            'htmlContent': html_body,
        }
        if text_body:
            payload['textContent'] = text_body
        response = requests.post(
            BREVO_SEND_URL,
            json=payload,
            headers={'api-key': self.config.api_key, 'accept': 'application/json'},
            timeout=HTTP_TIMEOUT,
        )
        response.raise_for_status()

    def _send_sendgrid(self, to_email, subject, html_body, text_body):
        content = []
        if text_body:
            content.append({'type': 'text/plain', 'value': text_body})
        content.append({'type': 'text/html', 'value': html_body})
        sender = {'email': self.from_email}
        if self.from_name:
            sender['name'] = self.from_name
        response = requests.post(
            SENDGRID_SEND_URL,
            json={
                'personalizations': [{'to': [{'email': to_email}]}],
                'from': sender,
                'subject': subject,
                'content': content,
            },
            headers={'Authorization': f'Bearer {self.config.api_key}'},
            timeout=HTTP_TIMEOUT,
        )
        response.raise_for_status()

    def _send_mailgun(self, to_email, subject, html_body, text_body):
        domain = self.from_email.split('@')[-1]
        data = {
            'from': self._formatted_sender(),
            'to': to_email,
            'subject': subject,
            'html': html_body,
        }
        if text_body:
            data['text'] = text_body
        response = requests.post(
            MAILGUN_SEND_URL.format(domain=domain),
            auth=('api', self.config.api_key),
            data=data,
            timeout=HTTP_TIMEOUT,
        )
        response.raise_for_status()


def send_test_email(company_id, to_email):
    """Send a fixed test message through the configured provider"""
    config = get_email_config(company_id)
    sender = EmailSender(config)
    subject = 'Teste de configuração de email'
    html = ('<p>Este é um email de teste enviado pelo Ticket Wise.</p>'
            '<p>Se você recebeu esta mensagem, a configuração está funcionando.</p>')
    text = 'Este é um email de teste enviado pelo Ticket Wise.'
    sender.send(to_email, subject, html, text)
    return config


def should_notify(user, notification_type, now=None):
    """Whether ``user`` wants an email for ``notification_type`` at ``now``"""
    if not user.is_active:
        return False

    try:
        prefs = user.notification_settings
    except UserNotificationSettings.DoesNotExist:
        return True

    if not prefs.email_notifications:
        return False

    now = timezone.localtime(now or timezone.now())
    if now.weekday() >= 5 and not prefs.weekend_notifications:
        return False
    if not (prefs.notification_hours_start <= now.hour < prefs.notification_hours_end):
        return False

    flag = NOTIFICATION_FLAGS.get(notification_type)
    if flag is None:
        return True
    return getattr(prefs, flag)


class EmailNotificationService:
    """Render and send template-based notifications"""

    def get_template(self, template_type, company_id=None):
        templates = EmailTemplate.objects.filter(type=template_type, is_active=True)
        if company_id is not None:
            template = templates.filter(company_id=company_id).order_by('-is_default', '-updated_at').first()
            if template is not None:
                return template
        return templates.filter(company__isnull=True, is_default=True).order_by('-updated_at').first()

    def _recipient_email(self, recipient, template_type, now):
        """Email address to use, or None when the recipient opted out"""
        if isinstance(recipient, str):
            return recipient
        if hasattr(recipient, 'role'):
            return recipient.email if should_notify(recipient, template_type, now) else None
        # Requesters without a login have no preferences
        if not getattr(recipient, 'is_active', True):
            return None
        return recipient.email

    def notify(self, template_type, recipients, context, company=None):
        """Send ``template_type`` to every recipient, returning the count sent"""
        try:
            company_id = company.id if company is not None else None
            template = self.get_template(template_type, company_id)
            if template is None:
                logger.warning(f"No active email template for {template_type} (company {company_id}), skipping")
                return 0

            context = dict(context or {})
            for key, value in system_context(company).items():
                context.setdefault(key, value)

            subject = render_template(template.subject_template, context, blank_known=True)
            html_body = render_template(template.html_template, context, blank_known=True)
            text_body = render_template(template.text_template, context, blank_known=True)
            sender = EmailSender(get_email_config(company_id))

            now = timezone.now()
            sent = 0
            seen = set()
            for recipient in recipients:
                if recipient is None:
                    continue
                email = self._recipient_email(recipient, template_type, now)
                if not email or email.lower() in seen:
                    continue
                seen.add(email.lower())
                try:
                    sender.send(email, subject, html_body, text_body)
                    sent += 1
                except ServiceError as e:
                    logger.error(f"Notification {template_type} to {email} failed: {e.message}")
            return sent
        except Exception as e:
            logger.error(f"Notification {template_type} could not be dispatched: {str(e)}")
            return 0


notification_service = EmailNotificationService()


def _department_staff(ticket):
    if not ticket.department_id:
        return []
    officials = ticket.department.officials.filter(is_active=True, user__isnull=False).select_related('user')
    return [official.user for official in officials]


def _ticket_requester(ticket):
    if ticket.customer_id and ticket.customer.user_id:
        return ticket.customer.user
    return ticket.customer or ticket.customer_email or None


def notify_new_ticket(ticket):
    context = build_ticket_context(ticket)
    return notification_service.notify('new_ticket', _department_staff(ticket), context, ticket.company)


def notify_ticket_assigned(ticket, actor=None):
    if not ticket.assigned_to_id or not ticket.assigned_to.user_id:
        return 0
    assignee = ticket.assigned_to.user
    context = build_ticket_context(ticket, user=assignee)
    return notification_service.notify('ticket_assigned', [assignee], context, ticket.company)


def notify_ticket_reply(reply):
    ticket = reply.ticket
    context = build_ticket_context(ticket, user=reply.user, reply=reply)
    if reply.user_id and reply.user.role == 'customer':
        recipients = [ticket.assigned_to.user] if ticket.assigned_to_id and ticket.assigned_to.user_id else []
    else:
        recipients = [_ticket_requester(ticket)]
    return notification_service.notify('ticket_reply', recipients, context, ticket.company)


def notify_status_changed(ticket, history):
    context = build_ticket_context(ticket, user=history.changed_by, status_change=history)
    return notification_service.notify('status_changed', [_ticket_requester(ticket)], context, ticket.company)


def notify_ticket_resolved(ticket, actor=None):
    context = build_ticket_context(ticket, user=actor)
    return notification_service.notify('ticket_resolved', [_ticket_requester(ticket)], context, ticket.company)


def notify_customer_registered(customer):
    admins = User.objects.filter(is_active=True).filter(
        Q(role='admin') | Q(role='company_admin', company_id=customer.company_id)
    )
    context = {
        'customer': {
            'name': customer.name,
            'email': customer.email,
            'phone': customer.phone or '',
            'company': customer.company_name,
        },
    }
    return notification_service.notify('customer_registered', list(admins), context, customer.company)


def notify_user_created(user):
    context = {'user': person_context(user)}
    return notification_service.notify('user_created', [user], context, user.company)


def notify_ticket_escalated(ticket, actor=None, reason=None):
    """Tell the requester and the department staff, except whoever escalated"""
    context = build_ticket_context(ticket, user=actor, message=reason)
    staff = [user for user in _department_staff(ticket) if actor is None or user.pk != actor.pk]
    return notification_service.notify('ticket_escalated', [_ticket_requester(ticket)] + staff, context,
                                       ticket.company)


def due_soon_message(hours_until_due):
    if hours_until_due <= 1:
        return 'Este ticket vence em menos de 1 hora. Ação imediata é necessária.'
    if hours_until_due <= 4:
        return f'Este ticket vence em {hours_until_due} horas. Atenção urgente necessária.'
    if hours_until_due <= 24:
        return f'Este ticket vence em {hours_until_due} horas. Verifique o status e tome as ações necessárias.'
    days = -(-hours_until_due // 24)
    return f'Este ticket vence em aproximadamente {days} dias. Verifique o progresso.'


def notify_ticket_due_soon(ticket, hours_until_due):
    """Warn the assignee, or the department staff when nobody is assigned"""
    if ticket.assigned_to_id and ticket.assigned_to.is_active and ticket.assigned_to.user_id:
        recipients = [ticket.assigned_to.user]
    else:
        recipients = _department_staff(ticket)
    context = build_ticket_context(ticket, message=due_soon_message(hours_until_due))
    if len(recipients) == 1:
        context['user'] = person_context(recipients[0])
    return notification_service.notify('ticket_due_soon', recipients, context, ticket.company)


def notify_satisfaction_survey(survey):
    context = build_survey_context(survey)
    return notification_service.notify('satisfaction_survey', [survey.customer_email], context, survey.company)
