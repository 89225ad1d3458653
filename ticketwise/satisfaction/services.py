"""Satisfaction survey lifecycle: creation on resolve, public answering, expiry"""
import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.db.models import Avg, Count
from django.utils import timezone

from ticketwise.core.exceptions import NotFoundError, GoneError, ConflictError
from ticketwise.notifications.services import notify_satisfaction_survey
from .models import SatisfactionSurvey

logger = logging.getLogger('ticketwise.satisfaction')

DEFAULT_THEME = {
    'primary': '#3B82F6',
    'secondary': '#F3F4F6',
    'accent': '#10B981',
    'background': '#F9FAFB',
    'text': '#111827',
}

DOMAIN_THEMES = {
    'vixbrasil.com': {
        'primary': '#D4A017',
        'secondary': '#F5F5DC',
        'accent': '#F0E68C',
        'background': '#FFFEF7',
        'text': '#2F2F1F',
    },
    'oficinamuda.com': {
        'primary': '#005A8B',
        'secondary': '#E6F3FF',
        'accent': '#CCE7FF',
        'background': '#F7FBFF',
        'text': '#1A2B33',
    },
}

LOW_RATING_THRESHOLD = 2
LATEST_COMMENTS_LIMIT = 10


class SurveyAlreadyRespondedError(ConflictError):
    def __init__(self, survey):
        super().__init__('Esta pesquisa já foi respondida')
        self.survey = survey


def get_theme_colors(domain):
    """Palette of the survey page, chosen by company domain"""
    domain = (domain or '').lower()
    for known_domain, theme in DOMAIN_THEMES.items():
        if known_domain in domain:
            return dict(theme)
    return dict(DEFAULT_THEME)


def create_survey_for_ticket(ticket):
    """
    Create the survey of a resolved ticket.

    Returns None when the ticket has no requester email. A ticket never gets
    a second survey, the existing one is returned instead. A new survey is
    emailed to the requester with its answer link.
    """
    email = ticket.customer_email or (ticket.customer.email if ticket.customer_id else '')
    if not email:
        logger.debug(f"Ticket {ticket.ticket_id} has no requester email, no survey created")
        return None

    existing = SatisfactionSurvey.objects.filter(ticket=ticket).first()
    if existing is not None:
        return existing

    survey = SatisfactionSurvey.objects.create(
        ticket=ticket,
        company=ticket.company,
        customer_email=email,
        survey_token=secrets.token_urlsafe(32),
        expires_at=timezone.now() + timedelta(days=settings.SATISFACTION_SURVEY_DAYS),
    )
    logger.info(f"Satisfaction survey {survey.id} created for ticket {ticket.ticket_id} ({email})")
    notify_satisfaction_survey(survey)
    return survey


def load_open_survey(token):
    """
    Survey for ``token`` that can still be answered.

    Raises NotFoundError, SurveyAlreadyRespondedError, or GoneError (after
    marking an overdue survey as expired).
    """
    survey = SatisfactionSurvey.objects.select_related('ticket', 'company').filter(survey_token=token).first()
    if survey is None:
        raise NotFoundError('Pesquisa de satisfação não encontrada')
    if survey.status == 'responded':
        raise SurveyAlreadyRespondedError(survey)
    if survey.status == 'expired' or survey.expires_at < timezone.now():
        if survey.status != 'expired':
            survey.status = 'expired'
            survey.save(update_fields=['status'])
        raise GoneError('Esta pesquisa de satisfação expirou')
    return survey


def submit_response(token, rating, comments=''):
    """
    Store the answer of an open survey.

    The write only succeeds while the survey is still ``sent``, so of two
    concurrent answers the second raises SurveyAlreadyRespondedError.
    """
    survey = load_open_survey(token)
    responded_at = timezone.now()
    updated = SatisfactionSurvey.objects.filter(pk=survey.pk, status='sent').update(
        rating=rating, comments=comments or '', status='responded', responded_at=responded_at
    )
    if not updated:
        survey.refresh_from_db()
        if survey.status == 'responded':
            raise SurveyAlreadyRespondedError(survey)
        raise GoneError('Esta pesquisa de satisfação expirou')

    survey.rating = rating
    survey.comments = comments or ''
    survey.status = 'responded'
    survey.responded_at = responded_at
    logger.info(f"Survey {survey.id} answered with rating {rating}")
    return survey


def expire_overdue_surveys(now=None):
    """Mark every sent survey past its deadline as expired"""
    now = now or timezone.now()
    count = SatisfactionSurvey.objects.filter(status='sent', expires_at__lt=now).update(status='expired')
    if count:
        logger.info(f"{count} satisfaction surveys expired")
    return count


def build_dashboard(queryset):
    """Aggregate survey statistics of ``queryset``"""
    total_sent = queryset.count()
    responded = queryset.filter(status='responded', rating__isnull=False)
    total_responded = responded.count()
    average = responded.aggregate(avg=Avg('rating'))['avg']

    distribution = {str(rating): 0 for rating in range(1, 6)}
    for row in responded.values('rating').annotate(count=Count('id')):
        distribution[str(row['rating'])] = row['count']

    by_department = []
    department_rows = responded.values('ticket__department_id', 'ticket__department__name') \
        .annotate(avg=Avg('rating'), count=Count('id')).order_by('ticket__department__name')
    for row in department_rows:
        by_department.append({
            'department_id': row['ticket__department_id'],
            'department_name': row['ticket__department__name'] or 'Sem departamento',
            'average_rating': round(row['avg'], 2) if row['avg'] is not None else None,
            'responses': row['count'],
        })

    latest_comments = [
        {
            'ticket_id': survey.ticket.ticket_id,
            'rating': survey.rating,
            'comments': survey.comments,
            'customer_email': survey.customer_email,
            'responded_at': survey.responded_at,
            'low_rating': survey.rating <= LOW_RATING_THRESHOLD,
        }
        for survey in responded.exclude(comments='').select_related('ticket').order_by('-responded_at')[:LATEST_COMMENTS_LIMIT]
    ]

    return {
        'total_sent': total_sent,
        'total_responded': total_responded,
        'response_rate': round(total_responded / total_sent * 100, 1) if total_sent else 0,
        'average_rating': round(average, 2) if average is not None else None,
        'rating_distribution': distribution,
        'by_department': by_department,
        'latest_comments': latest_comments,
    }
