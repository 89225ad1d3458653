"""Ticket numbering, status transitions and replies"""
import logging
import math
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from ticketwise.core.exceptions import ServiceError
from ticketwise.notifications import services as notifications
from ticketwise.satisfaction.services import create_survey_for_ticket
from .models import Ticket, TicketReply, TicketStatusHistory

logger = logging.getLogger('ticketwise.tickets')

VALID_STATUSES = [value for value, _ in Ticket.STATUS_CHOICES]
RESOLVED_STATUSES = ('resolved', 'closed')
TICKET_ID_ATTEMPTS = 5
# Statuses where the resolution clock is not running
PAUSED_STATUSES = ('suspended', 'waiting_customer', 'pending_deployment')
# Warn once the remaining hours drop under max(floor, target * share)
DUE_SOON_THRESHOLDS = {
    'critical': (1, 0.25),
    'high': (2, 0.20),
    'medium': (3, 0.15),
    'low': (4, 0.10),
}


def generate_ticket_id(now=None):
    """Next ``TKT-YYYY-NNNN`` number for the current year"""
    year = (now or timezone.now()).year
    prefix = f"TKT-{year}-"
    highest = 0
    for ticket_id in Ticket.objects.filter(ticket_id__startswith=prefix).values_list('ticket_id', flat=True):
        try:
            highest = max(highest, int(ticket_id[len(prefix):]))
        except ValueError:
            continue
    return f"{prefix}{highest + 1:04d}"


def create_ticket(**fields):
    """Create a ticket with the next free number, retrying when a concurrent create took it"""
    for attempt in range(1, TICKET_ID_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                ticket = Ticket.objects.create(ticket_id=generate_ticket_id(), **fields)
            break
        except IntegrityError:
            if attempt == TICKET_ID_ATTEMPTS:
                raise
            logger.warning(f"Ticket number collision, retrying ({attempt}/{TICKET_ID_ATTEMPTS})")
    logger.info(f"Ticket {ticket.ticket_id} created (company {ticket.company_id}, department {ticket.department_id})")
    notifications.notify_new_ticket(ticket)
    return ticket


def change_status(ticket, new_status, user=None):
    """
    Move ``ticket`` to ``new_status`` and record the transition.

    Reaching ``resolved`` stamps ``resolved_at``, opens the satisfaction
    survey and notifies the requester. Leaving it clears ``resolved_at``.
    Reaching ``escalated`` sends the escalation notice instead of the
    generic status change.
    Returns the history row, or None when the status did not change.
    """
    if new_status not in VALID_STATUSES:
        raise ServiceError(f"Status inválido: {new_status}")
    old_status = ticket.status
    if new_status == old_status:
        return None

    with transaction.atomic():
        ticket.status = new_status
        if new_status == 'resolved':
            ticket.resolved_at = timezone.now()
        elif new_status not in RESOLVED_STATUSES:
            ticket.resolved_at = None
        ticket.save(update_fields=['status', 'resolved_at', 'updated_at'])
        history = TicketStatusHistory.objects.create(
            ticket=ticket, old_status=old_status, new_status=new_status, changed_by=user
        )
        if new_status == 'resolved':
            create_survey_for_ticket(ticket)

    logger.info(f"Ticket {ticket.ticket_id} status {old_status} -> {new_status}")
    if new_status == 'resolved':
        notifications.notify_ticket_resolved(ticket, user)
    elif new_status == 'escalated':
        notifications.notify_ticket_escalated(ticket, user)
    else:
        notifications.notify_status_changed(ticket, history)
    return history


def assign_ticket(ticket, official, user=None):
    if ticket.assigned_to_id == (official.id if official else None):
        return False
    ticket.assigned_to = official
    ticket.save(update_fields=['assigned_to', 'updated_at'])
    logger.info(f"Ticket {ticket.ticket_id} assigned to {official.name if official else 'nobody'}")
    if official is not None:
        notifications.notify_ticket_assigned(ticket, user)
    return True


def add_reply(ticket, user, message, is_internal=False, new_status=None):
    """
    Add a reply, stamping ``first_response_at`` on the first staff answer.

    ``new_status`` goes through the regular status transition.
    """
    with transaction.atomic():
        reply = TicketReply.objects.create(ticket=ticket, user=user, message=message, is_internal=is_internal)
        if user is not None and user.role != 'customer' and ticket.first_response_at is None:
            ticket.first_response_at = reply.created_at
            ticket.save(update_fields=['first_response_at', 'updated_at'])

    if new_status:
        change_status(ticket, new_status, user)
    if not is_internal:
        notifications.notify_ticket_reply(reply)
    return reply


def resolution_deadline(ticket):
    hours = settings.TICKETWISE_RESOLUTION_HOURS.get(ticket.priority)
    if hours is None:
        return None
    return ticket.created_at + timedelta(hours=hours)


def check_tickets_due_soon(now=None):
    """
    Warn about open tickets close to their resolution deadline and flag the
    ones past it.

    Each ticket gets at most one due-soon warning. A ticket past its deadline
    is marked ``sla_breached`` and escalated by email once. Returns a
    ``(warned, breached)`` tuple.
    """
    now = now or timezone.now()
    tickets = Ticket.objects.select_related('department', 'company', 'customer', 'assigned_to__user').filter(
        sla_breached=False
    ).exclude(status__in=RESOLVED_STATUSES + PAUSED_STATUSES)

    warned = breached = 0
    for ticket in tickets:
        deadline = resolution_deadline(ticket)
        if deadline is None:
            continue
        hours_left = (deadline - now).total_seconds() / 3600

        if hours_left <= 0:
            Ticket.objects.filter(pk=ticket.pk).update(sla_breached=True)
            ticket.sla_breached = True
            logger.warning(f"Ticket {ticket.ticket_id} is past its resolution deadline")
            notifications.notify_ticket_escalated(
                ticket, reason='O prazo de resolução deste ticket foi ultrapassado.'
            )
            breached += 1
            continue

        floor, share = DUE_SOON_THRESHOLDS.get(ticket.priority, (1, 0.25))
        target = settings.TICKETWISE_RESOLUTION_HOURS[ticket.priority]
        if ticket.due_soon_notified or hours_left > max(floor, target * share):
            continue
        Ticket.objects.filter(pk=ticket.pk).update(due_soon_notified=True)
        ticket.due_soon_notified = True
        notifications.notify_ticket_due_soon(ticket, math.ceil(hours_left))
        warned += 1

    if warned or breached:
        logger.info(f"Due date check: {warned} tickets warned, {breached} past deadline")
    return warned, breached
