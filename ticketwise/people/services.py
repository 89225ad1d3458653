"""
Unified person management.

A person is a ``core.User`` that may carry a requester profile
(``parties.Customer``) and an official profile (``organization.Official``).
The functions here keep the three rows in step when a person is created or
edited from the people screen.
"""
import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction

from ticketwise.core.exceptions import PermissionDeniedError
from ticketwise.core.roles import allowed_roles_for, resolve_role, is_admin
from ticketwise.notifications.services import notify_user_created
from ticketwise.organization.models import Official
from ticketwise.organization.services import resolve_departments, set_official_departments
from ticketwise.parties.models import Customer

logger = logging.getLogger('ticketwise.people')
User = get_user_model()

ROLE_DENIED_MESSAGE = 'Você não tem permissão para atribuir esse perfil. Só é possível atribuir cargos da sua hierarquia.'


def get_requester(user):
    try:
        return user.customer
    except ObjectDoesNotExist:
        return None


def get_official(user):
    try:
        return user.official
    except ObjectDoesNotExist:
        return None


def _check_role(actor, role):
    if role not in allowed_roles_for(actor.role):
        raise PermissionDeniedError(ROLE_DENIED_MESSAGE)


def _company_for(actor, requested_company_id, fallback=None):
    if is_admin(actor):
        return requested_company_id if requested_company_id is not None else fallback
    return actor.company_id


def _link_requester(user, data, company_id):
    """Link the unclaimed customer with the person's email, or create one"""
    customer = get_requester(user) or Customer.objects.filter(email__iexact=user.email, user__isnull=True).first()
    if customer is None:
        customer = Customer(email=user.email)

    customer.user = user
    customer.name = user.name
    customer.email = user.email
    customer.is_active = True
    if 'phone' in data:
        customer.phone = data['phone'] or None
    if 'company_name' in data:
        customer.company_name = data['company_name'] or ''
    if 'sector_id' in data:
        customer.sector_id = data['sector_id']
    if company_id is not None or customer.company_id is None:
        customer.company_id = company_id
    customer.save()
    return customer


def _link_official(user, data, company_id):
    """Create, link or reactivate the official profile of a person"""
    official = get_official(user) or Official.objects.filter(email__iexact=user.email).first()
    created = official is None
    if created:
        official = Official(email=user.email)

    official.user = user
    official.name = user.name
    official.email = user.email
    official.is_active = True
    if company_id is not None or official.company_id is None:
        official.company_id = company_id
    if 'supervisor_id' in data:
        official.supervisor_id = data['supervisor_id']
    if 'manager_id' in data:
        official.manager_id = data['manager_id']
    official.save()

    if 'departments' in data:
        set_official_departments(official, resolve_departments(data['departments'], official.company_id))
    return official


def create_person(actor, data):
    """
    Create a user together with the requested profiles.

    ``data`` is the validated payload of PersonWriteSerializer. Raises
    PermissionDeniedError when the resulting role is outside the actor's
    hierarchy and ServiceError for unknown departments.
    An active account gets the user_created email.
    """
    is_requester = data.get('is_requester', False)
    is_official = data.get('is_official', False)
    role = resolve_role(is_requester, is_official, data.get('role'))
    _check_role(actor, role)

    company_id = _company_for(actor, data.get('company_id'))
    # Resolve up front so an unknown department aborts before anything is written
    if is_official and data.get('departments'):
        resolve_departments(data['departments'], company_id)

    with transaction.atomic():
        user = User(
            username=data.get('username') or data['email'],
            email=data['email'],
            name=data['name'],
            role=role,
            company_id=company_id,
            phone=data.get('phone') or None,
            is_active=data.get('active', True),
        )
        user.set_password(data['password'])
        user.save()

        if is_requester:
            _link_requester(user, data, company_id)
        if is_official:
            _link_official(user, data, company_id)

    logger.info(f"Person created: {user.username} role={role} company={company_id} by {actor.username}")
    if user.is_active:
        notify_user_created(user)
    return user


def update_person(actor, user, data):
    """
    Apply a people-screen edit to ``user``.

    Profile flags that are not sent keep their current state. Turning the
    requester flag off unlinks the customer, turning the official flag off
    deactivates the official.
    """
    if not is_admin(actor):
        if user.company_id != actor.company_id:
            raise PermissionDeniedError('Acesso negado')
        if user.pk != actor.pk and user.role not in allowed_roles_for(actor.role):
            raise PermissionDeniedError(ROLE_DENIED_MESSAGE)

    requester = get_requester(user)
    official = get_official(user)
    was_requester = requester is not None
    was_official = official is not None and official.is_active

    is_requester = data.get('is_requester', was_requester)
    is_official = data.get('is_official', was_official)

    profiles_changed = 'is_requester' in data or 'is_official' in data
    if profiles_changed or 'role' in data:
        role = resolve_role(is_requester, is_official, data.get('role') or user.role)
        if role != user.role:
            _check_role(actor, role)
    else:
        role = user.role

    company_id = _company_for(actor, data.get('company_id'), fallback=user.company_id)
    if is_official and data.get('departments'):
        resolve_departments(data['departments'], company_id)

    with transaction.atomic():
        for field in ('name', 'email', 'username', 'phone'):
            if field in data:
                setattr(user, field, data[field])
        if 'active' in data:
            user.is_active = data['active']
        if data.get('password'):
            user.set_password(data['password'])
        user.role = role
        user.company_id = company_id
        user.save()

        if is_requester:
            _link_requester(user, data, company_id)
        elif was_requester:
            requester.user = None
            requester.save(update_fields=['user', 'updated_at'])

        if is_official:
            _link_official(user, data, company_id)
        elif official is not None and official.is_active:
            official.is_active = False
            official.save(update_fields=['is_active', 'updated_at'])

    logger.info(f"Person {user.id} updated by {actor.username} (requester={is_requester}, official={is_official})")
    return user
