"""
Role hierarchy helpers shared by people, customer and inventory screens.

A user may only hand out roles at or below their own level. Support staff
can only register requesters.
"""

ROLE_LABELS = {
    'admin': 'Administrador',
    'support': 'Suporte',
    'customer': 'Solicitante',
    'integration_bot': 'Bot de Integração',
    'quality': 'Qualidade',
    'triage': 'Triagem',
    'company_admin': 'Administrador da Empresa',
    'viewer': 'Visualizador',
    'supervisor': 'Supervisor',
    'manager': 'Gerente',
}

ALL_ROLES = list(ROLE_LABELS.keys())

STAFF_ROLES = [role for role in ALL_ROLES if role != 'customer']
MANAGEMENT_ROLES = ['admin', 'company_admin', 'manager', 'supervisor']
AI_ROLES = ['admin', 'company_admin', 'manager', 'supervisor', 'support']
INVENTORY_MANAGER_ROLES = ['admin', 'company_admin', 'manager', 'supervisor', 'support']
INVENTORY_APPROVER_ROLES = ['admin', 'company_admin', 'manager', 'supervisor']
COMPANY_SETTINGS_ROLES = ['admin', 'company_admin']

ROLE_HIERARCHY = {
    'admin': ['customer', 'support', 'supervisor', 'manager', 'company_admin', 'admin', 'viewer'],
    'company_admin': ['customer', 'support', 'supervisor', 'manager', 'company_admin', 'viewer'],
    'manager': ['customer', 'support', 'supervisor', 'viewer'],
    'supervisor': ['customer', 'support', 'viewer'],
    'support': ['customer'],
}


def allowed_roles_for(actor_role):
    """Roles an actor with ``actor_role`` may assign to other people"""
    return list(ROLE_HIERARCHY.get(actor_role, []))


def can_assign_role(actor_role, target_role):
    return target_role in ROLE_HIERARCHY.get(actor_role, [])


def can_only_create_customer(actor_role):
    return actor_role == 'support'


def resolve_role(is_requester, is_official, provided_role=None):
    """
    Compute the role of a person from the profiles they carry.

    An official profile always means support staff, a requester-only person
    is a customer, and a person with neither keeps the provided role.
    """
    if is_official:
        return 'support'
    if is_requester:
        return 'customer'
    return provided_role or 'viewer'


def translate_role(role):
    return ROLE_LABELS.get(role, role)


def is_admin(user):
    return bool(user and user.is_authenticated and user.role == 'admin')


def has_any_role(user, roles):
    return bool(user and user.is_authenticated and user.role in roles)


def can_see_company_selector(user):
    """Company pickers and company filters are admin-only fields"""
    return is_admin(user)


def scoped_company_id(user, requested_company_id=None):
    """
    Company a request is confined to.

    Admins may look at any company (or all of them when nothing was
    requested). Everyone else is pinned to their own company.
    """
    if is_admin(user):
        if requested_company_id in (None, ''):
            return None
        try:
            return int(requested_company_id)
        except (TypeError, ValueError):
            return None
    return user.company_id


def filter_by_company(queryset, user, requested_company_id=None, field='company_id'):
    """Apply company scoping to a queryset"""
    company_id = scoped_company_id(user, requested_company_id)
    if company_id is None:
        if is_admin(user):
            return queryset
        return queryset.filter(**{f'{field}__isnull': True})
    return queryset.filter(**{field: company_id})


def user_can_access_company(user, company_id):
    if is_admin(user):
        return True
    return company_id is not None and company_id == user.company_id
