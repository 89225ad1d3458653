"""Utility functions for audit logging, pagination and query parsing"""
import logging
from datetime import datetime

from django.core.paginator import Paginator

from .models import AuditLog

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

TRUE_VALUES = ('1', 'true', 'yes', 'on', 'sim', 's')
FALSE_VALUES = ('0', 'false', 'no', 'off', 'nao', 'não', 'n')


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, company=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, status_toggle, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., customer name, ticket number)
        company: Company the change belongs to (defaults to the user's company)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        authenticated = audit_user is not None and audit_user.is_authenticated
        if company is None and authenticated:
            company = audit_user.company

        return AuditLog.objects.create(
            user=audit_user if authenticated else None,
            company=company,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_bool(value, default=False):
    """Interpret query-string and CSV flags such as 'true', '1' or 'sim'"""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return default


def parse_positive_int(value, default, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def parse_date(value):
    """Parse a YYYY-MM-DD string; raises ValueError on bad input"""
    return datetime.strptime(value, '%Y-%m-%d').date()


def paginate(queryset, request, serializer_fn, default_limit=DEFAULT_PAGE_SIZE, max_limit=MAX_PAGE_SIZE):
    """
    Paginate a queryset using ``page`` and ``limit`` query params.

    Returns the ``{data, pagination}`` envelope consumed by the admin screens.
    ``serializer_fn`` receives the objects of the current page.
    """
    page_number = parse_positive_int(request.query_params.get('page'), 1)
    limit = parse_positive_int(request.query_params.get('limit'), default_limit, max_limit)

    paginator = Paginator(queryset, limit)
    total = paginator.count
    total_pages = paginator.num_pages if total else 0

    if total and page_number > total_pages:
        objects = []
    else:
        objects = list(paginator.get_page(page_number).object_list) if total else []

    return {
        'data': serializer_fn(objects),
        'pagination': {
            'page': page_number,
            'limit': limit,
            'total': total,
            'totalPages': total_pages,
            'hasNext': page_number < total_pages,
            'hasPrev': page_number > 1,
        }
    }
