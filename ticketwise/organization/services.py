"""Department resolution and official membership helpers"""
import logging

from ticketwise.core.exceptions import ServiceError
from .models import Department, OfficialDepartment

logger = logging.getLogger('ticketwise.organization')


def resolve_departments(values, company_id):
    """
    Map department ids or names to Department rows of ``company_id``.

    Names are matched case-insensitively. Unknown entries raise ServiceError
    listing every value that could not be found.
    """
    departments = []
    missing = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get('id') or value.get('name')
        if value in (None, ''):
            continue
        queryset = Department.objects.filter(company_id=company_id)
        text = str(value).strip()
        if text.isdigit():
            department = queryset.filter(pk=int(text)).first() or queryset.filter(name__iexact=text).first()
        else:
            department = queryset.filter(name__iexact=text).first()
        if department is None:
            missing.append(text)
        elif department not in departments:
            departments.append(department)

    if missing:
        raise ServiceError(f"Departamentos não encontrados: {', '.join(missing)}")
    return departments


def set_official_departments(official, departments):
    """Replace the departments an official belongs to"""
    OfficialDepartment.objects.filter(official=official).exclude(department__in=departments).delete()
    existing = set(
        OfficialDepartment.objects.filter(official=official).values_list('department_id', flat=True)
    )
    for department in departments:
        if department.id not in existing:
            OfficialDepartment.objects.create(official=official, department=department)
    logger.debug(f"Official {official.id} departments set to {[d.name for d in departments]}")
