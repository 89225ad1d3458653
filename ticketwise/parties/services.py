"""
Customer provisioning and CSV bulk import.

The import file uses the header ``email;name;phone;password;active;ad_user``.
Rows whose email already belongs to a user or customer are skipped, rows with
missing data are reported back with their line number.
"""
import csv
import io
import logging
import secrets

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction

from ticketwise.core.cache_signals import suspend_cache_signals
from ticketwise.core.cache_utils import invalidate_namespace, CUSTOMERS_NAMESPACE, REPORTS_NAMESPACE
from ticketwise.core.utils import parse_bool
from .models import Customer

logger = logging.getLogger('ticketwise.parties')
User = get_user_model()

IMPORT_HEADERS = ['email', 'name', 'phone', 'password', 'active', 'ad_user']
IMPORT_EXAMPLE_ROW = ['exemplo@empresa.com', 'Nome do Usuario', '(11) 99999-9999', '123Mudar', 'true', 'false']
MIN_PASSWORD_LENGTH = 6


def build_import_template():
    """CSV template offered for download on the import screen"""
    return '\n'.join([';'.join(IMPORT_HEADERS), ';'.join(IMPORT_EXAMPLE_ROW)]) + '\n'


def create_customer_user(email, name, password, company_id=None, phone=None, is_active=True, ad_user=False,
                         must_change_password=False):
    """Create the login of a requester. Username is the email."""
    user = User(
        username=email,
        email=email,
        name=name,
        role='customer',
        company_id=company_id,
        phone=phone or None,
        is_active=is_active,
        ad_user=ad_user,
        must_change_password=must_change_password,
    )
    user.set_password(password)
    user.save()
    return user


def _read_rows(content):
    """Sniff ';' or ',' from the header line and yield dict rows"""
    if isinstance(content, bytes):
        content = content.decode('utf-8-sig')
    content = content.lstrip('\ufeff')
    first_line = content.splitlines()[0] if content.strip() else ''
    delimiter = ';' if first_line.count(';') >= first_line.count(',') else ','
    reader = csv.DictReader(io.StringIO(content), delimiter=delimiter)
    if reader.fieldnames:
        reader.fieldnames = [(name or '').strip().lower() for name in reader.fieldnames]
    return reader


def import_customers(content, company_id=None):
    """
    Import requesters from CSV text or bytes.

    Returns ``{success, imported, skipped, total, errors}`` where every error
    is ``{row, email, error}`` and ``row`` counts the header as row 1.
    """
    reader = _read_rows(content)
    fieldnames = reader.fieldnames or []
    missing_headers = [h for h in ('email', 'name') if h not in fieldnames]
    if missing_headers:
        return {
            'success': 0, 'imported': 0, 'skipped': 0, 'total': 0,
            'errors': [{'row': 1, 'email': '', 'error': f"Colunas obrigatórias ausentes: {', '.join(missing_headers)}"}],
        }

    imported = 0
    skipped = 0
    total = 0
    errors = []
    seen_emails = set()

    with suspend_cache_signals():
        for index, row in enumerate(reader, start=2):
            total += 1
            email = (row.get('email') or '').strip().lower()
            name = (row.get('name') or '').strip()

            if not email or not name:
                errors.append({'row': index, 'email': email, 'error': 'Email e nome são obrigatórios'})
                continue

            try:
                validate_email(email)
            except ValidationError:
                errors.append({'row': index, 'email': email, 'error': 'Email inválido'})
                continue

            if email in seen_emails or User.objects.filter(email__iexact=email).exists() \
                    or Customer.objects.filter(email__iexact=email).exists():
                skipped += 1
                continue
            seen_emails.add(email)

            password = (row.get('password') or '').strip()
            generated_password = not password
            if generated_password:
                password = secrets.token_urlsafe(9)
            elif len(password) < MIN_PASSWORD_LENGTH:
                errors.append({'row': index, 'email': email, 'error': f'Senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres'})
                continue

            phone = (row.get('phone') or '').strip() or None
            is_active = parse_bool(row.get('active'), default=True)
            ad_user = parse_bool(row.get('ad_user'), default=False)

            try:
                with transaction.atomic():
                    user = create_customer_user(
                        email, name, password,
                        company_id=company_id, phone=phone, is_active=is_active, ad_user=ad_user,
                        must_change_password=generated_password,
                    )
                    Customer.objects.create(
                        name=name, email=email, phone=phone,
                        company_id=company_id, user=user, is_active=is_active,
                    )
                imported += 1
            except Exception as e:
                logger.error(f"Bulk import failed on row {index} ({email}): {str(e)}")
                errors.append({'row': index, 'email': email, 'error': str(e)})

    invalidate_namespace(CUSTOMERS_NAMESPACE)
    invalidate_namespace(REPORTS_NAMESPACE)
    logger.info(f"Customer import finished for company {company_id}: {imported} imported, {skipped} skipped, {len(errors)} errors")

    return {
        'success': imported,
        'imported': imported,
        'skipped': skipped,
        'total': total,
        'errors': errors,
    }
