"""
Inventory movements and their effect on products.

Sensitive movements (withdrawal, transfer, write-off) wait for an approver
unless the caller says otherwise. Every other movement is approved when it
is registered and changes the product right away.
"""
import logging

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from ticketwise.core.exceptions import ServiceError
from .models import InventoryProduct, InventoryMovement, UserInventoryAssignment

logger = logging.getLogger('ticketwise.inventory')

APPROVAL_REQUIRED_TYPES = ('withdrawal', 'transfer', 'write_off')
AVAILABILITY_REQUIRED_TYPES = ('withdrawal', 'reservation')

# Status a product takes after an approved movement; None keeps the current one
STATUS_AFTER_MOVEMENT = {
    'entry': 'available',
    'withdrawal': 'in_use',
    'return': 'available',
    'transfer': None,
    'maintenance': 'maintenance',
    'reservation': 'reserved',
    'write_off': 'written_off',
}
LOCATION_MOVEMENTS = ('entry', 'return', 'transfer', 'withdrawal')


def requires_approval(movement_type, require_approval=None):
    if isinstance(require_approval, bool):
        return require_approval
    return movement_type in APPROVAL_REQUIRED_TYPES


def _identifier_label(product):
    if product.service_tag:
        return f"Service Tag {product.service_tag}"
    if product.serial_number:
        return f"Número de Série {product.serial_number}"
    if product.asset_number:
        return f"Patrimônio {product.asset_number}"
    return product.name


def validate_availability(product, movement_type, responsible=None):
    """Raise ServiceError when ``product`` can not be withdrawn or reserved"""
    if movement_type not in AVAILABILITY_REQUIRED_TYPES:
        return
    if product.status != 'available':
        raise ServiceError(
            f"Produto {_identifier_label(product)} não está disponível (status atual: {product.get_status_display()})"
        )
    if movement_type != 'withdrawal':
        return
    open_assignment = product.assignments.filter(returned_at__isnull=True).first()
    if open_assignment is not None and (responsible is None or open_assignment.user_id != responsible.id):
        raise ServiceError(
            f"Este equipamento ({_identifier_label(product)}) já está alocado para outro usuário. "
            f"Registre a devolução antes de entregá-lo novamente."
        )


def register_movement(product, user, data):
    """
    Create a movement for ``product`` from validated serializer data.

    Returns the movement. Approved movements have already changed the product.
    """
    data = dict(data)
    require_approval = data.pop('require_approval', None)
    expected_return_date = data.pop('expected_return_date', None)
    data.pop('product', None)
    movement_type = data['movement_type']

    if product.is_deleted or product.status == 'written_off':
        raise ServiceError('Produto baixado ou removido não pode ser movimentado')
    if movement_type == 'withdrawal' and data.get('responsible') is None:
        raise ServiceError('Responsável é obrigatório para retiradas', details={'responsible_id': ['Campo obrigatório']})
    validate_availability(product, movement_type, data.get('responsible'))

    pending = requires_approval(movement_type, require_approval)
    from_location = data.pop('from_location', None) or product.location
    with transaction.atomic():
        movement = InventoryMovement.objects.create(
            product=product,
            company_id=product.company_id,
            created_by=user,
            from_location=from_location,
            approval_status='pending' if pending else 'approved',
            **data
        )
        if not pending:
            apply_movement_effects(movement, user, expected_return_date)

    logger.info(f"Movement {movement.id} ({movement_type}) registered for product {product.id} as {movement.approval_status}")
    return movement


def apply_movement_effects(movement, user=None, expected_return_date=None):
    """Update product status, location and assignments for an approved movement"""
    product = movement.product
    movement_type = movement.movement_type
    update_fields = ['updated_by', 'updated_at']

    new_status = STATUS_AFTER_MOVEMENT.get(movement_type)
    if new_status is not None:
        product.status = new_status
        update_fields.append('status')
    if movement_type in LOCATION_MOVEMENTS and movement.to_location_id:
        product.location_id = movement.to_location_id
        update_fields.append('location')
    product.updated_by = user
    product.save(update_fields=update_fields)

    if movement_type == 'withdrawal' and movement.responsible_id:
        UserInventoryAssignment.objects.create(
            product=product,
            user_id=movement.responsible_id,
            movement=movement,
            company_id=movement.company_id,
            expected_return_date=expected_return_date,
            notes=movement.notes,
        )
    elif movement_type == 'return':
        close_open_assignment(product, movement.responsible_id)


def close_open_assignment(product, responsible_id=None):
    assignments = product.assignments.filter(returned_at__isnull=True)
    if responsible_id:
        assignments = assignments.filter(user_id=responsible_id)
    assignment = assignments.order_by('-assigned_at').first()
    if assignment is None:
        return None
    assignment.returned_at = timezone.now()
    assignment.save(update_fields=['returned_at'])
    return assignment


def _ensure_pending(movement):
    if movement.approval_status != 'pending':
        raise ServiceError('Movimentação já avaliada')


def approve_movement(movement, approver, notes=''):
    _ensure_pending(movement)
    validate_availability(movement.product, movement.movement_type, movement.responsible)
    with transaction.atomic():
        movement.approval_status = 'approved'
        movement.approved_by = approver
        movement.approval_date = timezone.now()
        movement.approval_notes = notes or ''
        movement.save(update_fields=['approval_status', 'approved_by', 'approval_date', 'approval_notes'])
        apply_movement_effects(movement, approver)
    logger.info(f"Movement {movement.id} approved by {approver.username}")
    return movement


def reject_movement(movement, approver, notes=''):
    _ensure_pending(movement)
    movement.approval_status = 'rejected'
    movement.approved_by = approver
    movement.approval_date = timezone.now()
    movement.approval_notes = notes or ''
    movement.save(update_fields=['approval_status', 'approved_by', 'approval_date', 'approval_notes'])
    logger.info(f"Movement {movement.id} rejected by {approver.username}")
    return movement


def build_dashboard(products, movements, assignments):
    """Counts shown on the inventory home screen"""
    by_status = {value: 0 for value, _ in InventoryProduct.STATUS_CHOICES}
    for row in products.values('status').annotate(count=Count('id')):
        by_status[row['status']] = row['count']

    return {
        'total': sum(by_status.values()),
        'by_status': by_status,
        'pending_approvals': movements.filter(approval_status='pending').count(),
        'open_assignments': assignments.filter(returned_at__isnull=True).count(),
    }
