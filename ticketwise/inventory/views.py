import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404

from ticketwise.core.cache_utils import (
    get_cached, set_cached, INVENTORY_DASHBOARD_NAMESPACE, INVENTORY_DASHBOARD_CACHE_TTL
)
from ticketwise.core.exports import csv_response, excel_response, EXPORT_FORMATS
from ticketwise.core.permissions import IsStaffRole, HasAnyRole
from ticketwise.core.roles import (
    INVENTORY_MANAGER_ROLES, INVENTORY_APPROVER_ROLES, filter_by_company, scoped_company_id,
    user_can_access_company
)
from ticketwise.core.utils import create_audit_log, paginate, parse_bool
from .filters import InventoryProductFilter, InventoryMovementFilter
from .models import (
    ProductCategory, ProductType, InventoryLocation, InventoryProduct, InventoryMovement,
    UserInventoryAssignment
)
from .serializers import (
    ProductCategorySerializer, ProductTypeSerializer, InventoryLocationSerializer,
    InventoryProductSerializer, InventoryMovementSerializer, MovementDecisionSerializer,
    UserInventoryAssignmentSerializer
)
from .services import register_movement, approve_movement, reject_movement, build_dashboard

logger = logging.getLogger('ticketwise.inventory')

MANAGE_DENIED = {'error': 'Acesso negado: perfil sem permissão para gerenciar o inventário'}

EXPORT_HEADERS = [
    'ID', 'Nome', 'Tipo', 'Categoria', 'Status', 'Número de Série', 'Service Tag', 'Patrimônio',
    'Departamento', 'Localização', 'Data de Compra', 'Valor de Compra', 'Fornecedor', 'Nota Fiscal',
    'Garantia até', 'Criado em'
]


def _can_manage(user):
    return user.role in INVENTORY_MANAGER_ROLES


def _target_company_id(request):
    """Company new inventory records belong to"""
    return scoped_company_id(request.user, request.data.get('company_id')) or request.user.company_id


def _product_queryset():
    return InventoryProduct.objects.filter(is_deleted=False).select_related(
        'product_type', 'product_type__category', 'department', 'location'
    )


def _visible_products(request):
    return filter_by_company(_product_queryset(), request.user, request.query_params.get('company_id'))


# Products

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_list_create(request):
    """List assets with filters or register a new one"""
    if request.method == 'GET':
        filterset = InventoryProductFilter(request.query_params, queryset=_visible_products(request))
        queryset = filterset.qs.order_by('name', 'id')
        return Response(paginate(queryset, request, lambda objs: InventoryProductSerializer(objs, many=True).data))
    else:
        if not _can_manage(request.user):
            return Response(MANAGE_DENIED, status=status.HTTP_403_FORBIDDEN)
        company_id = _target_company_id(request)
        serializer = InventoryProductSerializer(data=request.data, context={'company_id': company_id})
        if serializer.is_valid():
            product = serializer.save(company_id=company_id, created_by=request.user, updated_by=request.user)
            logger.info(f"Inventory product {product.id} created by {request.user.username}")
            create_audit_log(request, 'create', 'InventoryProduct', product.id, object_name=str(product))
            return Response(InventoryProductSerializer(product).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_detail(request, pk):
    """Retrieve, update or soft delete an asset"""
    product = get_object_or_404(_product_queryset(), pk=pk)
    if not user_can_access_company(request.user, product.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(InventoryProductSerializer(product).data)

    if not _can_manage(request.user):
        return Response(MANAGE_DENIED, status=status.HTTP_403_FORBIDDEN)

    if request.method in ['PUT', 'PATCH']:
        serializer = InventoryProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            product = serializer.save(updated_by=request.user)
            create_audit_log(request, 'update', 'InventoryProduct', product.id, object_name=str(product),
                             changes={k: str(v) for k, v in request.data.items()})
            return Response(InventoryProductSerializer(product).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product.is_deleted = True
        product.updated_by = request.user
        product.save(update_fields=['is_deleted', 'updated_by', 'updated_at'])
        logger.info(f"Inventory product {product.id} deleted by {request.user.username}")
        create_audit_log(request, 'delete', 'InventoryProduct', product.id, object_name=str(product))
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_history(request, pk):
    """Movements and assignments of an asset, newest first"""
    product = get_object_or_404(_product_queryset(), pk=pk)
    if not user_can_access_company(request.user, product.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    movements = product.movements.select_related(
        'responsible', 'approved_by', 'from_location', 'to_location', 'ticket'
    ).order_by('-movement_date', '-id')
    assignments = product.assignments.select_related('user').order_by('-assigned_at', '-id')
    return Response({
        'product': InventoryProductSerializer(product).data,
        'movements': InventoryMovementSerializer(movements, many=True).data,
        'assignments': UserInventoryAssignmentSerializer(assignments, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_export(request):
    """Download the filtered asset list as CSV or XLSX"""
    export_format = request.query_params.get('format', 'csv').lower()
    if export_format not in EXPORT_FORMATS:
        return Response({'error': f'Formato inválido: {export_format}. Use csv ou excel'},
                        status=status.HTTP_400_BAD_REQUEST)

    filterset = InventoryProductFilter(request.query_params, queryset=_visible_products(request))
    rows = [
        [
            product.id, product.name, product.product_type.name,
            product.category.name if product.category else '',
            product.get_status_display(), product.serial_number, product.service_tag, product.asset_number,
            product.department.name if product.department_id else '',
            product.location.name if product.location_id else '',
            product.purchase_date, product.purchase_value, product.supplier_name, product.invoice_number,
            product.warranty_expiry, product.created_at,
        ]
        for product in filterset.qs.order_by('name', 'id')
    ]
    logger.info(f"Inventory export ({export_format}) of {len(rows)} products by {request.user.username}")
    if export_format == 'excel':
        return excel_response('inventario', 'Inventário', EXPORT_HEADERS, rows)
    return csv_response('inventario', EXPORT_HEADERS, rows)


# Catalog

def _catalog_list_create(request, model, serializer_class):
    if request.method == 'GET':
        queryset = filter_by_company(model.objects.all(), request.user, request.query_params.get('company_id'))
        if not parse_bool(request.query_params.get('include_inactive')):
            queryset = queryset.filter(is_active=True)
        return Response(serializer_class(queryset, many=True).data)

    if not _can_manage(request.user):
        return Response(MANAGE_DENIED, status=status.HTTP_403_FORBIDDEN)
    serializer = serializer_class(data=request.data)
    if serializer.is_valid():
        instance = serializer.save(company_id=_target_company_id(request))
        create_audit_log(request, 'create', model.__name__, instance.id, object_name=instance.name)
        return Response(serializer_class(instance).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _catalog_detail(request, model, serializer_class, pk):
    instance = get_object_or_404(model, pk=pk)
    if not user_can_access_company(request.user, instance.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        return Response(serializer_class(instance).data)

    if not _can_manage(request.user):
        return Response(MANAGE_DENIED, status=status.HTTP_403_FORBIDDEN)

    if request.method in ['PUT', 'PATCH']:
        serializer = serializer_class(instance, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            instance = serializer.save()
            create_audit_log(request, 'update', model.__name__, instance.id, object_name=instance.name)
            return Response(serializer_class(instance).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            instance.delete()
        except ProtectedError:
            return Response({'error': 'Item em uso, desative-o em vez de excluir'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request, 'delete', model.__name__, pk, object_name=instance.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_type_list_create(request):
    return _catalog_list_create(request, ProductType, ProductTypeSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_type_detail(request, pk):
    return _catalog_detail(request, ProductType, ProductTypeSerializer, pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_category_list_create(request):
    return _catalog_list_create(request, ProductCategory, ProductCategorySerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def product_category_detail(request, pk):
    return _catalog_detail(request, ProductCategory, ProductCategorySerializer, pk)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def location_list_create(request):
    return _catalog_list_create(request, InventoryLocation, InventoryLocationSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsStaffRole])
def location_detail(request, pk):
    return _catalog_detail(request, InventoryLocation, InventoryLocationSerializer, pk)


# Movements

def _movement_queryset():
    return InventoryMovement.objects.select_related(
        'product', 'responsible', 'approved_by', 'from_location', 'to_location', 'ticket'
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def movement_list_create(request):
    """List movements or register one"""
    if request.method == 'GET':
        queryset = filter_by_company(_movement_queryset(), request.user, request.query_params.get('company_id'))
        queryset = InventoryMovementFilter(request.query_params, queryset=queryset).qs.order_by('-movement_date', '-id')
        return Response(paginate(queryset, request, lambda objs: InventoryMovementSerializer(objs, many=True).data))
    else:
        if not _can_manage(request.user):
            return Response(MANAGE_DENIED, status=status.HTTP_403_FORBIDDEN)
        serializer = InventoryMovementSerializer(data=request.data)
        if serializer.is_valid():
            data = dict(serializer.validated_data)
            product = data['product']
            if product.is_deleted:
                return Response({'product': ['Produto não encontrado']}, status=status.HTTP_400_BAD_REQUEST)
            if not user_can_access_company(request.user, product.company_id):
                return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
            if data.get('require_approval') is None and 'requireApproval' in request.data:
                data['require_approval'] = parse_bool(request.data.get('requireApproval'), None)

            movement = register_movement(product, request.user, data)
            create_audit_log(request, 'create', 'InventoryMovement', movement.id, object_name=str(movement),
                             changes={'movement_type': movement.movement_type,
                                      'approval_status': movement.approval_status})
            return Response(InventoryMovementSerializer(movement).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _decide_movement(request, pk, decide, action):
    movement = get_object_or_404(_movement_queryset(), pk=pk)
    if not user_can_access_company(request.user, movement.company_id):
        return Response({'error': 'Acesso negado'}, status=status.HTTP_403_FORBIDDEN)
    serializer = MovementDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    movement = decide(movement, request.user, serializer.validated_data['notes'])
    create_audit_log(request, action, 'InventoryMovement', movement.id, object_name=str(movement),
                     changes={'approval_status': movement.approval_status,
                              'approval_notes': movement.approval_notes})
    return Response(InventoryMovementSerializer(movement).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*INVENTORY_APPROVER_ROLES)])
def movement_approve(request, pk):
    """Approve a pending movement and apply its effects"""
    return _decide_movement(request, pk, approve_movement, 'movement_approve')


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasAnyRole(*INVENTORY_APPROVER_ROLES)])
def movement_reject(request, pk):
    """Reject a pending movement"""
    return _decide_movement(request, pk, reject_movement, 'movement_reject')


# Assignments and dashboard

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def assignment_list(request):
    params = request.query_params
    queryset = filter_by_company(
        UserInventoryAssignment.objects.select_related('product', 'user'), request.user, params.get('company_id')
    )
    if params.get('user'):
        queryset = queryset.filter(user_id=params['user'])
    if params.get('product'):
        queryset = queryset.filter(product_id=params['product'])
    if parse_bool(params.get('open_only')):
        queryset = queryset.filter(returned_at__isnull=True)
    queryset = queryset.order_by('-assigned_at', '-id')
    return Response(paginate(queryset, request, lambda objs: UserInventoryAssignmentSerializer(objs, many=True).data))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def inventory_dashboard(request):
    """Product counts by status, pending approvals and open assignments"""
    user = request.user
    company_param = request.query_params.get('company_id')
    company_id = scoped_company_id(user, company_param)

    cached_data, cache_key = get_cached(INVENTORY_DASHBOARD_NAMESPACE, company_id, user.role == 'admin')
    if cached_data is None:
        cached_data = build_dashboard(
            filter_by_company(InventoryProduct.objects.filter(is_deleted=False), user, company_param),
            filter_by_company(InventoryMovement.objects.all(), user, company_param),
            filter_by_company(UserInventoryAssignment.objects.all(), user, company_param),
        )
        set_cached(cache_key, cached_data, INVENTORY_DASHBOARD_CACHE_TTL)

    response = Response(cached_data)
    response['Cache-Control'] = f'private, max-age={INVENTORY_DASHBOARD_CACHE_TTL}'
    return response
