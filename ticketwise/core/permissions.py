from rest_framework.permissions import BasePermission

from .roles import STAFF_ROLES


class IsAdminRole(BasePermission):
    """Only users with the admin role"""
    message = 'Acesso negado: Requer perfil de Administrador'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role == 'admin')


class IsStaffRole(BasePermission):
    """Anyone except requesters (customer role)"""
    message = 'Acesso negado'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.role in STAFF_ROLES)


def HasAnyRole(*roles):
    """Build a permission class that accepts any of ``roles``"""

    class _HasAnyRole(BasePermission):
        message = 'Acesso negado: perfil sem permissão para esta operação'

        def has_permission(self, request, view):
            user = request.user
            return bool(user and user.is_authenticated and user.role in roles)

    _HasAnyRole.__name__ = f"HasAnyRole({', '.join(roles)})"
    return _HasAnyRole
