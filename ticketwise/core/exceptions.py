"""Domain errors raised by service modules and their API mapping"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('ticketwise.core')


class ServiceError(Exception):
    """Base error for service-layer failures, carries an HTTP status"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class PermissionDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class GoneError(ServiceError):
    status_code = status.HTTP_410_GONE


def api_exception_handler(exc, context):
    """DRF exception handler that also understands ServiceError"""
    if isinstance(exc, ServiceError):
        view = context.get('view')
        logger.info(f"{type(exc).__name__} in {getattr(view, '__name__', view)}: {exc.message}")
        data = {'error': exc.message}
        if exc.details:
            data['details'] = exc.details
        return Response(data, status=exc.status_code)
    return exception_handler(exc, context)
