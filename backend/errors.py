"""
Error taxonomy shared by every app, plus the DRF exception handler that
renders all failures as ``{"success": false, "message", "code", "errors"}``.
"""
import logging
from collections.abc import Mapping

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CourseDigError(exceptions.APIException):
    """Base class for errors that carry a machine-readable code"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Something went wrong.'
    default_code = 'SERVER_ERROR'

    def __init__(self, message=None, code=None, errors=None):
        self.code = code or self.default_code
        self.errors = errors
        super().__init__(detail=message or self.default_detail, code=self.code)

    @property
    def message(self):
        return str(self.detail)


class Unauthenticated(CourseDigError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Authentication required.'
    default_code = 'UNAUTHENTICATED'


class Forbidden(CourseDigError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'FORBIDDEN'


class ValidationFailed(CourseDigError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'VALIDATION_FAILED'


class NotFound(CourseDigError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'NOT_FOUND'


class Conflict(CourseDigError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This resource already exists.'
    default_code = 'CONFLICT'


class UpstreamUnavailable(CourseDigError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'A downstream service is unavailable. Please try again later.'
    default_code = 'UPSTREAM_UNAVAILABLE'


class StorageUnavailable(CourseDigError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'We could not save your request. Please try again later.'
    default_code = 'STORAGE_UNAVAILABLE'


def first_error_message(errors):
    """Flatten a DRF error structure to one human-readable line"""
    if isinstance(errors, dict):
        if 'detail' in errors:
            return first_error_message(errors['detail'])
        for field, value in errors.items():
            message = first_error_message(value)
            if field in ('non_field_errors', '__all__'):
                return message
            return f"{field}: {message}"
    if isinstance(errors, (list, tuple)):
        for item in errors:
            message = first_error_message(item)
            if message:
                return message
        return ''
    return str(errors)


def validation_failed_from(errors):
    return ValidationFailed(message=first_error_message(errors) or None, errors=errors)


def json_object(data):
    """Request body as a mapping; a JSON array or scalar body is rejected"""
    if isinstance(data, Mapping):
        return data
    raise ValidationFailed('Request body must be a JSON object.', code='INVALID_BODY')


def _normalise(exc):
    if isinstance(exc, DatabaseError):
        logger.exception(f"Database error while handling request: {exc}")
        return StorageUnavailable()
    if isinstance(exc, Http404):
        return NotFound()
    if isinstance(exc, DjangoPermissionDenied):
        return Forbidden()
    if isinstance(exc, DjangoValidationError):
        errors = exc.message_dict if hasattr(exc, 'error_dict') else {'non_field_errors': exc.messages}
        return validation_failed_from(errors)
    if isinstance(exc, exceptions.ValidationError):
        return validation_failed_from(exc.detail)
    return exc


def api_exception_handler(exc, context):
    """
    DRF exception handler.

    Validation and authorization errors are returned verbatim; storage errors
    are logged and replaced with a generic message.
    """
    exc = _normalise(exc)
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, CourseDigError):
        code = exc.code
        message = exc.message
        errors = exc.errors
    elif isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        code = 'UNAUTHENTICATED'
        message = first_error_message(exc.detail) or Unauthenticated.default_detail
        errors = None
    elif isinstance(exc, exceptions.PermissionDenied):
        code = 'FORBIDDEN'
        message = first_error_message(exc.detail) or Forbidden.default_detail
        errors = None
    elif isinstance(exc, exceptions.APIException):
        code = str(exc.default_code).upper()
        message = first_error_message(exc.detail)
        errors = None
    else:
        return response

    body = {'success': False, 'message': message, 'code': code}
    if errors:
        body['errors'] = errors
    response.data = body
    return response
