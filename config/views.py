import logging

from django.db import connection
from django.http import Http404, JsonResponse
from rest_framework import exceptions
from rest_framework.views import exception_handler

from apps.accounts.services import AuthError, UserRegistrationError
from apps.transactions.exceptions import to_api_exception
from apps.transactions.services import TransactionsServiceError

logger = logging.getLogger('apps.api')


def health_check(request):
    """Liveness check; also checks the database connection."""
    with connection.cursor() as cursor:
        cursor.execute('SELECT 1')
    return JsonResponse({'status': 'ok'})


def error_404(request, exception):
    """Custom 404 handler."""
    return JsonResponse({
        'error': 'Not found',
        'code': 'not_found',
        'status': 404
    }, status=404)


def error_500(request):
    """Custom 500 handler."""
    return JsonResponse({
        'error': 'Internal server error',
        'code': 'server_error',
        'status': 500
    }, status=500)


def _first_message(detail):
    """Pick a human-readable message out of a DRF error structure."""
    if isinstance(detail, dict):
        if 'detail' in detail and len(detail) == 1:
            return _first_message(detail['detail'])
        for field, value in detail.items():
            message = _first_message(value)
            if field == 'non_field_errors':
                return message
            return f"{field}: {message}"
        return 'Invalid input.'
    if isinstance(detail, list):
        return _first_message(detail[0]) if detail else 'Invalid input.'
    return str(detail)


def _error_code(exc, status_code):
    if status_code == 401:
        return 'auth_error'
    if isinstance(exc, exceptions.ValidationError):
        return 'validation_error'
    codes = exc.get_codes()
    return codes if isinstance(codes, str) else 'error'


def api_exception_handler(exc, context):
    """
    DRF exception handler producing ``{"error", "code", "status"}`` bodies.

    Domain errors from the services are translated to their HTTP status
    first; serializer errors also keep their per-field messages in
    ``detail``. Anything unexpected is left to Django (500).
    """
    if isinstance(exc, TransactionsServiceError):
        exc = to_api_exception(exc)
    elif isinstance(exc, AuthError):
        exc = exceptions.AuthenticationFailed(detail=str(exc), code=exc.code)
    elif isinstance(exc, UserRegistrationError):
        exc = exceptions.ValidationError({'email': [str(exc)]}, code=exc.code)
    elif isinstance(exc, Http404):
        exc = exceptions.NotFound()

    response = exception_handler(exc, context)
    if response is None:
        return None

    body = {
        'error': _first_message(response.data),
        'code': _error_code(exc, response.status_code),
        'status': response.status_code,
    }
    if isinstance(exc, exceptions.ValidationError):
        body['detail'] = response.data

    if response.status_code >= 500:
        logger.error("API error %s: %s", response.status_code, body['error'])

    response.data = body
    return response
