"""
HTTP exceptions for the transactions API.

Domain errors raised by ``apps.transactions.services`` are translated to
these ``APIException`` subclasses by ``to_api_exception``, which the
project-wide DRF exception handler calls.
"""
from rest_framework.exceptions import APIException

from .services.exceptions import (
    TransactionsServiceError,
    TransactionValidationError,
    TransactionNotFoundError,
    InvalidTransitionError,
    TransactionConflictError,
    StoreTimeoutError,
)


class TransactionValidationFailed(APIException):
    """Malformed transaction input."""
    status_code = 400
    default_detail = 'Invalid transaction data.'
    default_code = 'validation_error'


class TransactionNotFound(APIException):
    """Transaction not found."""
    status_code = 404
    default_detail = 'Transaction not found.'
    default_code = 'not_found'


class TransitionNotAllowed(APIException):
    """Status change not permitted from the current state."""
    status_code = 409
    default_detail = 'Status change is not allowed.'
    default_code = 'invalid_transition'


class TransactionConflict(APIException):
    """Stale update detected."""
    status_code = 409
    default_detail = 'Transaction was modified by another request.'
    default_code = 'conflict'


class StoreUnavailable(APIException):
    """Store operation timed out."""
    status_code = 503
    default_detail = 'The store did not respond in time.'
    default_code = 'timeout'


_API_EXCEPTIONS = {
    TransactionValidationError: TransactionValidationFailed,
    TransactionNotFoundError: TransactionNotFound,
    InvalidTransitionError: TransitionNotAllowed,
    TransactionConflictError: TransactionConflict,
    StoreTimeoutError: StoreUnavailable,
}


def to_api_exception(exc: TransactionsServiceError) -> APIException:
    """Return the HTTP exception matching a domain error, keeping its message."""
    for domain_class, api_class in _API_EXCEPTIONS.items():
        if isinstance(exc, domain_class):
            return api_class(detail=str(exc), code=exc.code)
    return TransactionValidationFailed(detail=str(exc), code=exc.code)
