"""
Domain exceptions for transactions services.

These exceptions represent business rule violations raised by the
transaction engine. They carry no HTTP concerns; the API layer maps them
to responses (see ``apps.transactions.exceptions``).

Exception Hierarchy:
    TransactionsServiceError (base)
    ├── TransactionValidationError
    ├── TransactionNotFoundError
    ├── InvalidTransitionError
    ├── TransactionConflictError
    └── StoreTimeoutError

Every exception exposes a stable ``code`` and a human-readable message,
so the client can always show something in its alert dialog:

    try:
        transition_status(transaction_id=tx.id, user=user, new_status='PAID')
    except TransactionsServiceError as e:
        print(e.code, str(e))
"""


class TransactionsServiceError(Exception):
    """Base exception for all transactions service errors."""

    code = 'transactions_error'
    default_message = 'Transaction operation failed.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)


class TransactionValidationError(TransactionsServiceError):
    """
    Raised when input is malformed or breaks a record invariant.

    Example:
        raise TransactionValidationError("totalInstallments must be between 2 and 60")
    """

    code = 'validation_error'
    default_message = 'Invalid transaction data.'


class TransactionNotFoundError(TransactionsServiceError):
    """Raised when the referenced transaction does not exist for this user."""

    code = 'not_found'
    default_message = 'Transaction not found.'


class InvalidTransitionError(TransactionsServiceError):
    """
    Raised when a status change is not permitted from the current state.

    The caller should re-fetch the transaction and decide what to do.
    """

    code = 'invalid_transition'
    default_message = 'Status change is not allowed.'


class TransactionConflictError(TransactionsServiceError):
    """Raised when the record changed since the caller last read it."""

    code = 'conflict'
    default_message = 'Transaction was modified by another request. Reload and try again.'


class StoreTimeoutError(TransactionsServiceError):
    """Raised when a store operation exceeds its time bound."""

    code = 'timeout'
    default_message = 'The store did not respond in time. Please try again.'
