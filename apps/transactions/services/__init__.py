"""
Transactions services - Business logic layer.

This package contains the transaction engine used by the API:
- Transaction store (create, get, strict update, delete with cascade, queries)
- Installment expansion
- Recurrence (next occurrence pointer, materialization)
- Status machine (transitions and their side effects)
- Aggregation and planner windows
"""

# Store
from .transaction_store import (
    PATCHABLE_FIELDS,
    transaction_kind,
    validate_transaction,
    create_transaction,
    get_transaction,
    update_transaction,
    delete_transaction,
    delete_installment_purchase,
    get_installment_anchor,
    get_installments,
    query_transactions,
)

# Installments
from .installment_expansion import (
    create_installment_purchase,
    installment_schedule,
)

# Recurrence
from .recurrence import (
    advance,
    create_recurring_transaction,
    materialize_occurrence,
    materialize_due,
)

# Status machine
from .status_machine import (
    allowed_transitions,
    transition_status,
)

# Aggregation
from .aggregation import (
    sum_by_type,
    progress,
    total_amount,
    remaining_installments,
    summarize,
)

# Planner
from .planner import (
    planner_window,
    current_window,
    resolve_window,
)

# Domain Exceptions
from .exceptions import (
    TransactionsServiceError,
    TransactionValidationError,
    TransactionNotFoundError,
    InvalidTransitionError,
    TransactionConflictError,
    StoreTimeoutError,
)

__all__ = [
    # Store
    'PATCHABLE_FIELDS',
    'transaction_kind',
    'validate_transaction',
    'create_transaction',
    'get_transaction',
    'update_transaction',
    'delete_transaction',
    'delete_installment_purchase',
    'get_installment_anchor',
    'get_installments',
    'query_transactions',
    # Installments
    'create_installment_purchase',
    'installment_schedule',
    # Recurrence
    'advance',
    'create_recurring_transaction',
    'materialize_occurrence',
    'materialize_due',
    # Status machine
    'allowed_transitions',
    'transition_status',
    # Aggregation
    'sum_by_type',
    'progress',
    'total_amount',
    'remaining_installments',
    'summarize',
    # Planner
    'planner_window',
    'current_window',
    'resolve_window',
    # Exceptions
    'TransactionsServiceError',
    'TransactionValidationError',
    'TransactionNotFoundError',
    'InvalidTransitionError',
    'TransactionConflictError',
    'StoreTimeoutError',
]
