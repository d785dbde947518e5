"""
Transaction store service.

Keyed storage of Transaction records: create, lookup, strict patching,
delete (with installment cascade) and date-range queries. Every lookup is
scoped to the owning user; another user's id behaves like a missing id.

Status changes never go through this module; see ``status_machine``.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, Optional
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction, OperationalError
from django.db.models import QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.transactions.models import (
    Transaction,
    TransactionType,
    TransactionStatus,
    RecurrencePattern,
    SETTLED_STATUSES,
)
from . import dates
from .exceptions import (
    TransactionValidationError,
    TransactionNotFoundError,
    TransactionConflictError,
    StoreTimeoutError,
)

logger = logging.getLogger(__name__)


# Record kinds used to pick the editable field set
KIND_INSTALLMENT_ANCHOR = 'INSTALLMENT_ANCHOR'
KIND_INSTALLMENT_CHILD = 'INSTALLMENT_CHILD'

PATCHABLE_FIELDS = {
    TransactionType.INCOME: {'description', 'amount_in_cents', 'date', 'due_date'},
    TransactionType.EXPENSE: {'description', 'amount_in_cents', 'date', 'due_date'},
    TransactionType.TRANSFER: {'description', 'amount_in_cents', 'date', 'due_date'},
    TransactionType.RECURRING: {'description', 'amount_in_cents', 'due_date', 'recurrence_pattern'},
    KIND_INSTALLMENT_ANCHOR: {'description', 'amount_in_cents'},
    KIND_INSTALLMENT_CHILD: {'description', 'date', 'due_date'},
}

_TIMEOUT_MARKERS = (
    'database is locked',
    'statement timeout',
    'lock timeout',
    'canceling statement',
)


@contextmanager
def store_operation(name: str):
    """Translate lock/statement timeouts raised by the database into StoreTimeoutError."""
    try:
        yield
    except OperationalError as exc:
        message = str(exc).lower()
        if any(marker in message for marker in _TIMEOUT_MARKERS):
            logger.error("Store operation %s timed out: %s", name, exc)
            raise StoreTimeoutError() from exc
        raise


def transaction_kind(tx: Transaction) -> str:
    """Tag used to select the patch shape for a stored record."""
    if tx.type == TransactionType.INSTALLMENT:
        return KIND_INSTALLMENT_ANCHOR if tx.installment_number is None else KIND_INSTALLMENT_CHILD
    return tx.type


def validate_transaction(tx: Transaction) -> None:
    """
    Check record invariants before it is written.

    Raises:
        TransactionValidationError: On the first violated invariant.
    """
    if not isinstance(tx.description, str) or not tx.description.strip():
        raise TransactionValidationError("Description is required")

    amount = tx.amount_in_cents
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise TransactionValidationError("amountInCents must be a non-negative integer number of cents")

    if tx.type not in TransactionType.values:
        raise TransactionValidationError(f"Unknown transaction type: {tx.type}")
    if tx.status not in TransactionStatus.values:
        raise TransactionValidationError(f"Unknown transaction status: {tx.status}")

    if not isinstance(tx.date, date):
        raise TransactionValidationError("date is required")
    if tx.due_date is not None and tx.due_date < tx.date:
        raise TransactionValidationError("dueDate cannot be before date")

    if (tx.date_occurred is not None) != (tx.status in SETTLED_STATUSES):
        raise TransactionValidationError("dateOccurred is set only for paid or received transactions")

    _validate_installment_fields(tx)
    _validate_recurrence_fields(tx)


def _validate_installment_fields(tx: Transaction) -> None:
    has_installment_fields = (
        tx.installment_number is not None
        or tx.total_installments is not None
        or tx.parent_transaction_id is not None
    )
    if tx.type != TransactionType.INSTALLMENT:
        if has_installment_fields:
            raise TransactionValidationError("Installment fields are only allowed on INSTALLMENT transactions")
        return

    max_installments = settings.TRANSACTIONS_MAX_INSTALLMENTS
    total = tx.total_installments
    if total is None or not (1 <= total <= max_installments):
        raise TransactionValidationError(f"totalInstallments must be between 1 and {max_installments}")

    if tx.installment_number is None:
        if tx.parent_transaction_id is not None:
            raise TransactionValidationError("An installment purchase cannot have a parent")
        return

    if not (1 <= tx.installment_number <= total):
        raise TransactionValidationError("installmentNumber must be between 1 and totalInstallments")
    if tx.parent_transaction_id is None:
        raise TransactionValidationError("An installment must reference its purchase")
    parent = tx.parent_transaction
    if parent.parent_transaction_id is not None or parent.installment_number is not None:
        raise TransactionValidationError("Installments can only be nested one level deep")


def _validate_recurrence_fields(tx: Transaction) -> None:
    if tx.type != TransactionType.RECURRING:
        if tx.recurrence_pattern or tx.next_occurrence is not None:
            raise TransactionValidationError("Recurrence fields are only allowed on RECURRING transactions")
        return

    if tx.recurring_template_id is not None:
        raise TransactionValidationError("A recurring template cannot be an occurrence of another template")
    if tx.recurrence_pattern not in RecurrencePattern.values:
        raise TransactionValidationError("recurrencePattern must be one of MONTHLY, WEEKLY, YEARLY")
    if tx.next_occurrence is not None and tx.next_occurrence <= tx.date:
        raise TransactionValidationError("nextOccurrence must be after date")


def build_transaction(
    *,
    user: User,
    description: str,
    amount_in_cents: int,
    date: date,
    type: str,
    due_date: Optional[date] = None,
    installment_number: Optional[int] = None,
    total_installments: Optional[int] = None,
    parent_transaction: Optional[Transaction] = None,
    recurrence_pattern: Optional[str] = None,
    next_occurrence: Optional[date] = None,
    recurring_template: Optional[Transaction] = None,
) -> Transaction:
    """Build and validate an unsaved PENDING record."""
    tx = Transaction(
        user=user,
        description=description.strip() if isinstance(description, str) else description,
        amount_in_cents=amount_in_cents,
        date=date,
        due_date=due_date,
        type=type,
        status=TransactionStatus.PENDING,
        installment_number=installment_number,
        total_installments=total_installments,
        parent_transaction=parent_transaction,
        recurrence_pattern=recurrence_pattern,
        next_occurrence=next_occurrence,
        recurring_template=recurring_template,
    )
    validate_transaction(tx)
    return tx


def create_transaction(*, user: User, **fields) -> Transaction:
    """
    Create a single transaction record.

    ``id``, ``status`` (PENDING) and the audit timestamps are assigned here;
    callers never supply them.

    Raises:
        TransactionValidationError: If the record breaks an invariant
        StoreTimeoutError: If the write exceeds the store time bound
    """
    tx = build_transaction(user=user, **fields)
    with store_operation('create'), transaction.atomic():
        tx.save(force_insert=True)
    logger.info("Created transaction %s (%s)", tx.id, tx.type)
    return tx


def _lookup(queryset: QuerySet, transaction_id, user: User) -> Transaction:
    # A malformed id can never match a record
    try:
        return queryset.get(id=transaction_id, user=user)
    except (Transaction.DoesNotExist, DjangoValidationError):
        raise TransactionNotFoundError()


def get_transaction(*, transaction_id: UUID, user: User) -> Transaction:
    """
    Get one of the user's transactions.

    Raises:
        TransactionNotFoundError: If it doesn't exist, belongs to another user
            or ``transaction_id`` is not a valid UUID
    """
    return _lookup(Transaction.objects.all(), transaction_id, user)


def get_for_update(*, transaction_id: UUID, user: User) -> Transaction:
    """Row-locked variant of get_transaction; must run inside an atomic block."""
    return _lookup(Transaction.objects.select_for_update(), transaction_id, user)


def ensure_fresh(tx: Transaction, expected_updated_at: Optional[datetime]) -> None:
    """
    Optimistic concurrency check against the caller's copy of ``updatedAt``.

    Raises:
        TransactionConflictError: If the record changed since it was read
    """
    if expected_updated_at is not None and tx.updated_at != expected_updated_at:
        logger.warning("Stale write rejected for transaction %s", tx.id)
        raise TransactionConflictError()


def update_transaction(
    *,
    transaction_id: UUID,
    user: User,
    changes: dict,
    expected_updated_at: Optional[datetime] = None
) -> Transaction:
    """
    Apply a strict partial update.

    Only the fields editable for the record's kind are accepted (see
    ``PATCHABLE_FIELDS``). Editing an installment purchase's description or
    amount is propagated to every installment in the same transaction, so
    the purchase total stays ``totalInstallments x amountInCents``.

    Raises:
        TransactionNotFoundError: If the record doesn't exist
        TransactionValidationError: If a field is not editable or the result is invalid
        TransactionConflictError: If ``expected_updated_at`` is stale
    """
    with store_operation('update'), transaction.atomic():
        tx = get_for_update(transaction_id=transaction_id, user=user)
        ensure_fresh(tx, expected_updated_at)

        kind = transaction_kind(tx)
        rejected = set(changes) - PATCHABLE_FIELDS[kind]
        if rejected:
            raise TransactionValidationError(
                f"Fields not editable on this transaction: {', '.join(sorted(rejected))}"
            )

        previous_pattern = tx.recurrence_pattern
        for field, value in changes.items():
            if field == 'description' and isinstance(value, str):
                value = value.strip()
            setattr(tx, field, value)

        if kind == TransactionType.RECURRING and tx.recurrence_pattern != previous_pattern:
            last_period = (
                tx.occurrences.order_by('-date').values_list('date', flat=True).first()
                or tx.date
            )
            tx.next_occurrence = dates.step(last_period, tx.recurrence_pattern, anchor_day=tx.date.day)

        validate_transaction(tx)
        tx.save()

        if kind == KIND_INSTALLMENT_ANCHOR:
            propagated = {
                field: getattr(tx, field)
                for field in ('description', 'amount_in_cents')
                if field in changes
            }
            if propagated:
                tx.installments.update(updated_at=timezone.now(), **propagated)

    logger.info("Updated transaction %s fields=%s", tx.id, sorted(changes))
    return tx


def delete_transaction(*, transaction_id: UUID, user: User) -> None:
    """
    Delete a transaction.

    Deleting an installment purchase removes every installment with it, all
    or nothing. Single installments cannot be deleted on their own.

    Raises:
        TransactionNotFoundError: If the record doesn't exist
        TransactionValidationError: If the record is a single installment
    """
    with store_operation('delete'), transaction.atomic():
        tx = get_for_update(transaction_id=transaction_id, user=user)

        if tx.is_installment_child:
            raise TransactionValidationError(
                "Installments are deleted together with their purchase. Delete the purchase instead."
            )

        if tx.is_installment_anchor:
            _delete_installment_set(tx)
        else:
            tx.delete()

    logger.info("Deleted transaction %s", transaction_id)


def delete_installment_purchase(*, transaction_id: UUID, user: User) -> None:
    """
    Delete a whole installment purchase given its anchor or any installment id.

    Raises:
        TransactionNotFoundError: If the record doesn't exist
        TransactionNotFoundError: If the record is not part of an installment purchase
    """
    with store_operation('delete'), transaction.atomic():
        anchor = _get_anchor_for_update(transaction_id=transaction_id, user=user)
        _delete_installment_set(anchor)

    logger.info("Deleted installment purchase %s", anchor.id)


def _delete_installment_set(anchor: Transaction) -> None:
    children_count, _ = Transaction.objects.filter(parent_transaction=anchor).delete()
    anchor.delete()
    logger.info("Cascade removed %s installments of %s", children_count, anchor.id)


def _get_anchor_for_update(*, transaction_id: UUID, user: User) -> Transaction:
    tx = get_for_update(transaction_id=transaction_id, user=user)
    if tx.type != TransactionType.INSTALLMENT:
        raise TransactionNotFoundError("Installment purchase not found.")
    if tx.is_installment_child:
        tx = get_for_update(transaction_id=tx.parent_transaction_id, user=user)
    return tx


def get_installment_anchor(*, transaction_id: UUID, user: User) -> Transaction:
    """
    Resolve the anchor of an installment purchase (``parentTransactionId or id``).

    Raises:
        TransactionNotFoundError: If the record doesn't exist or is not an installment
    """
    tx = get_transaction(transaction_id=transaction_id, user=user)
    if tx.type != TransactionType.INSTALLMENT:
        raise TransactionNotFoundError("Installment purchase not found.")
    if tx.is_installment_child:
        return get_transaction(transaction_id=tx.parent_transaction_id, user=user)
    return tx


def get_installments(*, transaction_id: UUID, user: User) -> QuerySet[Transaction]:
    """All installments of the purchase the given id belongs to, by number."""
    anchor = get_installment_anchor(transaction_id=transaction_id, user=user)
    return anchor.installments.order_by('installment_number')


def query_transactions(
    *,
    user: User,
    start_date: date,
    end_date: date,
    types: Optional[Iterable[str]] = None,
    include_anchors: bool = False
) -> QuerySet[Transaction]:
    """
    Transactions dated within ``[start_date, end_date]`` (inclusive).

    Args:
        user: Owner whose records are returned
        start_date: First day of the window
        end_date: Last day of the window
        types: Restrict to these types; all types when empty
        include_anchors: Also return installment purchase anchors. They are
            grouping records, so ledger listings leave them out.

    Returns:
        QuerySet ordered by date, then creation time
    """
    if start_date > end_date:
        raise TransactionValidationError("startDate must not be after endDate")

    queryset = Transaction.objects.filter(
        user=user,
        date__gte=start_date,
        date__lte=end_date,
    )

    types = list(types or [])
    if types:
        queryset = queryset.filter(type__in=types)

    if not include_anchors:
        queryset = queryset.exclude(
            type=TransactionType.INSTALLMENT,
            installment_number__isnull=True,
        )

    return queryset.order_by('date', 'created_at', 'id')
