"""
Status machine service.

PENDING is the initial state. From PENDING a transaction can be settled
(PAID for expenses and installments, RECEIVED for income) or CANCELLED.
Settled and cancelled transactions are terminal, except that settlements
may be reverted to PENDING when ``TRANSACTIONS_ALLOW_SETTLEMENT_REVERSAL``
is enabled.

Side effects:
    - Settling stamps ``date_occurred``; leaving a settled state clears it.
    - Cancelling an installment purchase cancels its pending installments.
    - An installment purchase is COMPLETED once every non-cancelled
      installment is PAID, and returns to PENDING if one is reverted.

Transfers complete (PENDING -> COMPLETED) rather than settle, and
recurring templates can only be cancelled; their occurrences are settled
one by one.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.transactions.models import (
    Transaction,
    TransactionType,
    TransactionStatus,
    SETTLED_STATUSES,
)
from .exceptions import InvalidTransitionError, TransactionValidationError
from .transaction_store import (
    ensure_fresh,
    get_for_update,
    store_operation,
    validate_transaction,
)

logger = logging.getLogger(__name__)


# Settled state matching each type's polarity
SETTLEMENT_STATUS = {
    TransactionType.INCOME: TransactionStatus.RECEIVED,
    TransactionType.EXPENSE: TransactionStatus.PAID,
    TransactionType.INSTALLMENT: TransactionStatus.PAID,
}


def allowed_transitions(tx: Transaction, allow_reversal: Optional[bool] = None) -> set[str]:
    """Statuses the transaction may move to from its current status."""
    if allow_reversal is None:
        allow_reversal = settings.TRANSACTIONS_ALLOW_SETTLEMENT_REVERSAL

    if tx.status == TransactionStatus.PENDING:
        if tx.is_installment_anchor or tx.type == TransactionType.RECURRING:
            return {TransactionStatus.CANCELLED}
        if tx.type == TransactionType.TRANSFER:
            return {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED}
        return {SETTLEMENT_STATUS[tx.type], TransactionStatus.CANCELLED}

    if tx.status in SETTLED_STATUSES and allow_reversal:
        return {TransactionStatus.PENDING}

    return set()


def check_transition(tx: Transaction, new_status: str, allow_reversal: Optional[bool] = None) -> None:
    """
    Validate a requested status change without applying it.

    Raises:
        TransactionValidationError: If ``new_status`` is not a known status
        InvalidTransitionError: If the change is not allowed
    """
    if new_status not in TransactionStatus.values:
        raise TransactionValidationError(f"Unknown status: {new_status}")

    if new_status in allowed_transitions(tx, allow_reversal):
        return

    if tx.status == new_status:
        raise InvalidTransitionError(f"Transaction is already {new_status}")

    if tx.status == TransactionStatus.PENDING and new_status in SETTLED_STATUSES:
        if tx.is_installment_anchor:
            raise InvalidTransitionError(
                "An installment purchase is settled through its installments"
            )
        expected = SETTLEMENT_STATUS.get(tx.type)
        if expected is None:
            raise InvalidTransitionError(f"{tx.type} transactions cannot be marked {new_status}")
        raise InvalidTransitionError(
            f"{tx.type} transactions are marked {expected}, not {new_status}"
        )

    raise InvalidTransitionError(f"Cannot change status from {tx.status} to {new_status}")


def _apply(tx: Transaction, new_status: str) -> None:
    tx.status = new_status
    tx.date_occurred = timezone.now() if new_status in SETTLED_STATUSES else None
    validate_transaction(tx)
    tx.save(update_fields=['status', 'date_occurred', 'updated_at'])


def _cancel_pending_installments(anchor: Transaction) -> int:
    return anchor.installments.filter(status=TransactionStatus.PENDING).update(
        status=TransactionStatus.CANCELLED,
        updated_at=timezone.now(),
    )


def sync_installment_purchase(anchor: Transaction) -> None:
    """Roll the installments' statuses up to their purchase."""
    if anchor.status == TransactionStatus.CANCELLED:
        return

    statuses = [
        status for status in anchor.installments.values_list('status', flat=True)
        if status != TransactionStatus.CANCELLED
    ]
    all_paid = bool(statuses) and all(status == TransactionStatus.PAID for status in statuses)
    rolled_up = TransactionStatus.COMPLETED if all_paid else TransactionStatus.PENDING

    if anchor.status != rolled_up:
        anchor.status = rolled_up
        anchor.save(update_fields=['status', 'updated_at'])
        logger.info("Installment purchase %s is now %s", anchor.id, rolled_up)


def transition_status(
    *,
    transaction_id: UUID,
    user: User,
    new_status: str,
    expected_updated_at: Optional[datetime] = None
) -> Transaction:
    """
    Change a transaction's status and apply the side effects.

    Runs with the row locked, so concurrent transitions on the same record
    are serialized; the loser sees the winner's status and is rejected.

    Args:
        transaction_id: Transaction to change
        user: Owner of the transaction
        new_status: Target status
        expected_updated_at: Caller's copy of ``updatedAt``; stale copies are rejected

    Returns:
        The updated Transaction

    Raises:
        TransactionNotFoundError: If the transaction doesn't exist
        TransactionValidationError: If ``new_status`` is unknown
        InvalidTransitionError: If the change is not allowed
        TransactionConflictError: If ``expected_updated_at`` is stale
    """
    with store_operation('transition'), transaction.atomic():
        tx = get_for_update(transaction_id=transaction_id, user=user)
        ensure_fresh(tx, expected_updated_at)

        try:
            check_transition(tx, new_status)
        except InvalidTransitionError:
            logger.warning(
                "Rejected transition %s -> %s for transaction %s",
                tx.status, new_status, tx.id,
            )
            raise

        previous = tx.status
        _apply(tx, new_status)

        if tx.is_installment_anchor and new_status == TransactionStatus.CANCELLED:
            cancelled = _cancel_pending_installments(tx)
            logger.info("Cancelled %s pending installments of %s", cancelled, tx.id)
        elif tx.is_installment_child:
            anchor = get_for_update(transaction_id=tx.parent_transaction_id, user=user)
            sync_installment_purchase(anchor)

    logger.info("Transaction %s status %s -> %s", tx.id, previous, new_status)
    return tx
