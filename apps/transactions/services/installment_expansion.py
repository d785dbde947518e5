"""
Installment expansion service.

Turns one installment purchase request into an anchor record plus N
installments, one per month, each carrying the same per-installment amount.

The anchor is a separate, unnumbered INSTALLMENT record that groups the
children; it is never installment #1 itself. Children point at it through
``parent_transaction``.

Example:
    Ten monthly installments of 500.00::

        anchor, installments = create_installment_purchase(
            user=user,
            description='Notebook',
            amount_in_cents=50000,
            date=date(2024, 1, 10),
            total_installments=10,
        )
        # installments dated 2024-01-10, 2024-02-10, ..., 2024-10-10
        # total committed: 10 x 50000 = 500000 cents
"""

import logging
from datetime import date
from typing import Optional

from django.conf import settings
from django.db import transaction

from apps.accounts.models import User
from apps.transactions.models import Transaction, TransactionType
from . import dates
from .exceptions import TransactionValidationError
from .transaction_store import build_transaction, store_operation

logger = logging.getLogger(__name__)


def validate_installment_count(total_installments) -> int:
    """
    Check the requested number of installments.

    Raises:
        TransactionValidationError: If missing, not an integer, or out of range
    """
    minimum = settings.TRANSACTIONS_MIN_INSTALLMENTS
    maximum = settings.TRANSACTIONS_MAX_INSTALLMENTS
    if (
        isinstance(total_installments, bool)
        or not isinstance(total_installments, int)
        or not (minimum <= total_installments <= maximum)
    ):
        raise TransactionValidationError(
            f"totalInstallments must be between {minimum} and {maximum}"
        )
    return total_installments


def installment_schedule(first_date: date, total_installments: int) -> list[date]:
    """
    Dates of each installment: the first date advanced by 0..N-1 months.

    Month ends are clamped against the first date's day, so a purchase on
    Jan 31 falls due on Feb 29 (or 28), Mar 31, Apr 30, ...
    """
    return [
        dates.add_months(first_date, offset, anchor_day=first_date.day)
        for offset in range(total_installments)
    ]


@transaction.atomic
def _expand(
    *,
    user: User,
    description: str,
    amount_in_cents: int,
    first_date: date,
    total_installments: int,
    due_date: Optional[date]
) -> tuple[Transaction, list[Transaction]]:
    schedule = installment_schedule(first_date, total_installments)
    due_schedule = (
        installment_schedule(due_date, total_installments) if due_date else schedule
    )

    anchor = build_transaction(
        user=user,
        description=description,
        amount_in_cents=amount_in_cents,
        date=first_date,
        due_date=due_schedule[-1],
        type=TransactionType.INSTALLMENT,
        total_installments=total_installments,
    )
    anchor.save(force_insert=True)

    installments = []
    for number, (installment_date, installment_due) in enumerate(zip(schedule, due_schedule), start=1):
        installment = build_transaction(
            user=user,
            description=anchor.description,
            amount_in_cents=amount_in_cents,
            date=installment_date,
            due_date=installment_due,
            type=TransactionType.INSTALLMENT,
            installment_number=number,
            total_installments=total_installments,
            parent_transaction=anchor,
        )
        installment.save(force_insert=True)
        installments.append(installment)

    # Safety check: committed total must match the purchase total exactly
    committed = sum(item.amount_in_cents for item in installments)
    if len(installments) != total_installments or committed != total_installments * amount_in_cents:
        raise TransactionValidationError(
            f"Installment expansion error: {committed} != {total_installments * amount_in_cents}"
        )

    return anchor, installments


def create_installment_purchase(
    *,
    user: User,
    description: str,
    amount_in_cents: int,
    date: date,
    total_installments: int,
    due_date: Optional[date] = None
) -> tuple[Transaction, list[Transaction]]:
    """
    Create an installment purchase and all of its installments atomically.

    Args:
        user: Owner of the purchase
        description: Purchase description, copied to every installment
        amount_in_cents: Amount of EACH installment (not the purchase total)
        date: Date of the first installment
        total_installments: Number of installments (2..60 by default)
        due_date: Optional due date of the first installment; later due
            dates keep the same offset. Defaults to each installment's date.

    Returns:
        tuple: (anchor, installments ordered by number)

    Raises:
        TransactionValidationError: If the count or any field is invalid.
            Nothing is written in that case.
        StoreTimeoutError: If the store does not respond in time
    """
    validate_installment_count(total_installments)

    with store_operation('expand'):
        anchor, installments = _expand(
            user=user,
            description=description,
            amount_in_cents=amount_in_cents,
            first_date=date,
            total_installments=total_installments,
            due_date=due_date,
        )

    logger.info(
        "Created installment purchase %s with %s installments",
        anchor.id,
        len(installments),
    )
    return anchor, installments
