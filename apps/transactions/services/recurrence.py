"""
Recurrence service.

A RECURRING transaction is a template: its own ``date`` is the first
period, and ``next_occurrence`` points at the next period that has not been
materialized yet. Materializing turns that period into an ordinary EXPENSE
record linked back to the template, then moves the pointer forward.

Occurrences are unique per (template, date), so materializing the same
period twice returns the existing record instead of creating another one.
"""

import logging
from datetime import date, timedelta
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction

from apps.accounts.models import User
from apps.transactions.models import (
    Transaction,
    TransactionType,
    TransactionStatus,
    RecurrencePattern,
)
from . import dates
from .exceptions import (
    TransactionValidationError,
    TransactionNotFoundError,
    InvalidTransitionError,
)
from .transaction_store import (
    build_transaction,
    get_for_update,
    store_operation,
    validate_transaction,
)

logger = logging.getLogger(__name__)

# Occurrences produced from a template are settled as expenses
OCCURRENCE_TYPE = TransactionType.EXPENSE

_MAX_SCHEDULE_STEPS = 10_000


def advance(template: Transaction) -> date:
    """
    Return the period after the template's current pointer.

    Steps one month/week/year from ``next_occurrence`` (or from ``date`` when
    the pointer is unset). Month and year steps keep the template's day of
    month, clamped to short months: 2024-01-31 -> 2024-02-29 -> 2024-03-31.
    Does not save anything.
    """
    base = template.next_occurrence or template.date
    return dates.step(base, template.recurrence_pattern, anchor_day=template.date.day)


def is_scheduled_period(template: Transaction, period: date) -> bool:
    """True when ``period`` is one of the template's periods after its first."""
    current = template.date
    for _ in range(_MAX_SCHEDULE_STEPS):
        current = dates.step(current, template.recurrence_pattern, anchor_day=template.date.day)
        if current >= period:
            return current == period
    return False


def create_recurring_transaction(
    *,
    user: User,
    description: str,
    amount_in_cents: int,
    date: date,
    recurrence_pattern: str = RecurrencePattern.MONTHLY,
    due_date: Optional[date] = None
) -> Transaction:
    """
    Create a recurring template with its pointer set to the second period.

    Raises:
        TransactionValidationError: If the pattern or any field is invalid
    """
    if recurrence_pattern not in RecurrencePattern.values:
        raise TransactionValidationError("recurrencePattern must be one of MONTHLY, WEEKLY, YEARLY")

    template = build_transaction(
        user=user,
        description=description,
        amount_in_cents=amount_in_cents,
        date=date,
        due_date=due_date,
        type=TransactionType.RECURRING,
        recurrence_pattern=recurrence_pattern,
    )
    template.next_occurrence = advance(template)
    validate_transaction(template)

    with store_operation('create'), transaction.atomic():
        template.save(force_insert=True)

    logger.info("Created recurring template %s (%s)", template.id, recurrence_pattern)
    return template


def _materialize_locked(template: Transaction, period: date) -> tuple[Transaction, bool]:
    existing = template.occurrences.filter(date=period).first()
    if existing is not None:
        return existing, False

    due_date = None
    if template.due_date is not None:
        due_date = period + timedelta(days=(template.due_date - template.date).days)

    occurrence = build_transaction(
        user=template.user,
        description=template.description,
        amount_in_cents=template.amount_in_cents,
        date=period,
        due_date=due_date,
        type=OCCURRENCE_TYPE,
        recurring_template=template,
    )
    occurrence.save(force_insert=True)

    if template.next_occurrence is None or period >= template.next_occurrence:
        if period == template.next_occurrence:
            template.next_occurrence = advance(template)
        else:
            template.next_occurrence = dates.step(
                period, template.recurrence_pattern, anchor_day=template.date.day
            )
        template.save(update_fields=['next_occurrence', 'updated_at'])

    logger.info("Materialized occurrence %s of template %s", occurrence.id, template.id)
    return occurrence, True


def _lock_template(*, template_id: UUID, user: User) -> Transaction:
    template = get_for_update(transaction_id=template_id, user=user)
    if template.type != TransactionType.RECURRING:
        raise TransactionValidationError("Only recurring transactions have occurrences")
    if template.status != TransactionStatus.PENDING:
        raise InvalidTransitionError("Cancelled recurring transactions do not generate occurrences")
    return template


def materialize_occurrence(
    *,
    template_id: UUID,
    user: User,
    period: Optional[date] = None
) -> tuple[Transaction, bool]:
    """
    Materialize one period of a recurring template.

    Args:
        template_id: The RECURRING template
        user: Owner of the template
        period: Period to materialize; defaults to the template's
            ``next_occurrence``. Must be one of the template's periods.

    Returns:
        tuple: (occurrence, created). ``created`` is False when the period
        was already materialized; nothing is written in that case.

    Raises:
        TransactionNotFoundError: If the template doesn't exist
        TransactionValidationError: If not a template or the period is off-schedule
        InvalidTransitionError: If the template was cancelled
    """
    with store_operation('materialize'), transaction.atomic():
        template = _lock_template(template_id=template_id, user=user)

        if period is None:
            period = template.next_occurrence or advance(template)
        elif not is_scheduled_period(template, period):
            raise TransactionValidationError(
                f"{period.isoformat()} is not a scheduled period of this recurring transaction"
            )

        return _materialize_locked(template, period)


def materialize_due(
    *,
    as_of: date,
    user: Optional[User] = None,
    limit: Optional[int] = None
) -> list[Transaction]:
    """
    Catch up every active template whose pointer is on or before ``as_of``.

    Each template is processed in its own transaction and at most ``limit``
    occurrences (``TRANSACTIONS_RECURRING_CATCHUP_LIMIT`` by default) are
    created per template per run.

    Returns:
        list of newly created occurrences
    """
    limit = limit or settings.TRANSACTIONS_RECURRING_CATCHUP_LIMIT

    templates = Transaction.objects.filter(
        type=TransactionType.RECURRING,
        status=TransactionStatus.PENDING,
        next_occurrence__lte=as_of,
    )
    if user is not None:
        templates = templates.filter(user=user)

    created = []
    for template_id, owner_id in templates.values_list('id', 'user_id'):
        # Cancelled or deleted since it was listed
        try:
            created.extend(_catch_up(template_id, User(id=owner_id), as_of, limit))
        except (InvalidTransitionError, TransactionNotFoundError) as e:
            logger.warning("Skipped recurring template %s: %s", template_id, e)

    logger.info("Materialized %s due occurrences as of %s", len(created), as_of)
    return created


def _catch_up(template_id: UUID, owner: User, as_of: date, limit: int) -> list[Transaction]:
    created = []
    with store_operation('materialize'), transaction.atomic():
        template = _lock_template(template_id=template_id, user=owner)
        for _ in range(limit):
            if template.next_occurrence is None or template.next_occurrence > as_of:
                break
            occurrence, was_created = _materialize_locked(template, template.next_occurrence)
            if was_created:
                created.append(occurrence)
            else:
                template.next_occurrence = advance(template)
                template.save(update_fields=['next_occurrence', 'updated_at'])
    return created
