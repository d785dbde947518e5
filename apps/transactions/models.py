from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
import uuid


class TransactionType(models.TextChoices):
    INCOME = 'INCOME', 'Income'
    EXPENSE = 'EXPENSE', 'Expense'
    TRANSFER = 'TRANSFER', 'Transfer'
    RECURRING = 'RECURRING', 'Recurring'
    INSTALLMENT = 'INSTALLMENT', 'Installment'


class TransactionStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    PAID = 'PAID', 'Paid'
    RECEIVED = 'RECEIVED', 'Received'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'


class RecurrencePattern(models.TextChoices):
    MONTHLY = 'MONTHLY', 'Monthly'
    WEEKLY = 'WEEKLY', 'Weekly'
    YEARLY = 'YEARLY', 'Yearly'


SETTLED_STATUSES = (TransactionStatus.PAID, TransactionStatus.RECEIVED)


class Transaction(models.Model):
    """
    A single money movement owned by one user.

    Installment purchases are stored as one anchor (``installment_number`` is
    NULL) plus N children pointing at it through ``parent_transaction``.
    Recurring templates point forward with ``next_occurrence`` and own the
    occurrences materialized from them through ``recurring_template``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='transactions'
    )

    # All money is integer cents
    amount_in_cents = models.PositiveBigIntegerField()

    date = models.DateField()
    due_date = models.DateField(null=True, blank=True)
    description = models.CharField(max_length=255)

    type = models.CharField(max_length=20, choices=TransactionType.choices)
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.PENDING
    )
    date_occurred = models.DateTimeField(null=True, blank=True)

    # Installments
    installment_number = models.PositiveSmallIntegerField(null=True, blank=True)
    total_installments = models.PositiveSmallIntegerField(null=True, blank=True)
    parent_transaction = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='installments'
    )

    # Recurrence
    recurrence_pattern = models.CharField(
        max_length=10,
        choices=RecurrencePattern.choices,
        null=True,
        blank=True
    )
    next_occurrence = models.DateField(null=True, blank=True)
    recurring_template = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='occurrences'
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'transactions'
        indexes = [
            models.Index(fields=['user', 'date'], name='transaction_user_id_0a1f3c_idx'),
            models.Index(fields=['user', 'type', 'date'], name='transaction_user_id_5d2b7e_idx'),
            models.Index(fields=['parent_transaction', 'installment_number'], name='transaction_parent__8c4e91_idx'),
            models.Index(fields=['type', 'status', 'next_occurrence'], name='transaction_type_3b7f02_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['parent_transaction', 'installment_number'],
                condition=Q(parent_transaction__isnull=False),
                name='unique_installment_number_per_parent',
            ),
            models.UniqueConstraint(
                fields=['recurring_template', 'date'],
                condition=Q(recurring_template__isnull=False),
                name='unique_occurrence_per_period',
            ),
        ]
        ordering = ['date', 'created_at']

    def __str__(self):
        if self.installment_number:
            return f"{self.description} {self.installment_number}/{self.total_installments} ({self.status})"
        return f"{self.description} - {self.amount_in_cents} cents ({self.status})"

    def clean(self):
        """Run the record invariants for ModelForm saves (admin)."""
        from apps.transactions.services.exceptions import TransactionValidationError
        from apps.transactions.services.transaction_store import validate_transaction

        try:
            validate_transaction(self)
        except TransactionValidationError as e:
            raise ValidationError(e.message)

    @property
    def is_installment_anchor(self):
        """Anchor of an installment purchase (groups the children)."""
        return self.type == TransactionType.INSTALLMENT and self.installment_number is None

    @property
    def is_installment_child(self):
        return self.type == TransactionType.INSTALLMENT and self.installment_number is not None

    @property
    def is_settled(self):
        return self.status in SETTLED_STATUSES

    @property
    def main_installment_id(self):
        """Id of the anchor for any record of an installment purchase."""
        return self.parent_transaction_id or self.id
