from rest_framework import serializers

from .models import Transaction, TransactionType, TransactionStatus, RecurrencePattern
from .services import aggregation
from .services.transaction_store import (
    KIND_INSTALLMENT_ANCHOR,
    KIND_INSTALLMENT_CHILD,
    transaction_kind,
)


CREATABLE_TYPES = [
    TransactionType.INCOME,
    TransactionType.EXPENSE,
    TransactionType.INSTALLMENT,
    TransactionType.RECURRING,
]


class StrictFieldsMixin:
    """Reject payload keys the serializer does not declare."""

    def to_internal_value(self, data):
        if hasattr(data, 'keys'):
            unknown = set(data.keys()) - set(self.fields)
            if unknown:
                raise serializers.ValidationError({
                    field: 'This field is not allowed.' for field in sorted(unknown)
                })
        return super().to_internal_value(data)


# =============================================================================
# Input Serializers
# =============================================================================

class TransactionFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for transaction listing.

    Query Parameters:
        startDate (date): First day of the window
        endDate (date): Last day of the window
        type (str): Comma-separated transaction types
        month (int): Planner month (1-12), used when dates are omitted
        year (int): Planner year, used when dates are omitted
    """

    startDate = serializers.DateField(source='start_date', required=False)
    endDate = serializers.DateField(source='end_date', required=False)
    type = serializers.CharField(source='types', required=False, allow_blank=True)
    month = serializers.IntegerField(source='month_number', required=False, min_value=1, max_value=12)
    year = serializers.IntegerField(required=False, min_value=1900, max_value=9999)

    def validate_type(self, value):
        types = [part.strip().upper() for part in value.split(',') if part.strip()]
        invalid = [part for part in types if part not in TransactionType.values]
        if invalid:
            raise serializers.ValidationError(f"Unknown transaction type: {', '.join(invalid)}")
        return types

    def validate(self, attrs):
        start_date = attrs.get('start_date')
        end_date = attrs.get('end_date')

        if start_date and end_date and start_date > end_date:
            raise serializers.ValidationError({
                'endDate': 'End date must be after start date'
            })

        return attrs


class TransactionCreateSerializer(StrictFieldsMixin, serializers.Serializer):
    """
    Validate a creation request.

    Fields:
        description (str): Required, non-blank
        amountInCents (int): Non-negative integer cents; per installment for INSTALLMENT
        date (date): Planned date (first installment date for INSTALLMENT)
        dueDate (date): Optional, not before date
        type (str): INCOME, EXPENSE, INSTALLMENT or RECURRING
        totalInstallments (int): Required for INSTALLMENT only
        recurrencePattern (str): RECURRING only, defaults to MONTHLY
    """

    description = serializers.CharField(max_length=255)
    amountInCents = serializers.IntegerField(source='amount_in_cents', min_value=0)
    date = serializers.DateField()
    dueDate = serializers.DateField(source='due_date', required=False, allow_null=True)
    type = serializers.ChoiceField(choices=CREATABLE_TYPES)
    totalInstallments = serializers.IntegerField(source='total_installments', required=False)
    recurrencePattern = serializers.ChoiceField(
        source='recurrence_pattern',
        choices=RecurrencePattern.choices,
        required=False
    )

    def validate(self, attrs):
        tx_type = attrs['type']

        if tx_type == TransactionType.INSTALLMENT:
            if attrs.get('total_installments') is None:
                raise serializers.ValidationError({
                    'totalInstallments': 'Required for installment purchases'
                })
        elif 'total_installments' in attrs:
            raise serializers.ValidationError({
                'totalInstallments': 'Only allowed for installment purchases'
            })

        if tx_type != TransactionType.RECURRING and 'recurrence_pattern' in attrs:
            raise serializers.ValidationError({
                'recurrencePattern': 'Only allowed for recurring transactions'
            })

        due_date = attrs.get('due_date')
        if due_date and due_date < attrs['date']:
            raise serializers.ValidationError({
                'dueDate': 'Due date cannot be before date'
            })

        return attrs


class TransactionPatchSerializer(StrictFieldsMixin, serializers.Serializer):
    """
    Base for partial updates; subclasses narrow the editable fields per kind.

    ``updatedAt`` is the caller's copy of the record's timestamp. When sent,
    the update is rejected if the record changed in the meantime.
    """

    updatedAt = serializers.DateTimeField(source='expected_updated_at', required=False)

    def validate(self, attrs):
        if not any(key != 'expected_updated_at' for key in attrs):
            raise serializers.ValidationError('No fields to update')
        return attrs

    def changes(self):
        """Validated field changes, without the concurrency token."""
        return {
            key: value for key, value in self.validated_data.items()
            if key != 'expected_updated_at'
        }


class LedgerPatchSerializer(TransactionPatchSerializer):
    """Editable fields of income, expense and transfer records."""

    description = serializers.CharField(max_length=255, required=False)
    amountInCents = serializers.IntegerField(source='amount_in_cents', min_value=0, required=False)
    date = serializers.DateField(required=False)
    dueDate = serializers.DateField(source='due_date', required=False, allow_null=True)


class InstallmentPurchasePatchSerializer(TransactionPatchSerializer):
    """Editable fields of an installment purchase; applied to every installment."""

    description = serializers.CharField(max_length=255, required=False)
    amountInCents = serializers.IntegerField(source='amount_in_cents', min_value=0, required=False)


class InstallmentPatchSerializer(TransactionPatchSerializer):
    """Editable fields of a single installment."""

    description = serializers.CharField(max_length=255, required=False)
    date = serializers.DateField(required=False)
    dueDate = serializers.DateField(source='due_date', required=False, allow_null=True)


class RecurringPatchSerializer(TransactionPatchSerializer):
    """Editable fields of a recurring template."""

    description = serializers.CharField(max_length=255, required=False)
    amountInCents = serializers.IntegerField(source='amount_in_cents', min_value=0, required=False)
    dueDate = serializers.DateField(source='due_date', required=False, allow_null=True)
    recurrencePattern = serializers.ChoiceField(
        source='recurrence_pattern',
        choices=RecurrencePattern.choices,
        required=False
    )


PATCH_SERIALIZERS = {
    TransactionType.INCOME: LedgerPatchSerializer,
    TransactionType.EXPENSE: LedgerPatchSerializer,
    TransactionType.TRANSFER: LedgerPatchSerializer,
    TransactionType.RECURRING: RecurringPatchSerializer,
    KIND_INSTALLMENT_ANCHOR: InstallmentPurchasePatchSerializer,
    KIND_INSTALLMENT_CHILD: InstallmentPatchSerializer,
}


def patch_serializer_class(tx: Transaction):
    """Patch serializer matching the stored record's kind."""
    return PATCH_SERIALIZERS[transaction_kind(tx)]


class StatusUpdateSerializer(StrictFieldsMixin, serializers.Serializer):
    """
    Validate input for a status change.

    Fields:
        status (str): Target status
        updatedAt (datetime): Optional concurrency token
    """

    status = serializers.ChoiceField(choices=TransactionStatus.choices)
    updatedAt = serializers.DateTimeField(source='expected_updated_at', required=False)


class MaterializeInputSerializer(StrictFieldsMixin, serializers.Serializer):
    """
    Validate input for materializing a recurring occurrence.

    Fields:
        period (date): Optional period; defaults to the template's nextOccurrence
    """

    period = serializers.DateField(required=False)


# =============================================================================
# Output Serializers
# =============================================================================

class TransactionSerializer(serializers.ModelSerializer):
    """Wire representation of a transaction (camelCase, cents, ISO dates)."""

    amountInCents = serializers.IntegerField(source='amount_in_cents', read_only=True)
    dueDate = serializers.DateField(source='due_date', read_only=True)
    dateOccurred = serializers.DateTimeField(source='date_occurred', read_only=True)
    userId = serializers.UUIDField(source='user_id', read_only=True)
    installmentNumber = serializers.IntegerField(source='installment_number', read_only=True)
    totalInstallments = serializers.IntegerField(source='total_installments', read_only=True)
    parentTransactionId = serializers.UUIDField(source='parent_transaction_id', read_only=True)
    recurrencePattern = serializers.CharField(source='recurrence_pattern', read_only=True)
    nextOccurrence = serializers.DateField(source='next_occurrence', read_only=True)
    recurringTemplateId = serializers.UUIDField(source='recurring_template_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    totalAmountInCents = serializers.SerializerMethodField()
    progress = serializers.SerializerMethodField()
    remainingInstallments = serializers.SerializerMethodField()

    class Meta:
        model = Transaction
        fields = [
            'id',
            'amountInCents',
            'date',
            'dueDate',
            'description',
            'type',
            'status',
            'dateOccurred',
            'userId',
            'installmentNumber',
            'totalInstallments',
            'parentTransactionId',
            'recurrencePattern',
            'nextOccurrence',
            'recurringTemplateId',
            'createdAt',
            'updatedAt',
            'totalAmountInCents',
            'progress',
            'remainingInstallments',
        ]
        read_only_fields = fields

    def get_totalAmountInCents(self, obj) -> int:
        return aggregation.total_amount(obj)

    def get_progress(self, obj) -> float:
        return aggregation.progress(obj)

    def get_remainingInstallments(self, obj) -> int:
        return aggregation.remaining_installments(obj)


class TransactionWithInstallmentsSerializer(TransactionSerializer):
    """Transaction plus the installments of the purchase it belongs to."""

    installments = serializers.SerializerMethodField()

    class Meta(TransactionSerializer.Meta):
        fields = TransactionSerializer.Meta.fields + ['installments']
        read_only_fields = fields

    def get_installments(self, obj) -> list:
        if obj.type != TransactionType.INSTALLMENT:
            return []
        installments = Transaction.objects.filter(
            parent_transaction_id=obj.main_installment_id
        ).order_by('installment_number')
        return TransactionSerializer(installments, many=True).data


class TransactionSummarySerializer(serializers.Serializer):
    """Totals of a planner window."""

    startDate = serializers.DateField(source='start_date')
    endDate = serializers.DateField(source='end_date')
    incomeInCents = serializers.IntegerField(source='income_in_cents')
    expenseInCents = serializers.IntegerField(source='expense_in_cents')
    balanceInCents = serializers.IntegerField(source='balance_in_cents')
    byType = serializers.DictField(source='by_type', child=serializers.IntegerField())
    count = serializers.IntegerField()
