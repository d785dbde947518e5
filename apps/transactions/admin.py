from django.contrib import admin, messages

from .models import Transaction, TransactionStatus
from .services import transition_status, TransactionsServiceError


class InstallmentInline(admin.TabularInline):
    """Installments of a purchase, read-only."""

    model = Transaction
    fk_name = 'parent_transaction'
    fields = ['installment_number', 'date', 'due_date', 'amount_in_cents', 'status']
    readonly_fields = fields
    extra = 0
    can_delete = False
    ordering = ['installment_number']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """Admin interface for Transactions."""

    list_display = [
        'description',
        'user',
        'type',
        'status',
        'amount_in_cents',
        'date',
        'installment_label',
    ]
    list_filter = ['type', 'status', 'date']
    search_fields = ['description', 'user__email']
    readonly_fields = [
        'id',
        'status',
        'date_occurred',
        'parent_transaction',
        'recurring_template',
        'next_occurrence',
        'created_at',
        'updated_at',
    ]
    date_hierarchy = 'date'
    ordering = ['-date']
    inlines = [InstallmentInline]
    actions = ['mark_cancelled']

    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'user', 'description', 'type', 'status', 'amount_in_cents')
        }),
        ('Dates', {
            'fields': ('date', 'due_date', 'date_occurred')
        }),
        ('Installments', {
            'fields': ('installment_number', 'total_installments', 'parent_transaction'),
            'classes': ('collapse',)
        }),
        ('Recurrence', {
            'fields': ('recurrence_pattern', 'next_occurrence', 'recurring_template'),
            'classes': ('collapse',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    # Fixed once the record exists; the services own these
    structural_fields = ['user', 'type', 'installment_number', 'total_installments', 'recurrence_pattern']

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return self.readonly_fields
        return self.readonly_fields + self.structural_fields

    def get_queryset(self, request):
        """Optimize query with select_related."""
        qs = super().get_queryset(request)
        return qs.select_related('user', 'parent_transaction')

    def installment_label(self, obj):
        """Show N/total for installments."""
        if obj.installment_number:
            return f"{obj.installment_number}/{obj.total_installments}"
        if obj.total_installments:
            return f"{obj.total_installments}x"
        return '-'
    installment_label.short_description = 'Installment'

    @admin.action(description='Cancel selected transactions')
    def mark_cancelled(self, request, queryset):
        cancelled = 0
        for tx in queryset:
            try:
                transition_status(
                    transaction_id=tx.id,
                    user=tx.user,
                    new_status=TransactionStatus.CANCELLED,
                )
                cancelled += 1
            except TransactionsServiceError as e:
                self.message_user(request, f"{tx.description}: {e.message}", messages.WARNING)
        self.message_user(request, f"Cancelled {cancelled} transactions.")
