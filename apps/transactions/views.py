from rest_framework import status, viewsets, serializers as drf_serializers
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from .models import TransactionType
from .permissions import IsTransactionOwner
from .serializers import (
    TransactionSerializer,
    TransactionWithInstallmentsSerializer,
    TransactionFilterSerializer,
    TransactionCreateSerializer,
    TransactionSummarySerializer,
    StatusUpdateSerializer,
    MaterializeInputSerializer,
    LedgerPatchSerializer,
    patch_serializer_class,
)
from .services import (
    create_transaction,
    create_installment_purchase,
    create_recurring_transaction,
    get_transaction,
    update_transaction,
    delete_transaction,
    delete_installment_purchase,
    get_installment_anchor,
    get_installments,
    query_transactions,
    transition_status,
    materialize_occurrence,
    resolve_window,
    summarize,
)


# Response serializer for API documentation
class ErrorResponseSerializer(drf_serializers.Serializer):
    error = drf_serializers.CharField()
    code = drf_serializers.CharField()
    status = drf_serializers.IntegerField()


UUID_PATTERN = '[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'

WINDOW_PARAMETERS = [
    OpenApiParameter(name='startDate', type=OpenApiTypes.DATE, description='First day of the window'),
    OpenApiParameter(name='endDate', type=OpenApiTypes.DATE, description='Last day of the window'),
    OpenApiParameter(name='month', type=OpenApiTypes.INT, description='Planner month (1-12) when dates are omitted'),
    OpenApiParameter(name='year', type=OpenApiTypes.INT, description='Planner year when dates are omitted'),
]


def _window_filters(request):
    """Validate listing query params into a window and a type list."""
    params = {
        key: request.query_params.get(key)
        for key in ('startDate', 'endDate', 'month', 'year')
        if request.query_params.get(key)
    }
    types = ','.join(request.query_params.getlist('type'))
    if types:
        params['type'] = types

    serializer = TransactionFilterSerializer(data=params)
    serializer.is_valid(raise_exception=True)
    filters = serializer.validated_data

    start_date, end_date = resolve_window(
        start_date=filters.get('start_date'),
        end_date=filters.get('end_date'),
        month_number=filters.get('month_number'),
        year=filters.get('year'),
    )
    return start_date, end_date, filters.get('types') or []


def _flag(request, name: str) -> bool:
    return request.query_params.get(name, '').lower() in ('1', 'true', 'yes')


class TransactionViewSet(viewsets.ViewSet):
    """
    ViewSet for the user's transactions.

    list: Transactions in a date window, optionally filtered by type
    create: Create a transaction, installment purchase or recurring template
    retrieve: Get one transaction (optionally with its installments)
    update: Strict partial update, fields depend on the stored type
    destroy: Delete a transaction (installment purchases cascade)
    status: Change status through the status machine
    summary: Income/expense totals of a window
    materialize: Generate a recurring template's occurrence
    """

    permission_classes = [IsAuthenticated, IsTransactionOwner]
    lookup_value_regex = UUID_PATTERN

    @extend_schema(
        parameters=WINDOW_PARAMETERS + [
            OpenApiParameter(
                name='type',
                type=OpenApiTypes.STR,
                description='Comma-separated types, or repeat the parameter',
            ),
        ],
        responses={200: TransactionSerializer(many=True)},
    )
    def list(self, request):
        """
        Transactions dated within the window whose type matches the filter.

        Installment purchase anchors are not listed: the purchase shows up
        as its numbered installments, and the anchor itself is reachable
        through ``/installments/{id}`` or ``withInstallments``.
        """
        start_date, end_date, types = _window_filters(request)
        transactions = query_transactions(
            user=request.user,
            start_date=start_date,
            end_date=end_date,
            types=types,
        )
        return Response(TransactionSerializer(transactions, many=True).data)

    @extend_schema(
        request=TransactionCreateSerializer,
        responses={201: TransactionWithInstallmentsSerializer, 400: ErrorResponseSerializer},
    )
    def create(self, request):
        """Create a transaction; INSTALLMENT requests expand into the full purchase."""
        serializer = TransactionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        tx_type = data.pop('type')

        if tx_type == TransactionType.INSTALLMENT:
            anchor, _ = create_installment_purchase(user=request.user, **data)
            body = TransactionWithInstallmentsSerializer(anchor).data
        elif tx_type == TransactionType.RECURRING:
            template = create_recurring_transaction(user=request.user, **data)
            body = TransactionSerializer(template).data
        else:
            tx = create_transaction(user=request.user, type=tx_type, **data)
            body = TransactionSerializer(tx).data

        return Response(body, status=status.HTTP_201_CREATED)

    @extend_schema(
        parameters=[
            OpenApiParameter(
                name='withInstallments',
                type=OpenApiTypes.BOOL,
                description='Embed the installments of the purchase',
            ),
        ],
        responses={200: TransactionWithInstallmentsSerializer, 404: ErrorResponseSerializer},
    )
    def retrieve(self, request, pk=None):
        tx = get_transaction(transaction_id=pk, user=request.user)
        self.check_object_permissions(request, tx)
        if _flag(request, 'withInstallments'):
            return Response(TransactionWithInstallmentsSerializer(tx).data)
        return Response(TransactionSerializer(tx).data)

    @extend_schema(
        request=LedgerPatchSerializer,
        responses={
            200: TransactionSerializer,
            400: ErrorResponseSerializer,
            404: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
    )
    def update(self, request, pk=None):
        """
        Apply a partial update.

        The accepted fields depend on the stored record; see the patch
        serializers. PUT and PATCH behave the same.
        """
        tx = get_transaction(transaction_id=pk, user=request.user)
        self.check_object_permissions(request, tx)
        serializer = patch_serializer_class(tx)(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = update_transaction(
            transaction_id=tx.id,
            user=request.user,
            changes=serializer.changes(),
            expected_updated_at=serializer.validated_data.get('expected_updated_at'),
        )
        return Response(TransactionSerializer(updated).data)

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk)

    @extend_schema(responses={204: None, 400: ErrorResponseSerializer, 404: ErrorResponseSerializer})
    def destroy(self, request, pk=None):
        delete_transaction(transaction_id=pk, user=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        request=StatusUpdateSerializer,
        responses={
            200: TransactionSerializer,
            404: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
    )
    @action(detail=True, methods=['put', 'patch'], url_path='status')
    def update_status(self, request, pk=None):
        """Move the transaction to a new status."""
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        tx = transition_status(
            transaction_id=pk,
            user=request.user,
            new_status=serializer.validated_data['status'],
            expected_updated_at=serializer.validated_data.get('expected_updated_at'),
        )
        return Response(TransactionSerializer(tx).data)

    @extend_schema(
        parameters=WINDOW_PARAMETERS,
        responses={200: TransactionSummarySerializer},
    )
    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Income, expense and balance of a window, in cents."""
        start_date, end_date, types = _window_filters(request)
        transactions = query_transactions(
            user=request.user,
            start_date=start_date,
            end_date=end_date,
            types=types,
        )
        totals = summarize(transactions)
        totals.update(start_date=start_date, end_date=end_date)
        return Response(TransactionSummarySerializer(totals).data)

    @extend_schema(
        request=MaterializeInputSerializer,
        responses={
            200: TransactionSerializer,
            201: TransactionSerializer,
            400: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
    )
    @action(detail=True, methods=['post'])
    def materialize(self, request, pk=None):
        """
        Materialize a period of a recurring template.

        Returns 201 with the new occurrence, or 200 with the existing one
        when the period was already materialized.
        """
        serializer = MaterializeInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        occurrence, created = materialize_occurrence(
            template_id=pk,
            user=request.user,
            period=serializer.validated_data.get('period'),
        )
        return Response(
            TransactionSerializer(occurrence).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class InstallmentViewSet(viewsets.ViewSet):
    """
    Installment purchases, addressed by the purchase id or any installment id.

    retrieve: Get the purchase (anchor record)
    destroy: Delete the purchase and every installment
    installments: List the installments by number
    """

    permission_classes = [IsAuthenticated, IsTransactionOwner]
    lookup_value_regex = UUID_PATTERN

    @extend_schema(responses={200: TransactionSerializer, 404: ErrorResponseSerializer})
    def retrieve(self, request, pk=None):
        anchor = get_installment_anchor(transaction_id=pk, user=request.user)
        self.check_object_permissions(request, anchor)
        return Response(TransactionSerializer(anchor).data)

    @extend_schema(responses={204: None, 404: ErrorResponseSerializer})
    def destroy(self, request, pk=None):
        delete_installment_purchase(transaction_id=pk, user=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(responses={200: TransactionSerializer(many=True), 404: ErrorResponseSerializer})
    @action(detail=True, methods=['get'])
    def installments(self, request, pk=None):
        installments = get_installments(transaction_id=pk, user=request.user)
        return Response(TransactionSerializer(installments, many=True).data)
