import logging
from uuid import UUID

from rest_framework import mixins, status, viewsets, serializers as drf_serializers
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from apps.groups.models import Group
from .models import Expense
from .serializers import (
    BalanceSerializer,
    ExpenseCreateSerializer,
    ExpenseSerializer,
    MarkPaidInputSerializer,
    OutstandingShareSerializer,
    PaymentHistorySerializer,
    PaymentSummarySerializer,
    SettlementTransactionSerializer,
    SplitBillCreateSerializer,
    SplitBillFilterSerializer,
    SplitBillListSerializer,
    SplitBillParticipantSerializer,
    SplitBillSerializer,
)
from .permissions import CanMarkSharePaid, CanViewExpense, IsSplitBillParty
from . import services
from .services.exceptions import (
    AlreadySettledError,
    GroupNotFoundError,
    LedgerInconsistencyError,
    NotGroupMemberError,
    ParticipantNotFoundError,
    SettlementServiceError,
    SplitBillNotFoundError,
    TransitionConflictError,
)

logger = logging.getLogger(__name__)

UUID_PATTERN = r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'


# Response serializers for API documentation
class ErrorResponseSerializer(drf_serializers.Serializer):
    status = drf_serializers.CharField()
    code = drf_serializers.CharField()
    error = drf_serializers.CharField()


class ParticipantResponseSerializer(drf_serializers.Serializer):
    status = drf_serializers.CharField()
    participant = SplitBillParticipantSerializer()


class SettlementResponseSerializer(drf_serializers.Serializer):
    status = drf_serializers.CharField()
    group_id = drf_serializers.UUIDField()
    settlement = SettlementTransactionSerializer(many=True)


class BalancesResponseSerializer(drf_serializers.Serializer):
    status = drf_serializers.CharField()
    group_id = drf_serializers.UUIDField()
    balances = BalanceSerializer(many=True)


class PaymentSummaryDataSerializer(drf_serializers.Serializer):
    summary = PaymentSummarySerializer()
    debts = SettlementTransactionSerializer(many=True)
    split_bill = SplitBillSerializer()


class PaymentSummaryResponseSerializer(drf_serializers.Serializer):
    status = drf_serializers.CharField()
    data = PaymentSummaryDataSerializer()


class OutstandingSharesResponseSerializer(drf_serializers.Serializer):
    total_outstanding = drf_serializers.IntegerField()
    count = drf_serializers.IntegerField()
    shares = OutstandingShareSerializer(many=True)


def error_response(exc):
    """Translate a settlement service exception into an HTTP response."""
    if isinstance(exc, LedgerInconsistencyError):
        logger.exception("Ledger inconsistency: %s", exc)
        return Response(
            {'status': 'error', 'code': exc.code, 'error': 'Settlement data is inconsistent'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(exc, TransitionConflictError):
        return Response(
            {'status': exc.code, 'code': exc.code, 'error': str(exc)},
            status=status.HTTP_409_CONFLICT
        )

    if isinstance(exc, (GroupNotFoundError, SplitBillNotFoundError, ParticipantNotFoundError)):
        http_status = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, NotGroupMemberError):
        http_status = status.HTTP_403_FORBIDDEN
    else:
        # InvalidAmountError, InvalidSplitError
        http_status = status.HTTP_400_BAD_REQUEST

    return Response({'status': 'error', 'code': exc.code, 'error': str(exc)}, status=http_status)


def _get_member_group(group_id, user):
    try:
        group = Group.objects.get(id=group_id)
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")
    if not group.has_member(user):
        raise NotGroupMemberError("You must be a member of this group")
    return group


class SettlementPagination(PageNumberPagination):
    """Custom pagination for split bills and expenses."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class SplitBillViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    ViewSet for split bills.

    list: Bills the user created, paid, or takes part in (filter by group)
    create: Create a bill and split it among participants
    retrieve: Get a specific bill with its participants
    payment_summary: Payment progress and open debts of a bill
    mark_paid: Mark one participant's share as paid
    reject: Reject the caller's own share
    my_outstanding: The caller's pending shares
    history: Paid shares the caller sent or received
    """

    serializer_class = SplitBillSerializer
    permission_classes = [IsAuthenticated, IsSplitBillParty]
    pagination_class = SettlementPagination
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        """Filter bills using input serializer validation."""
        filter_serializer = SplitBillFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        queryset = services.get_user_split_bills(
            user=self.request.user,
            group_id=params.get('group'),
        )
        if params.get('is_settled') is not None:
            queryset = queryset.filter(is_settled=params['is_settled'])
        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return SplitBillListSerializer
        return SplitBillSerializer

    def get_permissions(self):
        if self.action == 'mark_paid':
            return [IsAuthenticated(), IsSplitBillParty(), CanMarkSharePaid()]
        return super().get_permissions()

    def _get_split_bill(self, pk):
        split_bill = services.get_split_bill(split_bill_id=pk)
        self.check_object_permissions(self.request, split_bill)
        return split_bill

    @extend_schema(
        request=SplitBillCreateSerializer,
        responses={201: SplitBillSerializer, 400: ErrorResponseSerializer, 403: ErrorResponseSerializer},
        tags=['split-bills'],
    )
    def create(self, request, *args, **kwargs):
        """
        Create a split bill.

        POST /api/split-bills/
        Body: {"group": "...", "description": "Dinner", "total_amount": 90000,
               "split_type": "equal", "participants": [{"user_id": "..."}]}
        """
        serializer = SplitBillCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            split_bill = services.create_split_bill(
                group_id=data['group'],
                created_by=request.user,
                description=data['description'],
                total_amount_minor=data['total_amount'],
                participants=[dict(p) for p in data['participants']],
                split_type=data['split_type'],
                paid_by_id=data.get('paid_by'),
                category=data['category'],
                currency=data.get('currency'),
                notes=data.get('notes', ''),
            )
        except SettlementServiceError as e:
            return error_response(e)

        split_bill = services.get_split_bill(split_bill_id=split_bill.id)
        return Response(SplitBillSerializer(split_bill).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        responses={200: SplitBillSerializer, 403: ErrorResponseSerializer, 404: ErrorResponseSerializer},
        tags=['split-bills'],
    )
    def retrieve(self, request, *args, pk=None, **kwargs):
        try:
            split_bill = self._get_split_bill(pk)
        except SettlementServiceError as e:
            return error_response(e)
        return Response(SplitBillSerializer(split_bill).data)

    @extend_schema(
        responses={200: PaymentSummaryResponseSerializer, 404: ErrorResponseSerializer},
        tags=['split-bills'],
    )
    @action(detail=True, methods=['get'], url_path='payment-summary')
    def payment_summary(self, request, pk=None):
        """
        Payment summary of a split bill and the debts still open on it.

        GET /api/split-bills/{id}/payment-summary/
        """
        try:
            split_bill = self._get_split_bill(pk)
            summary = services.get_payment_summary(split_bill.id)
        except SettlementServiceError as e:
            return error_response(e)

        return Response({
            'status': 'success',
            'data': {
                'summary': PaymentSummarySerializer(summary).data,
                'debts': SettlementTransactionSerializer(summary.debts, many=True).data,
                'split_bill': SplitBillSerializer(split_bill).data,
            },
        })

    @extend_schema(
        request=MarkPaidInputSerializer,
        responses={
            200: ParticipantResponseSerializer,
            404: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
        tags=['split-bills'],
    )
    @action(
        detail=True,
        methods=['post'],
        url_path=rf'participants/(?P<user_id>{UUID_PATTERN})/paid',
        url_name='mark-paid',
    )
    def mark_paid(self, request, pk=None, user_id=None):
        """
        Mark a participant's share as paid.

        POST /api/split-bills/{id}/participants/{user_id}/paid/
        Body: {"method": "upi", "note": "optional"}

        A retry after success answers 409 with status "already_settled".
        """
        input_serializer = MarkPaidInputSerializer(data=request.data)
        input_serializer.is_valid(raise_exception=True)
        participant_user_id = UUID(user_id)

        try:
            split_bill = self._get_split_bill(pk)
            participant = services.mark_as_paid(
                split_bill_id=split_bill.id,
                user_id=participant_user_id,
                method=input_serializer.validated_data['method'],
                note=input_serializer.validated_data.get('note', ''),
            )
        except AlreadySettledError as e:
            current = split_bill.participants.select_related('user').get(user_id=participant_user_id)
            return Response(
                {
                    'status': e.code,
                    'code': e.code,
                    'error': str(e),
                    'participant': SplitBillParticipantSerializer(current).data,
                },
                status=status.HTTP_409_CONFLICT
            )
        except SettlementServiceError as e:
            return error_response(e)

        return Response({
            'status': 'success',
            'participant': SplitBillParticipantSerializer(participant).data,
        })

    @extend_schema(
        request=None,
        responses={
            200: ParticipantResponseSerializer,
            404: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
        tags=['split-bills'],
    )
    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        """
        Reject the caller's share of a split bill. The payer absorbs it.

        POST /api/split-bills/{id}/reject/
        """
        try:
            split_bill = self._get_split_bill(pk)
            participant = services.reject(split_bill_id=split_bill.id, user_id=request.user.pk)
        except SettlementServiceError as e:
            return error_response(e)

        return Response({
            'status': 'success',
            'participant': SplitBillParticipantSerializer(participant).data,
        })

    @extend_schema(
        responses={200: OutstandingSharesResponseSerializer},
        description="Get all pending shares the current user still owes.",
        tags=['split-bills'],
    )
    @action(detail=False, methods=['get'])
    def my_outstanding(self, request):
        """GET /api/split-bills/my_outstanding/"""
        shares = list(services.get_outstanding_shares(user=request.user))
        return Response({
            'total_outstanding': sum(share.amount_owed_minor for share in shares),
            'count': len(shares),
            'shares': OutstandingShareSerializer(shares, many=True).data,
        })

    @extend_schema(
        responses={200: PaymentHistorySerializer(many=True)},
        description="Paid shares the current user sent or received, newest first.",
        tags=['split-bills'],
    )
    @action(detail=False, methods=['get'])
    def history(self, request):
        """GET /api/split-bills/history/"""
        history = services.get_payment_history(user=request.user)
        page = self.paginate_queryset(history)
        serializer = PaymentHistorySerializer(page, many=True, context={'request': request})
        return self.get_paginated_response(serializer.data)


class ExpenseViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for expense records.

    list: Own expenses plus those of the user's groups (filter by group)
    create: Record an expense
    retrieve: Get a specific expense
    """

    queryset = Expense.objects.select_related('payer', 'group')
    serializer_class = ExpenseSerializer
    permission_classes = [IsAuthenticated, CanViewExpense]
    pagination_class = SettlementPagination

    def get_queryset(self):
        if self.action == 'list':
            filter_serializer = SplitBillFilterSerializer(data=self.request.query_params)
            filter_serializer.is_valid(raise_exception=True)
            return services.get_visible_expenses(
                user=self.request.user,
                group_id=filter_serializer.validated_data.get('group'),
            )
        return super().get_queryset()

    @extend_schema(
        request=ExpenseCreateSerializer,
        responses={201: ExpenseSerializer, 400: ErrorResponseSerializer, 403: ErrorResponseSerializer},
        tags=['expenses'],
    )
    def create(self, request, *args, **kwargs):
        serializer = ExpenseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            expense = services.create_expense(
                payer=request.user,
                description=data['description'],
                amount_minor=data['amount'],
                group_id=data.get('group'),
                category=data['category'],
                currency=data.get('currency'),
            )
        except SettlementServiceError as e:
            return error_response(e)

        return Response(ExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)


@extend_schema(
    responses={
        200: SettlementResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        500: ErrorResponseSerializer,
    },
    description="Minimal set of payments that settles every balance in the group.",
    tags=['settlement'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def group_settlement(request, group_id):
    """GET /api/groups/{group_id}/settlement/"""
    try:
        group = _get_member_group(group_id, request.user)
        transactions = services.get_group_settlement(group.id)
    except SettlementServiceError as e:
        return error_response(e)

    return Response({
        'status': 'success',
        'group_id': group.id,
        'settlement': SettlementTransactionSerializer(transactions, many=True).data,
    })


@extend_schema(
    responses={
        200: BalancesResponseSerializer,
        403: ErrorResponseSerializer,
        404: ErrorResponseSerializer,
        500: ErrorResponseSerializer,
    },
    description="Net balance of every member: positive is owed to them, negative they owe.",
    tags=['settlement'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def group_balances(request, group_id):
    """GET /api/groups/{group_id}/balances/"""
    try:
        group = _get_member_group(group_id, request.user)
        balances = services.get_group_balances(group.id)
    except SettlementServiceError as e:
        return error_response(e)

    rows = [
        {'user_id': user_id, 'net': net}
        for user_id, net in sorted(balances.items(), key=lambda item: str(item[0]))
    ]
    return Response({
        'status': 'success',
        'group_id': group.id,
        'balances': BalanceSerializer(rows, many=True).data,
    })
