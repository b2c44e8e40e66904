from decimal import Decimal

from rest_framework import serializers

from apps.accounts.serializers import UserMinimalSerializer
from .models import (
    Category,
    Expense,
    ParticipantStatus,
    PaymentMethod,
    SplitBill,
    SplitBillParticipant,
    SplitType,
)
from .services.split_bills import FULL_PERCENTAGE_BP


class MinorUnitsField(serializers.IntegerField):
    """
    Money in integer minor units (paise, cents).

    Only JSON integers are accepted. Strings and floats such as ``"10"`` or
    ``10.5`` are rejected instead of being coerced or rounded.
    """

    default_error_messages = {
        'not_integer': 'Amount must be an integer number of minor units.',
    }

    def __init__(self, **kwargs):
        kwargs.setdefault('min_value', 0)
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        if isinstance(data, bool) or not isinstance(data, int):
            self.fail('not_integer')
        return super().to_internal_value(data)


# =============================================================================
# Input Serializers
# =============================================================================

class SplitBillFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for split bill listing.

    Query Parameters:
        group (UUID): Filter by group ID
        is_settled (bool): Filter by settled flag
    """

    group = serializers.UUIDField(required=False)
    is_settled = serializers.BooleanField(required=False, allow_null=True, default=None)


class ParticipantInputSerializer(serializers.Serializer):
    """
    One participant of a new split bill.

    ``amount`` is used by custom splits. Percentage splits take either
    ``percentage_bp`` (basis points) or ``percentage`` with up to two
    decimals (``33.33``).
    """

    user_id = serializers.UUIDField()
    amount = MinorUnitsField(required=False)
    percentage_bp = serializers.IntegerField(required=False, min_value=0, max_value=FULL_PERCENTAGE_BP)
    percentage = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        required=False,
        min_value=Decimal('0'),
        max_value=Decimal('100'),
    )

    def validate(self, attrs):
        percentage = attrs.pop('percentage', None)
        if percentage is not None and 'percentage_bp' not in attrs:
            attrs['percentage_bp'] = int(percentage * 100)
        return attrs


class SplitBillCreateSerializer(serializers.Serializer):
    """Validate input for creating a split bill."""

    group = serializers.UUIDField()
    description = serializers.CharField(max_length=200)
    total_amount = MinorUnitsField(min_value=1)
    currency = serializers.CharField(max_length=3, required=False)
    split_type = serializers.ChoiceField(choices=SplitType.choices, default=SplitType.EQUAL)
    category = serializers.ChoiceField(choices=Category.choices, default=Category.OTHER)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    paid_by = serializers.UUIDField(required=False)
    participants = ParticipantInputSerializer(many=True, allow_empty=False)

    def validate(self, attrs):
        split_type = attrs['split_type']
        for index, participant in enumerate(attrs['participants']):
            if split_type == SplitType.CUSTOM and 'amount' not in participant:
                raise serializers.ValidationError({
                    'participants': f'Participant {index} needs an amount for a custom split'
                })
            if split_type == SplitType.PERCENTAGE and 'percentage_bp' not in participant:
                raise serializers.ValidationError({
                    'participants': f'Participant {index} needs a percentage for a percentage split'
                })
        return attrs


class MarkPaidInputSerializer(serializers.Serializer):
    """
    Validate input for marking a share as paid.

    Fields:
        method (str): How the participant paid (label only, nothing is charged)
        note (str): Optional note for the payment
    """

    method = serializers.ChoiceField(
        choices=[c for c in PaymentMethod.choices if c[0] != PaymentMethod.SELF],
        default=PaymentMethod.OTHER,
    )
    note = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class ExpenseCreateSerializer(serializers.Serializer):
    """Validate input for recording an expense."""

    description = serializers.CharField(max_length=200)
    amount = MinorUnitsField(min_value=1)
    group = serializers.UUIDField(required=False, allow_null=True)
    category = serializers.ChoiceField(choices=Category.choices, default=Category.OTHER)
    currency = serializers.CharField(max_length=3, required=False)


# =============================================================================
# Output Serializers
# =============================================================================

class SplitBillParticipantSerializer(serializers.ModelSerializer):
    """Serializer for participant shares."""

    user = UserMinimalSerializer(read_only=True)
    amount_owed = serializers.IntegerField(source='amount_owed_minor', read_only=True)

    class Meta:
        model = SplitBillParticipant
        fields = [
            'id',
            'split_bill',
            'user',
            'amount_owed',
            'percentage_bp',
            'status',
            'paid_at',
            'payment_method',
            'note',
            'rejected_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class SplitBillSerializer(serializers.ModelSerializer):
    """Main serializer for split bills."""

    created_by = UserMinimalSerializer(read_only=True)
    paid_by = UserMinimalSerializer(read_only=True)
    total_amount = serializers.IntegerField(source='total_amount_minor', read_only=True)
    participants = SplitBillParticipantSerializer(many=True, read_only=True)

    class Meta:
        model = SplitBill
        fields = [
            'id',
            'group',
            'created_by',
            'paid_by',
            'description',
            'total_amount',
            'currency',
            'split_type',
            'category',
            'notes',
            'is_settled',
            'settled_at',
            'is_cancelled',
            'cancelled_at',
            'participants',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class SplitBillListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list views."""

    paid_by = UserMinimalSerializer(read_only=True)
    total_amount = serializers.IntegerField(source='total_amount_minor', read_only=True)

    class Meta:
        model = SplitBill
        fields = [
            'id',
            'group',
            'paid_by',
            'description',
            'total_amount',
            'currency',
            'split_type',
            'category',
            'is_settled',
            'is_cancelled',
            'created_at',
        ]
        read_only_fields = fields


class OutstandingShareSerializer(serializers.ModelSerializer):
    """A pending share with enough bill context to pay it."""

    amount_owed = serializers.IntegerField(source='amount_owed_minor', read_only=True)
    split_bill = SplitBillListSerializer(read_only=True)

    class Meta:
        model = SplitBillParticipant
        fields = ['id', 'split_bill', 'amount_owed', 'status', 'created_at']
        read_only_fields = fields


class PaymentHistorySerializer(serializers.ModelSerializer):
    """
    A paid share seen from the requesting user.

    ``direction`` is ``sent`` when the user paid the share and
    ``received`` when the user is the bill's payer.
    """

    user = UserMinimalSerializer(read_only=True)
    split_bill = SplitBillListSerializer(read_only=True)
    amount_owed = serializers.IntegerField(source='amount_owed_minor', read_only=True)
    direction = serializers.SerializerMethodField()

    class Meta:
        model = SplitBillParticipant
        fields = [
            'id',
            'split_bill',
            'user',
            'amount_owed',
            'direction',
            'payment_method',
            'note',
            'paid_at',
        ]
        read_only_fields = fields

    def get_direction(self, obj):
        request = self.context.get('request')
        if request and obj.user_id == request.user.pk:
            return 'sent'
        return 'received'


class ExpenseSerializer(serializers.ModelSerializer):
    """Serializer for expense records."""

    payer = UserMinimalSerializer(read_only=True)
    amount = serializers.IntegerField(source='amount_minor', read_only=True)

    class Meta:
        model = Expense
        fields = [
            'id',
            'group',
            'payer',
            'description',
            'amount',
            'currency',
            'category',
            'created_at',
        ]
        read_only_fields = fields


class SettlementTransactionSerializer(serializers.Serializer):
    """One payment of a settlement plan."""

    from_user_id = serializers.UUIDField()
    to_user_id = serializers.UUIDField()
    amount = serializers.IntegerField()


class BalanceSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    net = serializers.IntegerField()


class ParticipantShareSerializer(serializers.Serializer):
    """Participant share snapshot inside a payment summary."""

    user_id = serializers.UUIDField()
    amount_owed = serializers.IntegerField()
    status = serializers.ChoiceField(choices=ParticipantStatus.choices)
    paid_at = serializers.DateTimeField(allow_null=True)
    payment_method = serializers.CharField(allow_blank=True)


class PaymentSummarySerializer(serializers.Serializer):
    """Serializer for a split bill's payment summary."""

    total_amount = serializers.IntegerField()
    total_owed = serializers.IntegerField()
    total_paid = serializers.IntegerField()
    balance = serializers.IntegerField()
    paid_count = serializers.IntegerField()
    pending_count = serializers.IntegerField()
    rejected_count = serializers.IntegerField()
    is_settled = serializers.BooleanField()
    is_cancelled = serializers.BooleanField()
    participants = ParticipantShareSerializer(many=True)
