"""
Split bill management service.

Creates split bills with exact integer splitting and answers list queries.

The splitting algorithm never loses a minor unit:
    1. Compute each share with floor division
    2. Give the whole remainder to the remainder holder (the payer when
       they take part, otherwise the first listed participant)
    3. Verify the shares sum to the total (safety check)
"""

import logging
from typing import Hashable, List, Optional, Sequence, Tuple
from uuid import UUID

from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.groups.models import Group
from apps.settlements.models import (
    Category,
    ParticipantStatus,
    PaymentMethod,
    SplitBill,
    SplitBillParticipant,
    SplitType,
)

from . import cache
from .exceptions import (
    GroupNotFoundError,
    InvalidAmountError,
    InvalidSplitError,
    NotGroupMemberError,
    SplitBillNotFoundError,
)
from .ledger import ensure_minor_units

logger = logging.getLogger(__name__)

FULL_PERCENTAGE_BP = 10_000


def calculate_shares(
    *,
    total: int,
    participants: Sequence[dict],
    split_type: str,
    remainder_holder_id: Hashable,
) -> List[Tuple[Hashable, int, Optional[int]]]:
    """
    Turn a bill total into one integer share per participant.

    Args:
        total: Bill total in minor units
        participants: Dicts with ``user_id`` plus ``amount`` (custom) or
            ``percentage_bp`` (percentage, basis points)
        split_type: One of SplitType
        remainder_holder_id: User who absorbs the rounding remainder; must
            be one of the participants

    Returns:
        List of (user_id, amount, percentage_bp) tuples in input order

    Raises:
        InvalidAmountError: If an amount is not a non-negative int
        InvalidSplitError: If shares cannot make up the total exactly

    Example:
        1000 split equally among 3 with the first as holder::

            >>> calculate_shares(total=1000, participants=[{'user_id': 'a'},
            ...     {'user_id': 'b'}, {'user_id': 'c'}], split_type='equal',
            ...     remainder_holder_id='a')
            [('a', 334, None), ('b', 333, None), ('c', 333, None)]
    """
    ensure_minor_units(total, label='Total amount')
    if not participants:
        raise InvalidSplitError("At least one participant required")

    user_ids = [p['user_id'] for p in participants]
    if remainder_holder_id not in user_ids:
        raise InvalidSplitError("Remainder holder must be a participant")

    if split_type == SplitType.EQUAL:
        base, remainder = divmod(total, len(participants))
        shares = [(user_id, base, None) for user_id in user_ids]

    elif split_type == SplitType.PERCENTAGE:
        percentages = []
        for p in participants:
            bp = p.get('percentage_bp')
            if isinstance(bp, bool) or not isinstance(bp, int) or bp < 0:
                raise InvalidSplitError(
                    f"Percentage for {p['user_id']} must be a non-negative integer of basis points"
                )
            percentages.append(bp)
        if sum(percentages) != FULL_PERCENTAGE_BP:
            raise InvalidSplitError("Percentages must add up to 100%")
        shares = [
            (user_id, total * bp // FULL_PERCENTAGE_BP, bp)
            for user_id, bp in zip(user_ids, percentages)
        ]
        remainder = total - sum(amount for _, amount, _ in shares)

    elif split_type == SplitType.CUSTOM:
        shares = [
            (
                p['user_id'],
                ensure_minor_units(p.get('amount'), label=f"Amount for {p['user_id']}"),
                None,
            )
            for p in participants
        ]
        if sum(amount for _, amount, _ in shares) != total:
            raise InvalidSplitError("Sum of participant amounts must equal total amount")
        remainder = 0

    else:
        raise InvalidSplitError(f"Unknown split type: {split_type!r}")

    if remainder:
        shares = [
            (user_id, amount + remainder if user_id == remainder_holder_id else amount, bp)
            for user_id, amount, bp in shares
        ]

    if any(amount <= 0 for _, amount, _ in shares):
        raise InvalidSplitError("All participants must have positive amounts")

    # Safety check
    if sum(amount for _, amount, _ in shares) != total:
        raise InvalidSplitError(f"Split calculation error: shares do not sum to {total}")

    return shares


@transaction.atomic
def create_split_bill(
    *,
    group_id: UUID,
    created_by: User,
    description: str,
    total_amount_minor: int,
    participants: Sequence[dict],
    split_type: str = SplitType.EQUAL,
    paid_by_id: Optional[UUID] = None,
    category: str = Category.OTHER,
    currency: Optional[str] = None,
    notes: str = '',
) -> SplitBill:
    """
    Create a split bill and one participant share per user.

    The payer's own share is recorded as already paid (method ``self``).

    Args:
        group_id: UUID of the group
        created_by: User creating the bill (must be an active member)
        description: Bill description
        total_amount_minor: Total in minor units, must be positive
        participants: Dicts with ``user_id`` and split-specific fields
        split_type: equal, percentage, or custom
        paid_by_id: Payer credited by the ledger; defaults to the creator
        category: Category label
        currency: ISO code; defaults to settings.DEFAULT_CURRENCY
        notes: Optional notes

    Returns:
        Created SplitBill with participants

    Raises:
        GroupNotFoundError: If the group doesn't exist
        NotGroupMemberError: If the creator is not an active member
        InvalidAmountError: If the total is not a positive int
        InvalidSplitError: If participants or shares are invalid
    """
    try:
        group = Group.objects.get(id=group_id)
    except Group.DoesNotExist:
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    member_ids = group.active_member_ids()
    if created_by.pk not in member_ids:
        raise NotGroupMemberError("You must be a member of the group to create split bills")

    ensure_minor_units(total_amount_minor, label='Total amount')
    if total_amount_minor == 0:
        raise InvalidAmountError("Total amount must be greater than 0")

    user_ids = [p['user_id'] for p in participants]
    if not user_ids:
        raise InvalidSplitError("At least one participant required")
    if len(set(user_ids)) != len(user_ids):
        raise InvalidSplitError("Duplicate participants are not allowed")
    if any(user_id not in member_ids for user_id in user_ids):
        raise InvalidSplitError("All participants must be active members of the group")

    payer_id = paid_by_id or created_by.pk
    if payer_id not in member_ids:
        raise InvalidSplitError("The payer must be an active member of the group")
    if not any(user_id != payer_id for user_id in user_ids):
        raise InvalidSplitError("Cannot create split bill with only yourself")

    holder_id = payer_id if payer_id in user_ids else user_ids[0]
    shares = calculate_shares(
        total=total_amount_minor,
        participants=participants,
        split_type=split_type,
        remainder_holder_id=holder_id,
    )

    extra = {'currency': currency} if currency else {}
    split_bill = SplitBill.objects.create(
        group=group,
        created_by=created_by,
        paid_by_id=payer_id,
        description=description,
        total_amount_minor=total_amount_minor,
        split_type=split_type,
        category=category,
        notes=notes,
        **extra,
    )

    now = timezone.now()
    for user_id, amount, bp in shares:
        is_payer = user_id == payer_id
        SplitBillParticipant.objects.create(
            split_bill=split_bill,
            user_id=user_id,
            amount_owed_minor=amount,
            percentage_bp=bp,
            status=ParticipantStatus.PAID if is_payer else ParticipantStatus.PENDING,
            paid_at=now if is_payer else None,
            payment_method=PaymentMethod.SELF if is_payer else '',
        )

    cache.invalidate(group_id=group.id)
    logger.info(
        "Split bill %s created in group %s: %d minor units over %d participant(s)",
        split_bill.id, group.id, total_amount_minor, len(shares),
    )
    return split_bill


def get_split_bill(*, split_bill_id: UUID) -> SplitBill:
    try:
        return (
            SplitBill.objects
            .select_related('group', 'created_by', 'paid_by')
            .prefetch_related('participants__user')
            .get(id=split_bill_id)
        )
    except SplitBill.DoesNotExist:
        raise SplitBillNotFoundError(f"Split bill with ID {split_bill_id} not found")


def get_user_split_bills(*, user: User, group_id: Optional[UUID] = None) -> QuerySet[SplitBill]:
    """Bills the user created, paid, or takes part in; optionally one group only."""
    queryset = SplitBill.objects.filter(
        Q(created_by=user) | Q(paid_by=user) | Q(participants__user=user)
    )
    if group_id:
        queryset = queryset.filter(group_id=group_id)
    return (
        queryset
        .select_related('group', 'created_by', 'paid_by')
        .prefetch_related('participants__user')
        .distinct()
    )


def get_outstanding_shares(*, user: User) -> QuerySet[SplitBillParticipant]:
    """Pending shares the user still owes to someone else."""
    return (
        SplitBillParticipant.objects
        .filter(user=user, status=ParticipantStatus.PENDING)
        .exclude(split_bill__paid_by=user)
        .select_related('split_bill', 'split_bill__paid_by')
        .order_by('created_at')
    )


def get_payment_history(*, user: User) -> QuerySet[SplitBillParticipant]:
    """
    Paid shares the user sent or received, newest first.

    The payer's own ``self`` shares are not payments and are left out.
    """
    return (
        SplitBillParticipant.objects
        .filter(status=ParticipantStatus.PAID)
        .exclude(payment_method=PaymentMethod.SELF)
        .filter(Q(user=user) | Q(split_bill__paid_by=user))
        .select_related('user', 'split_bill', 'split_bill__paid_by')
        .order_by('-paid_at')
    )
