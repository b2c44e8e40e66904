"""
Participant state machine.

Each split-bill participant moves PENDING -> PAID or PENDING -> REJECTED
exactly once; both targets are terminal. Concurrency protection:

1. The bill row and the participant row are locked (SELECT FOR UPDATE)
2. The write is a conditional UPDATE filtered on ``status=PENDING``

so at most one transition per participant can ever succeed. A loser
re-reads the row and reports the conflict that matches what won.
"""

import logging
from typing import Hashable
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.settlements.models import (
    ParticipantStatus,
    PaymentMethod,
    SplitBill,
    SplitBillParticipant,
)

from . import cache
from .exceptions import (
    AlreadySettledError,
    InvalidTransitionError,
    ParticipantNotFoundError,
    RejectionOfPaidBillError,
    SplitBillNotFoundError,
)

logger = logging.getLogger(__name__)


def _lock(split_bill_id: UUID, user_id: Hashable):
    try:
        split_bill = SplitBill.objects.select_for_update().get(id=split_bill_id)
    except SplitBill.DoesNotExist:
        raise SplitBillNotFoundError(f"Split bill with ID {split_bill_id} not found")

    try:
        participant = (
            SplitBillParticipant.objects
            .select_for_update()
            .get(split_bill=split_bill, user_id=user_id)
        )
    except SplitBillParticipant.DoesNotExist:
        raise ParticipantNotFoundError(
            f"User {user_id} is not a participant in split bill {split_bill_id}"
        )

    return split_bill, participant


def _raise_for_paid_transition(participant):
    if participant.status == ParticipantStatus.PAID:
        raise AlreadySettledError("Payment already marked as paid")
    if participant.status == ParticipantStatus.REJECTED:
        raise InvalidTransitionError("Cannot pay a share that was rejected")


def _raise_for_reject_transition(participant):
    if participant.status == ParticipantStatus.PAID:
        raise RejectionOfPaidBillError("Cannot reject a share that was already paid")
    if participant.status == ParticipantStatus.REJECTED:
        raise InvalidTransitionError("Share already rejected")


def _compare_and_swap(participant, **changes) -> bool:
    """Apply ``changes`` only if the row is still PENDING."""
    updated = (
        SplitBillParticipant.objects
        .filter(pk=participant.pk, status=ParticipantStatus.PENDING)
        .update(updated_at=timezone.now(), **changes)
    )
    return updated == 1


def _roll_up(split_bill, now):
    """
    Refresh the bill's settled/cancelled flags after a transition.

    Settled: nothing pending and at least one non-payer share paid.
    Cancelled: every participant other than the payer rejected.
    """
    statuses = list(split_bill.participants.values_list('user_id', 'status'))
    others = [status for user_id, status in statuses if user_id != split_bill.paid_by_id]
    update_fields = []

    no_pending = all(status != ParticipantStatus.PENDING for _, status in statuses)
    if no_pending and ParticipantStatus.PAID in others and not split_bill.is_settled:
        split_bill.is_settled = True
        split_bill.settled_at = now
        update_fields += ['is_settled', 'settled_at']

    if others and all(s == ParticipantStatus.REJECTED for s in others) and not split_bill.is_cancelled:
        split_bill.is_cancelled = True
        split_bill.cancelled_at = now
        update_fields += ['is_cancelled', 'cancelled_at']

    if update_fields:
        split_bill.save(update_fields=update_fields + ['updated_at'])


@transaction.atomic
def mark_as_paid(
    *,
    split_bill_id: UUID,
    user_id: Hashable,
    method: str = PaymentMethod.OTHER,
    note: str = '',
) -> SplitBillParticipant:
    """
    Record that a participant has paid their share.

    Safe to retry: a second call for the same participant raises
    AlreadySettledError and changes nothing, so balances are identical
    after one call or many.

    Args:
        split_bill_id: UUID of the split bill
        user_id: Participant whose share was paid
        method: PaymentMethod label (no payment is executed)
        note: Optional free-text note

    Returns:
        The updated SplitBillParticipant

    Raises:
        SplitBillNotFoundError: If the bill doesn't exist
        ParticipantNotFoundError: If the user has no share in the bill
        AlreadySettledError: If the share is already paid
        InvalidTransitionError: If the share was rejected
    """
    split_bill, participant = _lock(split_bill_id, user_id)
    _raise_for_paid_transition(participant)

    now = timezone.now()
    if not _compare_and_swap(
        participant,
        status=ParticipantStatus.PAID,
        paid_at=now,
        payment_method=method,
        note=note,
    ):
        participant.refresh_from_db()
        _raise_for_paid_transition(participant)
        raise InvalidTransitionError("Participant state changed concurrently")

    participant.refresh_from_db()
    _roll_up(split_bill, now)
    cache.invalidate(group_id=split_bill.group_id, split_bill_id=split_bill.id)

    logger.info(
        "Participant %s marked paid on split bill %s via %s",
        user_id, split_bill.id, method,
    )
    return participant


@transaction.atomic
def reject(*, split_bill_id: UUID, user_id: Hashable) -> SplitBillParticipant:
    """
    Reject a participant's share of a split bill.

    The rejected share is dropped from outstanding balances; the payer
    absorbs it. The payer cannot reject their own share.

    Args:
        split_bill_id: UUID of the split bill
        user_id: Participant rejecting their share

    Returns:
        The updated SplitBillParticipant

    Raises:
        SplitBillNotFoundError: If the bill doesn't exist
        ParticipantNotFoundError: If the user has no share in the bill
        RejectionOfPaidBillError: If the share is already paid
        InvalidTransitionError: If already rejected, or the user is the payer
    """
    split_bill, participant = _lock(split_bill_id, user_id)

    if participant.user_id == split_bill.paid_by_id:
        raise InvalidTransitionError("Cannot reject your own bill")
    _raise_for_reject_transition(participant)

    now = timezone.now()
    if not _compare_and_swap(participant, status=ParticipantStatus.REJECTED, rejected_at=now):
        participant.refresh_from_db()
        _raise_for_reject_transition(participant)
        raise InvalidTransitionError("Participant state changed concurrently")

    participant.refresh_from_db()
    _roll_up(split_bill, now)
    cache.invalidate(group_id=split_bill.group_id, split_bill_id=split_bill.id)

    logger.info("Participant %s rejected split bill %s", user_id, split_bill.id)
    return participant
