"""
Settlement query service - read-only answers for the UI and chat cards.

Every answer is recomputed from a fresh snapshot on a cache miss; these
functions never change participant state.
"""

import logging
from typing import Dict, Hashable, List, Tuple
from uuid import UUID

from apps.groups.models import Group
from apps.settlements.domain import (
    ExpenseRecord,
    ParticipantShare,
    PaymentSummary,
    SettlementTransaction,
    SplitBillRecord,
)
from apps.settlements.models import Expense, ParticipantStatus, SplitBill

from . import cache
from .exceptions import GroupNotFoundError, SplitBillNotFoundError
from .ledger import compute_balances
from .planner import plan

logger = logging.getLogger(__name__)


def load_group_snapshot(group_id: UUID) -> Tuple[List[ExpenseRecord], List[SplitBillRecord]]:
    """
    Load every expense and split bill of a group as immutable records.

    Raises:
        GroupNotFoundError: If the group doesn't exist
    """
    if not Group.objects.filter(id=group_id).exists():
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    expenses = [
        ExpenseRecord.from_model(expense)
        for expense in Expense.objects.filter(group_id=group_id)
    ]
    split_bills = [
        SplitBillRecord.from_model(bill)
        for bill in SplitBill.objects.filter(group_id=group_id).prefetch_related('participants')
    ]
    return expenses, split_bills


def get_group_balances(group_id: UUID) -> Dict[Hashable, int]:
    """
    Net balance per user for a group.

    Raises:
        GroupNotFoundError: If the group doesn't exist
        LedgerInconsistencyError: If the balances break conservation
    """
    def compute():
        expenses, split_bills = load_group_snapshot(group_id)
        return compute_balances(group_id, expenses, split_bills)

    return cache.get_or_compute(cache.GROUP, group_id, 'balances', compute)


def get_group_settlement(group_id: UUID) -> List[SettlementTransaction]:
    """
    Current settlement plan for a group.

    Example:
        >>> for tx in get_group_settlement(group.id):
        ...     print(f"{tx.from_user_id} pays {tx.to_user_id} {tx.amount}")

    Raises:
        GroupNotFoundError: If the group doesn't exist
        LedgerInconsistencyError: If the balances break conservation
    """
    def compute():
        return plan(get_group_balances(group_id))

    return cache.get_or_compute(cache.GROUP, group_id, 'plan', compute)


def summarize_split_bill(bill: SplitBillRecord, *, is_settled=False, is_cancelled=False) -> PaymentSummary:
    """
    Payment view of one bill, reusing the ledger and planner on just its shares.

    The payer's own share is neither owed nor paid to anyone, so it is left
    out of the totals.
    """
    others = [p for p in bill.participants if p.user_id != bill.creditor_id]
    total_owed = sum(p.amount_owed for p in others if p.status != ParticipantStatus.REJECTED)
    total_paid = sum(p.amount_owed for p in others if p.status == ParticipantStatus.PAID)

    balances = compute_balances(bill.group_id, [], [bill])
    debts = plan(balances)

    return PaymentSummary(
        split_bill_id=bill.id,
        total_amount=bill.total_amount,
        total_owed=total_owed,
        total_paid=total_paid,
        balance=total_owed - total_paid,
        paid_count=sum(1 for p in bill.participants if p.status == ParticipantStatus.PAID),
        pending_count=sum(1 for p in bill.participants if p.status == ParticipantStatus.PENDING),
        rejected_count=sum(1 for p in bill.participants if p.status == ParticipantStatus.REJECTED),
        is_settled=is_settled,
        is_cancelled=is_cancelled,
        participants=tuple(sorted(bill.participants, key=_share_order)),
        debts=tuple(debts),
    )


def _share_order(share: ParticipantShare):
    return str(share.user_id)


def get_payment_summary(split_bill_id: UUID) -> PaymentSummary:
    """
    Per-bill payment summary and the debts still open on it.

    Raises:
        SplitBillNotFoundError: If the split bill doesn't exist
    """
    def compute():
        try:
            split_bill = SplitBill.objects.prefetch_related('participants').get(id=split_bill_id)
        except SplitBill.DoesNotExist:
            raise SplitBillNotFoundError(f"Split bill with ID {split_bill_id} not found")
        return summarize_split_bill(
            SplitBillRecord.from_model(split_bill),
            is_settled=split_bill.is_settled,
            is_cancelled=split_bill.is_cancelled,
        )

    return cache.get_or_compute(cache.SPLIT_BILL, split_bill_id, 'summary', compute)
