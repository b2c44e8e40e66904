"""
Immutable snapshots consumed by the settlement engine.

The ledger and planner never touch the ORM: callers load rows once and
pass these value objects in, so balance computation is a pure function
of its arguments. All amounts are integers in minor currency units.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Hashable, Optional, Tuple

from .models import ParticipantStatus


@dataclass(frozen=True)
class ExpenseRecord:
    id: Hashable
    group_id: Optional[Hashable]  # None for personal expenses
    payer_id: Hashable
    amount: int
    category: str = 'Other'
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, expense):
        return cls(
            id=expense.id,
            group_id=expense.group_id,
            payer_id=expense.payer_id,
            amount=expense.amount_minor,
            category=expense.category,
            created_at=expense.created_at,
        )


@dataclass(frozen=True)
class ParticipantShare:
    split_bill_id: Hashable
    user_id: Hashable
    amount_owed: int
    status: str = ParticipantStatus.PENDING
    paid_at: Optional[datetime] = None
    payment_method: str = ''

    @property
    def is_pending(self):
        return self.status == ParticipantStatus.PENDING

    @classmethod
    def from_model(cls, participant):
        return cls(
            split_bill_id=participant.split_bill_id,
            user_id=participant.user_id,
            amount_owed=participant.amount_owed_minor,
            status=participant.status,
            paid_at=participant.paid_at,
            payment_method=participant.payment_method,
        )


@dataclass(frozen=True)
class SplitBillRecord:
    id: Hashable
    group_id: Hashable
    created_by_id: Hashable
    total_amount: int
    participants: Tuple[ParticipantShare, ...] = ()
    payer_id: Optional[Hashable] = None
    description: str = ''

    @property
    def creditor_id(self):
        """Who the ledger credits: the payer when tracked, else the creator."""
        return self.payer_id if self.payer_id is not None else self.created_by_id

    @classmethod
    def from_model(cls, split_bill):
        """Build from a SplitBill whose participants are prefetched."""
        return cls(
            id=split_bill.id,
            group_id=split_bill.group_id,
            created_by_id=split_bill.created_by_id,
            payer_id=split_bill.paid_by_id,
            total_amount=split_bill.total_amount_minor,
            description=split_bill.description,
            participants=tuple(
                ParticipantShare.from_model(p) for p in split_bill.participants.all()
            ),
        )


@dataclass(frozen=True)
class SettlementTransaction:
    """Debtor pays creditor ``amount`` minor units."""

    from_user_id: Hashable
    to_user_id: Hashable
    amount: int

    def __post_init__(self):
        if self.from_user_id == self.to_user_id:
            raise ValueError("A settlement transaction cannot pay oneself")
        if not isinstance(self.amount, int) or isinstance(self.amount, bool) or self.amount <= 0:
            raise ValueError(f"Settlement amount must be a positive integer, got {self.amount!r}")

    def as_dict(self):
        return {
            'from_user_id': self.from_user_id,
            'to_user_id': self.to_user_id,
            'amount': self.amount,
        }


@dataclass(frozen=True)
class PaymentSummary:
    """Per-bill payment view returned by the query service."""

    split_bill_id: Hashable
    total_amount: int
    total_owed: int
    total_paid: int
    balance: int
    paid_count: int
    pending_count: int
    rejected_count: int
    is_settled: bool
    is_cancelled: bool
    participants: Tuple[ParticipantShare, ...] = ()
    debts: Tuple[SettlementTransaction, ...] = field(default_factory=tuple)
