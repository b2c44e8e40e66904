"""
Ledger aggregation - folds split bills into one net balance per user.

Positive balance: the group owes the user. Negative: the user owes the
group. All arithmetic is on ``int`` minor units; floats and Decimals are
rejected on the way in rather than rounded.
"""

import logging
from collections import defaultdict
from typing import Dict, Hashable, Iterable

from apps.settlements.domain import ExpenseRecord, SplitBillRecord

from .exceptions import InvalidAmountError, LedgerInconsistencyError

logger = logging.getLogger(__name__)


def ensure_minor_units(value, *, label: str = 'amount') -> int:
    """
    Return ``value`` if it is a non-negative integer amount.

    Raises:
        InvalidAmountError: For bools, floats, Decimals, strings, or negatives.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(
            f"{label} must be an integer number of minor units, got {value!r}"
        )
    if value < 0:
        raise InvalidAmountError(f"{label} cannot be negative, got {value}")
    return value


def compute_balances(
    group_id: Hashable,
    expenses: Iterable[ExpenseRecord],
    split_bills: Iterable[SplitBillRecord],
) -> Dict[Hashable, int]:
    """
    Compute every member's net balance for a group.

    For each pending participant, the share is debited from the participant
    and credited to the bill's payer. Paid shares are already settled and
    rejected shares are dropped, so neither contributes. Expenses are
    validated but never enter balances: only split bills create debts.

    Every user touched by a group bill appears in the result, with 0 when
    their position is flat.

    Args:
        group_id: Group whose balances are wanted
        expenses: Expense snapshots (personal or group)
        split_bills: Split bill snapshots, all belonging to ``group_id``

    Returns:
        Mapping of user_id to net balance in minor units; values sum to 0

    Raises:
        InvalidAmountError: If any amount is not a non-negative int
        LedgerInconsistencyError: If a bill belongs to another group, or
            the balances do not sum to zero
    """
    for expense in expenses:
        ensure_minor_units(expense.amount, label=f"Expense {expense.id} amount")

    balances = defaultdict(int)

    for bill in split_bills:
        if bill.group_id != group_id:
            raise LedgerInconsistencyError(
                f"Split bill {bill.id} belongs to group {bill.group_id}, not {group_id}"
            )
        ensure_minor_units(bill.total_amount, label=f"Split bill {bill.id} total")

        creditor = bill.creditor_id
        balances[creditor] += 0

        for share in bill.participants:
            amount = ensure_minor_units(
                share.amount_owed,
                label=f"Share of {share.user_id} in {bill.id}",
            )
            balances[share.user_id] += 0
            if not share.is_pending:
                continue
            balances[share.user_id] -= amount
            balances[creditor] += amount

    result = dict(balances)
    check_conservation(result, context=f"group {group_id}")
    return result


def check_conservation(balances: Dict[Hashable, int], *, context: str = '') -> None:
    """Raise LedgerInconsistencyError unless balances sum to exactly zero."""
    total = sum(balances.values())
    if total != 0:
        logger.error(
            "Ledger inconsistency for %s: balances sum to %d", context or 'balances', total
        )
        raise LedgerInconsistencyError(
            f"Balances for {context or 'input'} sum to {total}, expected 0"
        )
