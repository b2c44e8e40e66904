"""
Settlement planning - greedy minimum-transaction netting.

Repeatedly matches the largest creditor with the largest debtor and emits
one payment for the smaller of the two amounts. Each step clears at least
one party, so N non-zero balances need at most N - 1 payments. Ties are
broken by ascending ``str(user_id)`` so identical input yields an identical
plan.
"""

import heapq
import logging
from typing import Dict, Hashable, List

from apps.settlements.domain import SettlementTransaction

from .exceptions import InvalidAmountError, LedgerInconsistencyError
from .ledger import check_conservation

logger = logging.getLogger(__name__)


def plan(balances: Dict[Hashable, int]) -> List[SettlementTransaction]:
    """
    Produce the payments that drive every balance to zero.

    Args:
        balances: user_id -> net balance in minor units (positive = owed)

    Returns:
        Ordered list of SettlementTransaction; empty when nothing is owed

    Raises:
        InvalidAmountError: If a balance is not an int
        LedgerInconsistencyError: If balances do not sum to zero
    """
    for user_id, net in balances.items():
        if isinstance(net, bool) or not isinstance(net, int):
            raise InvalidAmountError(
                f"Balance of {user_id} must be an integer number of minor units, got {net!r}"
            )
    check_conservation(balances, context='settlement plan input')

    # Max-heaps via negated amounts: (-remaining, tie-break key, user_id)
    creditors = []
    debtors = []
    for user_id, net in balances.items():
        if net > 0:
            creditors.append((-net, str(user_id), user_id))
        elif net < 0:
            debtors.append((net, str(user_id), user_id))
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    transactions = []
    while creditors and debtors:
        neg_credit, credit_key, creditor = heapq.heappop(creditors)
        neg_debt, debt_key, debtor = heapq.heappop(debtors)

        credit = -neg_credit
        debt = -neg_debt
        amount = min(credit, debt)

        transactions.append(
            SettlementTransaction(from_user_id=debtor, to_user_id=creditor, amount=amount)
        )

        if credit > amount:
            heapq.heappush(creditors, (-(credit - amount), credit_key, creditor))
        if debt > amount:
            heapq.heappush(debtors, (-(debt - amount), debt_key, debtor))

    if creditors or debtors:
        # Unreachable when the zero-sum check passed
        raise LedgerInconsistencyError("Unmatched balances left after netting")

    logger.debug(
        "Planned %d transaction(s) for %d non-zero balance(s)",
        len(transactions),
        sum(1 for net in balances.values() if net),
    )
    return transactions
