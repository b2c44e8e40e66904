"""
Settlements services - Business logic layer.

This package contains the settlement engine and its supporting operations:
- Ledger aggregation (net balance per user)
- Settlement planning (minimal pairwise payments)
- Participant state machine (mark paid / reject)
- Read-side queries with invalidate-on-write caching
- Split bill and expense management
"""

# Ledger & Planner
from .ledger import (
    compute_balances,
    check_conservation,
    ensure_minor_units,
)
from .planner import plan

# Participant State Machine
from .participant_state import (
    mark_as_paid,
    reject,
)

# Query Service
from .queries import (
    get_group_settlement,
    get_group_balances,
    get_payment_summary,
    load_group_snapshot,
    summarize_split_bill,
)

# Split Bills & Expenses
from .split_bills import (
    calculate_shares,
    create_split_bill,
    get_split_bill,
    get_user_split_bills,
    get_outstanding_shares,
    get_payment_history,
)
from .expenses import (
    create_expense,
    get_visible_expenses,
)

# Domain Exceptions
from .exceptions import (
    SettlementServiceError,
    LedgerInconsistencyError,
    TransitionConflictError,
    AlreadySettledError,
    RejectionOfPaidBillError,
    InvalidTransitionError,
    GroupNotFoundError,
    SplitBillNotFoundError,
    ParticipantNotFoundError,
    InvalidAmountError,
    InvalidSplitError,
    NotGroupMemberError,
)

__all__ = [
    # Ledger & Planner
    'compute_balances',
    'check_conservation',
    'ensure_minor_units',
    'plan',
    # Participant State Machine
    'mark_as_paid',
    'reject',
    # Query Service
    'get_group_settlement',
    'get_group_balances',
    'get_payment_summary',
    'load_group_snapshot',
    'summarize_split_bill',
    # Split Bills & Expenses
    'calculate_shares',
    'create_split_bill',
    'get_split_bill',
    'get_user_split_bills',
    'get_outstanding_shares',
    'get_payment_history',
    'create_expense',
    'get_visible_expenses',
    # Exceptions
    'SettlementServiceError',
    'LedgerInconsistencyError',
    'TransitionConflictError',
    'AlreadySettledError',
    'RejectionOfPaidBillError',
    'InvalidTransitionError',
    'GroupNotFoundError',
    'SplitBillNotFoundError',
    'ParticipantNotFoundError',
    'InvalidAmountError',
    'InvalidSplitError',
    'NotGroupMemberError',
]
