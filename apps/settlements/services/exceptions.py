"""
Domain exceptions for the settlements app.

These exceptions are raised by the services layer and translated to HTTP
responses in views. Services never catch them; a correctness error in the
ledger or planner always reaches the caller.

Exception Hierarchy:
    SettlementServiceError (base)
    ├── LedgerInconsistencyError       internal invariant broken (500)
    ├── TransitionConflictError        terminal state reached (409)
    │   ├── AlreadySettledError
    │   ├── RejectionOfPaidBillError
    │   └── InvalidTransitionError
    ├── GroupNotFoundError             (404)
    ├── SplitBillNotFoundError         (404)
    ├── ParticipantNotFoundError       (404)
    ├── NotGroupMemberError            (403)
    ├── InvalidAmountError             (400)
    └── InvalidSplitError              (400)
"""


class SettlementServiceError(Exception):
    """Base exception for all settlement service errors."""
    code = 'settlement_error'


class LedgerInconsistencyError(SettlementServiceError):
    """
    Raised when balances do not sum to zero, or records contradict each other.

    This is a programming error, never a user error. Callers must log it and
    refuse to act on the result.
    """
    code = 'ledger_inconsistency'


class TransitionConflictError(SettlementServiceError):
    """
    Base for participant state transitions refused because a terminal state
    has already been reached. Safe to retry; the UI shows "already handled".
    """
    code = 'transition_conflict'


class AlreadySettledError(TransitionConflictError):
    """Raised when marking as paid a participant who has already paid."""
    code = 'already_settled'


class RejectionOfPaidBillError(TransitionConflictError):
    """Raised when rejecting a share that has already been paid."""
    code = 'rejection_of_paid_bill'


class InvalidTransitionError(TransitionConflictError):
    """Raised for any other transition out of a terminal state."""
    code = 'invalid_transition'


class GroupNotFoundError(SettlementServiceError):
    """Raised when a group does not exist."""
    code = 'group_not_found'


class SplitBillNotFoundError(SettlementServiceError):
    """Raised when a split bill does not exist."""
    code = 'split_bill_not_found'


class ParticipantNotFoundError(SettlementServiceError):
    """Raised when a user has no share in the split bill."""
    code = 'participant_not_found'


class InvalidAmountError(SettlementServiceError):
    """Raised for negative or non-integer minor-unit amounts. Never rounded."""
    code = 'invalid_amount'


class InvalidSplitError(SettlementServiceError):
    """Raised when participant shares cannot make up the bill total."""
    code = 'invalid_split'


class NotGroupMemberError(SettlementServiceError):
    """Raised when a user acts on a group they are not an active member of."""
    code = 'not_group_member'
