"""
Participant state machine tests.

Tests cover:
- PENDING -> PAID / PENDING -> REJECTED and terminal states
- Retry safety of mark-as-paid
- Bill roll-up flags
- Cache invalidation on transitions
- Concurrency protection (race conditions)
"""

import threading
from uuid import uuid4

import pytest
from django.core.cache import caches
from django.conf import settings
from django.db import connection
from django.test import TransactionTestCase

from apps.accounts.models import User
from apps.groups.models import Group, GroupMembership, GroupRole
from apps.settlements.models import ParticipantStatus, PaymentMethod, SplitBillParticipant
from apps.settlements.services import cache as settlement_cache
from apps.settlements.services import (
    create_split_bill,
    get_group_balances,
    get_group_settlement,
    get_payment_summary,
    mark_as_paid,
    reject,
)
from apps.settlements.services.exceptions import (
    AlreadySettledError,
    InvalidTransitionError,
    ParticipantNotFoundError,
    RejectionOfPaidBillError,
    SplitBillNotFoundError,
    TransitionConflictError,
)


# ============================================================================
# MARK AS PAID
# ============================================================================

@pytest.mark.django_db
class TestMarkAsPaid:

    def test_pending_share_becomes_paid(self, dinner_bill, bob):
        participant = mark_as_paid(
            split_bill_id=dinner_bill.id,
            user_id=bob.id,
            method=PaymentMethod.UPI,
            note='Sent via UPI',
        )

        assert participant.status == ParticipantStatus.PAID
        assert participant.paid_at is not None
        assert participant.payment_method == PaymentMethod.UPI
        assert participant.note == 'Sent via UPI'

    def test_second_call_reports_already_settled(self, dinner_bill, bob):
        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)

        with pytest.raises(AlreadySettledError):
            mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id, method=PaymentMethod.CASH)

        participant = SplitBillParticipant.objects.get(split_bill=dinner_bill, user=bob)
        assert participant.payment_method == PaymentMethod.OTHER

    def test_balances_identical_after_retries(self, dinner_bill, trip_group, bob):
        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)
        after_one = get_group_balances(trip_group.id)

        for _ in range(3):
            with pytest.raises(AlreadySettledError):
                mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)

        assert get_group_balances(trip_group.id) == after_one

    def test_payer_share_already_settled(self, dinner_bill, alice):
        with pytest.raises(AlreadySettledError):
            mark_as_paid(split_bill_id=dinner_bill.id, user_id=alice.id)

    def test_rejected_share_cannot_be_paid(self, dinner_bill, bob):
        reject(split_bill_id=dinner_bill.id, user_id=bob.id)

        with pytest.raises(InvalidTransitionError):
            mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)

    def test_missing_bill(self, bob):
        with pytest.raises(SplitBillNotFoundError):
            mark_as_paid(split_bill_id=uuid4(), user_id=bob.id)

    def test_non_participant(self, dinner_bill, outsider):
        with pytest.raises(ParticipantNotFoundError):
            mark_as_paid(split_bill_id=dinner_bill.id, user_id=outsider.id)

    def test_transition_logged(self, dinner_bill, bob, caplog):
        with caplog.at_level('INFO', logger='apps.settlements.services.participant_state'):
            mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id, method=PaymentMethod.CASH)

        assert 'marked paid' in caplog.text


# ============================================================================
# REJECT
# ============================================================================

@pytest.mark.django_db
class TestReject:

    def test_pending_share_becomes_rejected(self, dinner_bill, carol):
        participant = reject(split_bill_id=dinner_bill.id, user_id=carol.id)

        assert participant.status == ParticipantStatus.REJECTED
        assert participant.rejected_at is not None

    def test_paid_share_cannot_be_rejected(self, dinner_bill, bob):
        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)

        with pytest.raises(RejectionOfPaidBillError):
            reject(split_bill_id=dinner_bill.id, user_id=bob.id)

    def test_second_reject_is_conflict(self, dinner_bill, carol):
        reject(split_bill_id=dinner_bill.id, user_id=carol.id)

        with pytest.raises(InvalidTransitionError):
            reject(split_bill_id=dinner_bill.id, user_id=carol.id)

    def test_payer_cannot_reject_own_bill(self, dinner_bill, alice):
        with pytest.raises(InvalidTransitionError):
            reject(split_bill_id=dinner_bill.id, user_id=alice.id)

    def test_all_conflicts_share_a_base(self):
        for exc in (AlreadySettledError, RejectionOfPaidBillError, InvalidTransitionError):
            assert issubclass(exc, TransitionConflictError)


# ============================================================================
# SCENARIOS ON REAL BILLS
# ============================================================================

@pytest.mark.django_db
class TestTransitionsMoveThePlan:

    def test_paying_removes_debt(self, dinner_bill, trip_group, alice, bob, carol):
        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)

        assert get_group_balances(trip_group.id) == {alice.id: 30000, bob.id: 0, carol.id: -30000}
        settlement = get_group_settlement(trip_group.id)
        assert [(tx.from_user_id, tx.to_user_id, tx.amount) for tx in settlement] == [
            (carol.id, alice.id, 30000),
        ]

    def test_rejecting_drops_receivable(self, dinner_bill, trip_group, bob, carol):
        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)
        reject(split_bill_id=dinner_bill.id, user_id=carol.id)

        assert set(get_group_balances(trip_group.id).values()) == {0}
        assert get_group_settlement(trip_group.id) == []


# ============================================================================
# ROLL-UP FLAGS
# ============================================================================

@pytest.mark.django_db
class TestRollUp:

    def test_bill_settles_when_nothing_pending(self, dinner_bill, bob, carol):
        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)
        dinner_bill.refresh_from_db()
        assert not dinner_bill.is_settled

        mark_as_paid(split_bill_id=dinner_bill.id, user_id=carol.id)
        dinner_bill.refresh_from_db()
        assert dinner_bill.is_settled
        assert dinner_bill.settled_at is not None
        assert not dinner_bill.is_cancelled

    def test_bill_settles_with_mixed_outcomes(self, dinner_bill, bob, carol):
        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)
        reject(split_bill_id=dinner_bill.id, user_id=carol.id)

        dinner_bill.refresh_from_db()
        assert dinner_bill.is_settled
        assert not dinner_bill.is_cancelled

    def test_bill_cancelled_when_everyone_rejects(self, dinner_bill, bob, carol):
        reject(split_bill_id=dinner_bill.id, user_id=bob.id)
        reject(split_bill_id=dinner_bill.id, user_id=carol.id)

        dinner_bill.refresh_from_db()
        assert dinner_bill.is_cancelled
        assert dinner_bill.cancelled_at is not None
        assert not dinner_bill.is_settled


# ============================================================================
# CACHE INVALIDATION
# ============================================================================

@pytest.mark.django_db
class TestCacheInvalidation:

    def test_transition_refreshes_settlement(self, dinner_bill, trip_group, bob):
        before = get_group_settlement(trip_group.id)
        assert len(before) == 2

        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)

        assert len(get_group_settlement(trip_group.id)) == 1

    def test_transition_refreshes_payment_summary(self, dinner_bill, bob):
        assert get_payment_summary(dinner_bill.id).pending_count == 2

        mark_as_paid(split_bill_id=dinner_bill.id, user_id=bob.id)

        summary = get_payment_summary(dinner_bill.id)
        assert summary.pending_count == 1
        assert summary.total_paid == 30000
        assert summary.balance == 30000

    def test_transition_moves_cache_generation(self, dinner_bill, trip_group, carol):
        group_generation = settlement_cache.current_generation(settlement_cache.GROUP, trip_group.id)
        bill_generation = settlement_cache.current_generation(settlement_cache.SPLIT_BILL, dinner_bill.id)
        get_group_settlement(trip_group.id)
        get_payment_summary(dinner_bill.id)
        backend = caches[settings.SETTLEMENT_CACHE_ALIAS]
        plan_key = settlement_cache.versioned_key(
            settlement_cache.GROUP, trip_group.id, 'plan', group_generation
        )
        assert backend.get(plan_key) is not None

        reject(split_bill_id=dinner_bill.id, user_id=carol.id)

        assert settlement_cache.current_generation(settlement_cache.GROUP, trip_group.id) != group_generation
        assert settlement_cache.current_generation(settlement_cache.SPLIT_BILL, dinner_bill.id) != bill_generation
        assert backend.get(plan_key) is None


# ============================================================================
# CONCURRENCY TESTS
# ============================================================================

class TestConcurrency(TransactionTestCase):
    """
    Test concurrency protection with real database transactions.

    TransactionTestCase is required: each thread opens its own connection
    and commits for real.
    """

    def setUp(self):
        caches[settings.SETTLEMENT_CACHE_ALIAS].clear()

        self.payer = User.objects.create_user(email='payer@example.com', password='TestPass123!')
        self.debtor = User.objects.create_user(email='debtor@example.com', password='TestPass123!')
        self.group = Group.objects.create(name='Flat', owner=self.payer)
        GroupMembership.objects.create(user=self.payer, group=self.group, role=GroupRole.ADMIN)
        GroupMembership.objects.create(user=self.debtor, group=self.group, role=GroupRole.MEMBER)

        self.split_bill = create_split_bill(
            group_id=self.group.id,
            created_by=self.payer,
            description='Rent',
            total_amount_minor=2000000,
            participants=[{'user_id': self.payer.id}, {'user_id': self.debtor.id}],
        )

    def _race(self, target, count=5):
        threads = [threading.Thread(target=target) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    def test_concurrent_mark_paid_succeeds_once(self):
        """Five simultaneous mark-paid requests: one success, four conflicts."""
        results = []
        errors = []

        def pay_in_thread():
            try:
                mark_as_paid(split_bill_id=self.split_bill.id, user_id=self.debtor.id)
                results.append(True)
            except AlreadySettledError:
                errors.append(True)
            finally:
                connection.close()

        self._race(pay_in_thread)

        assert len(results) == 1
        assert len(errors) == 4

        balances = get_group_balances(self.group.id)
        assert balances == {self.payer.id: 0, self.debtor.id: 0}

    def test_concurrent_pay_and_reject_single_winner(self):
        """Mixed pay/reject requests: exactly one transition wins."""
        outcomes = []

        def pay_in_thread():
            try:
                mark_as_paid(split_bill_id=self.split_bill.id, user_id=self.debtor.id)
                outcomes.append('paid')
            except TransitionConflictError:
                outcomes.append('conflict')
            finally:
                connection.close()

        def reject_in_thread():
            try:
                reject(split_bill_id=self.split_bill.id, user_id=self.debtor.id)
                outcomes.append('rejected')
            except TransitionConflictError:
                outcomes.append('conflict')
            finally:
                connection.close()

        threads = [
            threading.Thread(target=pay_in_thread if i % 2 else reject_in_thread)
            for i in range(6)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [o for o in outcomes if o != 'conflict']
        assert len(outcomes) == 6
        assert len(winners) == 1

        participant = SplitBillParticipant.objects.get(split_bill=self.split_bill, user=self.debtor)
        assert participant.status == winners[0]
