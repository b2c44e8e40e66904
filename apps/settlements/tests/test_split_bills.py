"""
Split bill and expense service tests.

Tests cover:
- Exact integer splitting (equal, percentage, custom)
- Remainder holder selection
- Creation validation and error handling
- Query service results for real bills
"""

import pytest

from apps.groups.models import GroupMembership
from apps.settlements.models import (
    Expense,
    ParticipantStatus,
    PaymentMethod,
    SplitBillParticipant,
    SplitType,
)
from apps.settlements.services import (
    calculate_shares,
    create_expense,
    create_split_bill,
    get_group_balances,
    get_group_settlement,
    get_outstanding_shares,
    get_payment_summary,
    get_user_split_bills,
    get_visible_expenses,
)
from apps.settlements.services.exceptions import (
    GroupNotFoundError,
    InvalidAmountError,
    InvalidSplitError,
    NotGroupMemberError,
    SplitBillNotFoundError,
)


# ============================================================================
# SHARE CALCULATION
# ============================================================================

class TestCalculateShares:

    def test_equal_split_remainder_goes_to_holder(self):
        shares = calculate_shares(
            total=1000,
            participants=[{'user_id': 'a'}, {'user_id': 'b'}, {'user_id': 'c'}],
            split_type=SplitType.EQUAL,
            remainder_holder_id='b',
        )

        assert shares == [('a', 333, None), ('b', 334, None), ('c', 333, None)]

    def test_equal_split_without_remainder(self):
        shares = calculate_shares(
            total=90000,
            participants=[{'user_id': 'a'}, {'user_id': 'b'}, {'user_id': 'c'}],
            split_type=SplitType.EQUAL,
            remainder_holder_id='a',
        )

        assert [amount for _, amount, _ in shares] == [30000, 30000, 30000]

    def test_percentage_split_floors_and_assigns_remainder(self):
        shares = calculate_shares(
            total=1001,
            participants=[
                {'user_id': 'a', 'percentage_bp': 3333},
                {'user_id': 'b', 'percentage_bp': 3333},
                {'user_id': 'c', 'percentage_bp': 3334},
            ],
            split_type=SplitType.PERCENTAGE,
            remainder_holder_id='a',
        )

        assert sum(amount for _, amount, _ in shares) == 1001
        assert shares[1] == ('b', 333, 3333)
        assert shares[2] == ('c', 333, 3334)
        assert shares[0] == ('a', 335, 3333)

    def test_percentages_must_total_hundred(self):
        with pytest.raises(InvalidSplitError):
            calculate_shares(
                total=1000,
                participants=[
                    {'user_id': 'a', 'percentage_bp': 5000},
                    {'user_id': 'b', 'percentage_bp': 4000},
                ],
                split_type=SplitType.PERCENTAGE,
                remainder_holder_id='a',
            )

    def test_custom_split_must_match_total(self):
        with pytest.raises(InvalidSplitError):
            calculate_shares(
                total=1000,
                participants=[{'user_id': 'a', 'amount': 600}, {'user_id': 'b', 'amount': 300}],
                split_type=SplitType.CUSTOM,
                remainder_holder_id='a',
            )

    def test_custom_split_rejects_float_amounts(self):
        with pytest.raises(InvalidAmountError):
            calculate_shares(
                total=1000,
                participants=[{'user_id': 'a', 'amount': 500.0}, {'user_id': 'b', 'amount': 500}],
                split_type=SplitType.CUSTOM,
                remainder_holder_id='a',
            )

    def test_zero_share_rejected(self):
        """Two minor units cannot be split among three people."""
        with pytest.raises(InvalidSplitError):
            calculate_shares(
                total=2,
                participants=[{'user_id': 'a'}, {'user_id': 'b'}, {'user_id': 'c'}],
                split_type=SplitType.EQUAL,
                remainder_holder_id='a',
            )

    def test_holder_must_participate(self):
        with pytest.raises(InvalidSplitError):
            calculate_shares(
                total=100,
                participants=[{'user_id': 'a'}],
                split_type=SplitType.EQUAL,
                remainder_holder_id='z',
            )

    def test_unknown_split_type(self):
        with pytest.raises(InvalidSplitError):
            calculate_shares(
                total=100,
                participants=[{'user_id': 'a'}],
                split_type='by-weight',
                remainder_holder_id='a',
            )


# ============================================================================
# SPLIT BILL CREATION
# ============================================================================

@pytest.mark.django_db
class TestCreateSplitBill:

    def test_creates_shares_that_sum_to_total(self, trip_group, alice, bob, carol):
        split_bill = create_split_bill(
            group_id=trip_group.id,
            created_by=alice,
            description='Taxi',
            total_amount_minor=10001,
            participants=[{'user_id': bob.id}, {'user_id': alice.id}, {'user_id': carol.id}],
        )

        shares = {p.user_id: p for p in split_bill.participants.all()}
        assert sum(p.amount_owed_minor for p in shares.values()) == 10001
        # Payer holds the remainder
        assert shares[alice.id].amount_owed_minor == 3335
        assert shares[bob.id].amount_owed_minor == 3333
        assert split_bill.paid_by_id == alice.id
        assert split_bill.currency == 'INR'

    def test_payer_share_recorded_as_paid(self, dinner_bill, alice, bob):
        payer_share = dinner_bill.participants.get(user=alice)
        other_share = dinner_bill.participants.get(user=bob)

        assert payer_share.status == ParticipantStatus.PAID
        assert payer_share.payment_method == PaymentMethod.SELF
        assert payer_share.paid_at is not None
        assert other_share.status == ParticipantStatus.PENDING

    def test_first_participant_holds_remainder_when_payer_not_splitting(
        self, trip_group, alice, bob, carol
    ):
        split_bill = create_split_bill(
            group_id=trip_group.id,
            created_by=alice,
            description='Gift for Alice',
            total_amount_minor=1001,
            participants=[{'user_id': carol.id}, {'user_id': bob.id}],
        )

        shares = {p.user_id: p.amount_owed_minor for p in split_bill.participants.all()}
        assert shares == {carol.id: 501, bob.id: 500}

    def test_other_member_can_be_payer(self, trip_group, alice, bob, carol):
        split_bill = create_split_bill(
            group_id=trip_group.id,
            created_by=alice,
            description='Groceries',
            total_amount_minor=600,
            participants=[{'user_id': bob.id}, {'user_id': carol.id}],
            paid_by_id=bob.id,
        )

        assert split_bill.paid_by_id == bob.id
        assert split_bill.participants.get(user=bob).status == ParticipantStatus.PAID

    def test_custom_split(self, trip_group, alice, bob, carol):
        split_bill = create_split_bill(
            group_id=trip_group.id,
            created_by=alice,
            description='Hotel',
            total_amount_minor=5000,
            participants=[
                {'user_id': alice.id, 'amount': 1000},
                {'user_id': bob.id, 'amount': 2500},
                {'user_id': carol.id, 'amount': 1500},
            ],
            split_type=SplitType.CUSTOM,
        )

        assert split_bill.participants.get(user=bob).amount_owed_minor == 2500

    def test_missing_group(self, alice, bob):
        from uuid import uuid4

        with pytest.raises(GroupNotFoundError):
            create_split_bill(
                group_id=uuid4(),
                created_by=alice,
                description='Nowhere',
                total_amount_minor=100,
                participants=[{'user_id': bob.id}],
            )

    def test_creator_must_be_member(self, trip_group, outsider, bob):
        with pytest.raises(NotGroupMemberError):
            create_split_bill(
                group_id=trip_group.id,
                created_by=outsider,
                description='Sneaky',
                total_amount_minor=100,
                participants=[{'user_id': bob.id}],
            )

    def test_inactive_member_cannot_participate(self, trip_group, alice, carol):
        GroupMembership.objects.filter(group=trip_group, user=carol).update(is_active=False)

        with pytest.raises(InvalidSplitError):
            create_split_bill(
                group_id=trip_group.id,
                created_by=alice,
                description='Lunch',
                total_amount_minor=100,
                participants=[{'user_id': alice.id}, {'user_id': carol.id}],
            )

    def test_duplicate_participants_rejected(self, trip_group, alice, bob):
        with pytest.raises(InvalidSplitError):
            create_split_bill(
                group_id=trip_group.id,
                created_by=alice,
                description='Lunch',
                total_amount_minor=100,
                participants=[{'user_id': bob.id}, {'user_id': bob.id}],
            )

    def test_only_payer_rejected(self, trip_group, alice):
        with pytest.raises(InvalidSplitError):
            create_split_bill(
                group_id=trip_group.id,
                created_by=alice,
                description='Solo',
                total_amount_minor=100,
                participants=[{'user_id': alice.id}],
            )

    @pytest.mark.parametrize('total', [0, -100, 99.5])
    def test_invalid_total(self, trip_group, alice, bob, total):
        with pytest.raises(InvalidAmountError):
            create_split_bill(
                group_id=trip_group.id,
                created_by=alice,
                description='Bad',
                total_amount_minor=total,
                participants=[{'user_id': bob.id}],
            )

    def test_failed_creation_leaves_nothing_behind(self, trip_group, alice, bob):
        with pytest.raises(InvalidSplitError):
            create_split_bill(
                group_id=trip_group.id,
                created_by=alice,
                description='Bad custom',
                total_amount_minor=100,
                participants=[{'user_id': bob.id, 'amount': 50}],
                split_type=SplitType.CUSTOM,
            )

        assert not SplitBillParticipant.objects.exists()


# ============================================================================
# LISTING
# ============================================================================

@pytest.mark.django_db
class TestListing:

    def test_user_split_bills(self, dinner_bill, bob, outsider):
        assert list(get_user_split_bills(user=bob)) == [dinner_bill]
        assert list(get_user_split_bills(user=outsider)) == []

    def test_outstanding_shares_exclude_own_bills(self, dinner_bill, alice, bob):
        assert list(get_outstanding_shares(user=alice)) == []
        assert [s.split_bill_id for s in get_outstanding_shares(user=bob)] == [dinner_bill.id]


# ============================================================================
# QUERY SERVICE
# ============================================================================

@pytest.mark.django_db
class TestQueries:

    def test_group_balances(self, dinner_bill, trip_group, alice, bob, carol):
        balances = get_group_balances(trip_group.id)

        assert balances == {alice.id: 60000, bob.id: -30000, carol.id: -30000}

    def test_group_settlement(self, dinner_bill, trip_group, alice, bob, carol):
        settlement = get_group_settlement(trip_group.id)

        assert {(tx.from_user_id, tx.to_user_id, tx.amount) for tx in settlement} == {
            (bob.id, alice.id, 30000),
            (carol.id, alice.id, 30000),
        }

    def test_group_without_bills(self, trip_group):
        assert get_group_settlement(trip_group.id) == []

    def test_missing_group(self, db):
        from uuid import uuid4

        with pytest.raises(GroupNotFoundError):
            get_group_settlement(uuid4())

    def test_settlement_cached_until_write(self, dinner_bill, trip_group, alice, bob):
        first = get_group_settlement(trip_group.id)

        # Bypass the services: a raw write does not invalidate
        SplitBillParticipant.objects.filter(split_bill=dinner_bill, user=bob).update(
            status=ParticipantStatus.PAID
        )
        assert get_group_settlement(trip_group.id) == first

        # A service write does
        create_split_bill(
            group_id=trip_group.id,
            created_by=alice,
            description='Snacks',
            total_amount_minor=200,
            participants=[{'user_id': alice.id}, {'user_id': bob.id}],
        )
        assert get_group_settlement(trip_group.id) != first

    def test_payment_summary(self, dinner_bill, alice, bob, carol):
        summary = get_payment_summary(dinner_bill.id)

        assert summary.total_amount == 90000
        assert summary.total_owed == 60000
        assert summary.total_paid == 0
        assert summary.balance == 60000
        assert summary.paid_count == 1
        assert summary.pending_count == 2
        assert summary.rejected_count == 0
        assert not summary.is_settled
        assert len(summary.participants) == 3
        assert {(tx.from_user_id, tx.amount) for tx in summary.debts} == {
            (bob.id, 30000),
            (carol.id, 30000),
        }

    def test_payment_summary_missing_bill(self, db):
        from uuid import uuid4

        with pytest.raises(SplitBillNotFoundError):
            get_payment_summary(uuid4())


# ============================================================================
# EXPENSES
# ============================================================================

@pytest.mark.django_db
class TestExpenses:

    def test_group_expense(self, trip_group, alice):
        expense = create_expense(
            payer=alice,
            description='Fuel',
            amount_minor=250000,
            group_id=trip_group.id,
            category='Transport',
        )

        assert expense.group_id == trip_group.id
        assert expense.currency == 'INR'

    def test_expenses_do_not_change_balances(self, dinner_bill, trip_group, alice):
        before = get_group_balances(trip_group.id)
        create_expense(payer=alice, description='Fuel', amount_minor=5000, group_id=trip_group.id)

        assert get_group_balances(trip_group.id) == before

    def test_personal_expense(self, outsider):
        expense = create_expense(payer=outsider, description='Coffee', amount_minor=15000)

        assert expense.group is None
        assert list(get_visible_expenses(user=outsider)) == [expense]

    def test_group_expense_requires_membership(self, trip_group, outsider):
        with pytest.raises(NotGroupMemberError):
            create_expense(
                payer=outsider,
                description='Fuel',
                amount_minor=100,
                group_id=trip_group.id,
            )

    @pytest.mark.parametrize('amount', [0, -5, 12.5])
    def test_invalid_amount(self, alice, amount):
        with pytest.raises(InvalidAmountError):
            create_expense(payer=alice, description='Bad', amount_minor=amount)

    def test_members_see_group_expenses(self, trip_group, alice, bob, outsider):
        expense = create_expense(
            payer=alice, description='Fuel', amount_minor=100, group_id=trip_group.id
        )

        assert expense in get_visible_expenses(user=bob)
        assert expense not in get_visible_expenses(user=outsider)
        assert Expense.objects.count() == 1
