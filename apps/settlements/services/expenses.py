"""Expense records - creation and listing. Expenses never move balances."""

from typing import Optional
from uuid import UUID

from django.db.models import Q, QuerySet

from apps.accounts.models import User
from apps.groups.models import Group
from apps.settlements.models import Category, Expense

from .exceptions import GroupNotFoundError, InvalidAmountError, NotGroupMemberError
from .ledger import ensure_minor_units


def create_expense(
    *,
    payer: User,
    description: str,
    amount_minor: int,
    group_id: Optional[UUID] = None,
    category: str = Category.OTHER,
    currency: Optional[str] = None,
) -> Expense:
    """
    Record an expense, personal or within a group.

    Raises:
        InvalidAmountError: If the amount is not a positive int
        GroupNotFoundError: If group_id is given and doesn't exist
        NotGroupMemberError: If the payer is not an active member
    """
    ensure_minor_units(amount_minor, label='Expense amount')
    if amount_minor == 0:
        raise InvalidAmountError("Expense amount must be greater than 0")

    group = None
    if group_id:
        try:
            group = Group.objects.get(id=group_id)
        except Group.DoesNotExist:
            raise GroupNotFoundError(f"Group with ID {group_id} not found")
        if not group.has_member(payer):
            raise NotGroupMemberError("You must be a member of this group")

    extra = {'currency': currency} if currency else {}
    return Expense.objects.create(
        group=group,
        payer=payer,
        description=description,
        amount_minor=amount_minor,
        category=category,
        **extra,
    )


def get_visible_expenses(*, user: User, group_id: Optional[UUID] = None) -> QuerySet[Expense]:
    """The user's own expenses plus those of groups they belong to."""
    queryset = Expense.objects.filter(
        Q(payer=user) |
        Q(group__memberships__user=user, group__memberships__is_active=True)
    )
    if group_id:
        queryset = queryset.filter(group_id=group_id)
    return queryset.select_related('payer', 'group').distinct()
