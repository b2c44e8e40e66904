"""
Custom permission classes for the settlements app.

Controls access to split bills, participant shares and expenses.
"""
from rest_framework.permissions import BasePermission


class IsSplitBillParty(BasePermission):
    """
    Permission to view or act on a split bill.

    Allows if the user created the bill, paid it, or has a share in it.

    Usage:
        class SplitBillViewSet(viewsets.GenericViewSet):
            permission_classes = [IsAuthenticated, IsSplitBillParty]
    """

    message = 'You are not part of this split bill.'

    def has_object_permission(self, request, view, obj):
        return obj.involves(request.user)


class CanMarkSharePaid(BasePermission):
    """
    Permission to mark a participant's share as paid.

    Allows if:
    - User is the participant (marking own payment)
    - User created the bill or paid it (confirming receipt)

    The participant comes from the ``user_id`` URL kwarg.
    """

    message = 'You do not have permission to mark this share as paid.'

    def has_object_permission(self, request, view, obj):
        target = str(view.kwargs.get('user_id', '')).lower()
        if str(request.user.pk) == target:
            return True
        return request.user.pk in (obj.created_by_id, obj.paid_by_id)


class CanViewExpense(BasePermission):
    """
    Permission to view an expense.

    Allows if:
    - Expense is personal and user is the payer
    - Expense is in a group and user is an active member
    """

    message = 'You do not have permission to view this expense.'

    def has_object_permission(self, request, view, obj):
        if obj.payer_id == request.user.pk:
            return True
        if obj.group:
            return obj.group.has_member(request.user)
        return False
