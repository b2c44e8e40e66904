from django.conf import settings
from django.db import models
import uuid


class ParticipantStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    REJECTED = 'rejected', 'Rejected'


class SplitType(models.TextChoices):
    EQUAL = 'equal', 'Equal'
    PERCENTAGE = 'percentage', 'Percentage'
    CUSTOM = 'custom', 'Custom'


class Category(models.TextChoices):
    FOOD = 'Food', 'Food'
    TRANSPORT = 'Transport', 'Transport'
    ENTERTAINMENT = 'Entertainment', 'Entertainment'
    SHOPPING = 'Shopping', 'Shopping'
    BILLS = 'Bills', 'Bills'
    HEALTH = 'Health', 'Health'
    OTHER = 'Other', 'Other'


class PaymentMethod(models.TextChoices):
    SELF = 'self', 'Self (payer share)'
    CASH = 'cash', 'Cash'
    UPI = 'upi', 'UPI'
    BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
    CARD = 'card', 'Card'
    GOOGLE_PAY = 'google_pay', 'Google Pay'
    OTHER = 'other', 'Other'


def default_currency():
    return getattr(settings, 'DEFAULT_CURRENCY', 'INR')


class Expense(models.Model):
    """
    A recorded expense (personal when ``group`` is null).

    Expenses are informational: only split bills create debts between
    group members. Amounts are integer minor units (paise, cents).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    group = models.ForeignKey(
        'groups.Group',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='expenses'
    )
    payer = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='expenses_paid'
    )

    description = models.CharField(max_length=200)
    amount_minor = models.PositiveBigIntegerField()
    currency = models.CharField(max_length=3, default=default_currency)
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.OTHER)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'expenses'
        indexes = [
            models.Index(fields=['group', 'created_at'], name='expenses_group_created_idx'),
            models.Index(fields=['payer', 'created_at'], name='expenses_payer_created_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        context = f"Group: {self.group.name}" if self.group else "Personal"
        return f"{self.description} - {self.amount_minor} {self.currency} ({context})"


class SplitBill(models.Model):
    """Shared expense divided among named participants."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    group = models.ForeignKey(
        'groups.Group',
        on_delete=models.CASCADE,
        related_name='split_bills'
    )
    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='split_bills_created'
    )
    # Credited by the ledger; also the remainder holder at creation
    paid_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='split_bills_paid'
    )

    description = models.CharField(max_length=200)
    total_amount_minor = models.PositiveBigIntegerField()
    currency = models.CharField(max_length=3, default=default_currency)
    split_type = models.CharField(max_length=20, choices=SplitType.choices, default=SplitType.EQUAL)
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.OTHER)
    notes = models.TextField(max_length=500, blank=True)

    # Roll-up flags maintained by the participant state machine
    is_settled = models.BooleanField(default=False)
    settled_at = models.DateTimeField(null=True, blank=True)
    is_cancelled = models.BooleanField(default=False)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'split_bills'
        indexes = [
            models.Index(fields=['group', 'created_at'], name='split_bills_group_created_idx'),
            models.Index(fields=['created_by', 'created_at'], name='split_bills_creator_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.description} - {self.total_amount_minor} {self.currency}"

    def involves(self, user):
        """Creator, payer, or participant."""
        if user.pk in (self.created_by_id, self.paid_by_id):
            return True
        return self.participants.filter(user=user).exists()


class SplitBillParticipant(models.Model):
    """
    One participant's share of a split bill.

    ``amount_owed_minor`` is fixed at creation; only ``status`` moves,
    and only out of PENDING.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    split_bill = models.ForeignKey(
        SplitBill,
        on_delete=models.CASCADE,
        related_name='participants'
    )
    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='split_bill_shares'
    )

    amount_owed_minor = models.PositiveBigIntegerField()
    # Basis points (1/100 of a percent), only for percentage splits
    percentage_bp = models.PositiveIntegerField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=ParticipantStatus.choices,
        default=ParticipantStatus.PENDING
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    note = models.CharField(max_length=500, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'split_bill_participants'
        unique_together = [['split_bill', 'user']]
        indexes = [
            models.Index(fields=['user', 'status'], name='participants_user_status_idx'),
            models.Index(fields=['split_bill', 'status'], name='participants_bill_status_idx'),
        ]
        ordering = ['created_at']

    def __str__(self):
        return f"{self.user.get_display_name()} owes {self.amount_owed_minor} ({self.status})"
