# ==========================================
# apps/settlements/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import Expense, SplitBill, SplitBillParticipant, ParticipantStatus
from .services import cache, mark_as_paid, TransitionConflictError


STATUS_COLORS = {
    ParticipantStatus.PENDING: ('#E5C49A', '#2C1810'),
    ParticipantStatus.PAID: ('#6B8E5E', 'white'),
    ParticipantStatus.REJECTED: ('#B85C5C', 'white'),
}


def _badge(bg, fg, label):
    return format_html(
        '<span style="background: {}; color: {}; padding: 3px 8px; '
        'border-radius: 10px; font-size: 11px;">{}</span>',
        bg, fg, label
    )


class SplitBillParticipantInline(admin.TabularInline):
    """Inline admin for participant shares within a split bill."""
    model = SplitBillParticipant
    extra = 0
    fields = [
        'user',
        'amount_owed_minor',
        'percentage_bp',
        'status_badge',
        'payment_method',
        'paid_at',
        'rejected_at',
    ]
    readonly_fields = fields
    can_delete = False

    def status_badge(self, obj):
        bg, fg = STATUS_COLORS.get(obj.status, ('#ccc', '#666'))
        return _badge(bg, fg, obj.get_status_display())
    status_badge.short_description = 'Status'

    def has_add_permission(self, request, obj=None):
        """Shares are created by the split service only."""
        return False


@admin.register(SplitBill)
class SplitBillAdmin(admin.ModelAdmin):
    """
    Admin interface for Split Bills.

    Shares are read-only here: amounts are fixed at creation and statuses
    only move through the participant state machine. Group, payer and
    amounts are read-only too.
    """

    list_display = [
        'description',
        'group',
        'paid_by',
        'total_amount_minor',
        'currency',
        'split_type',
        'bill_status_badge',
        'created_at',
    ]

    list_filter = [
        'is_settled',
        'is_cancelled',
        'split_type',
        'category',
        'created_at',
    ]

    search_fields = [
        'description',
        'group__name',
        'paid_by__email',
        'paid_by__display_name',
        'notes',
    ]

    readonly_fields = [
        'group',
        'created_by',
        'paid_by',
        'total_amount_minor',
        'currency',
        'split_type',
        'is_settled',
        'settled_at',
        'is_cancelled',
        'cancelled_at',
        'created_at',
        'updated_at',
    ]

    inlines = [SplitBillParticipantInline]
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    fieldsets = (
        ('Bill', {
            'fields': (
                'group',
                'description',
                'category',
                'created_by',
                'paid_by',
            )
        }),
        ('Amounts', {
            'fields': (
                'total_amount_minor',
                'currency',
                'split_type',
            )
        }),
        ('Status', {
            'fields': (
                'is_settled',
                'settled_at',
                'is_cancelled',
                'cancelled_at',
            )
        }),
        ('Notes', {
            'fields': ('notes',),
            'classes': ('collapse',),
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def bill_status_badge(self, obj):
        if obj.is_cancelled:
            return _badge('#B85C5C', 'white', 'Cancelled')
        if obj.is_settled:
            return _badge('#6B8E5E', 'white', 'Settled')
        return _badge('#E5C49A', '#2C1810', 'Open')
    bill_status_badge.short_description = 'Status'
    bill_status_badge.admin_order_field = 'is_settled'

    def has_add_permission(self, request):
        """Bills are created by the split service only."""
        return False

    def delete_model(self, request, obj):
        group_id, split_bill_id = obj.group_id, obj.pk
        super().delete_model(request, obj)
        cache.invalidate(group_id=group_id, split_bill_id=split_bill_id)

    def delete_queryset(self, request, queryset):
        scopes = list(queryset.values_list('group_id', 'id'))
        super().delete_queryset(request, queryset)
        for group_id, split_bill_id in scopes:
            cache.invalidate(group_id=group_id, split_bill_id=split_bill_id)

    def get_queryset(self, request):
        """Optimize query with select_related."""
        qs = super().get_queryset(request)
        return qs.select_related('group', 'paid_by', 'created_by')


@admin.register(SplitBillParticipant)
class SplitBillParticipantAdmin(admin.ModelAdmin):
    """Admin interface for participant shares."""

    list_display = [
        'user',
        'split_bill',
        'amount_owed_minor',
        'status_badge',
        'payment_method',
        'paid_at',
    ]

    list_filter = [
        'status',
        'payment_method',
        'created_at',
    ]

    search_fields = [
        'user__email',
        'user__display_name',
        'split_bill__description',
    ]

    readonly_fields = [
        'split_bill',
        'user',
        'amount_owed_minor',
        'percentage_bp',
        'status',
        'paid_at',
        'payment_method',
        'rejected_at',
        'created_at',
        'updated_at',
    ]

    ordering = ['-created_at']

    def status_badge(self, obj):
        bg, fg = STATUS_COLORS.get(obj.status, ('#ccc', '#666'))
        return _badge(bg, fg, obj.get_status_display())
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    actions = ['mark_selected_paid']

    @admin.action(description='Mark selected as PAID (cash)')
    def mark_selected_paid(self, request, queryset):
        """Run each pending share through the state machine."""
        marked = skipped = 0
        for share in queryset:
            try:
                mark_as_paid(
                    split_bill_id=share.split_bill_id,
                    user_id=share.user_id,
                    method='cash',
                    note=f'Marked by admin {request.user.email}',
                )
                marked += 1
            except TransitionConflictError:
                skipped += 1
        self.message_user(request, f'Marked {marked} share(s) as paid, skipped {skipped}.')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('user', 'split_bill')


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['description', 'payer', 'group', 'amount_minor', 'currency', 'category', 'created_at']
    list_filter = ['category', 'created_at']
    search_fields = ['description', 'payer__email', 'group__name']
    readonly_fields = ['group', 'payer', 'description', 'amount_minor', 'currency', 'category', 'created_at']
    ordering = ['-created_at']

    def has_add_permission(self, request):
        return False
