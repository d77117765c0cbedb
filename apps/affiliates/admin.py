"""
Django Admin configuration for the Affiliates app.

Metrics and counters are derived data and stay read-only; status changes go
through the services so their transition rules and follow-ups apply.
"""

from django.contrib import admin, messages

from .commission_service import CommissionService
from .creator_service import CreatorService
from .models import CommissionTransaction, Creator, ReferralClick, ReferralLink, TierChangeLog

# ===============================================================================
# Inline Admin Classes
# ===============================================================================


class ReferralLinkInline(admin.TabularInline):
    """Inline for links within a creator."""

    model = ReferralLink
    extra = 0
    readonly_fields = ("link_code", "custom_alias", "click_count", "unique_click_count", "conversion_count")
    fields = ("link_code", "custom_alias", "original_url", "is_active", "click_count", "conversion_count")
    show_change_link = True


class TierChangeLogInline(admin.TabularInline):
    """Inline for the rate history of a creator."""

    model = TierChangeLog
    extra = 0
    readonly_fields = ("previous_rate", "new_rate", "tier", "source", "replaced_override", "reason", "created_at")
    fields = readonly_fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


# ===============================================================================
# Creator Admin
# ===============================================================================


@admin.register(Creator)
class CreatorAdmin(admin.ModelAdmin):
    """Admin for creators."""

    list_display = (
        "creator_code",
        "display_name",
        "email",
        "status",
        "commission_rate",
        "rate_overridden",
        "total_clicks",
        "total_sales",
        "total_commission",
        "conversion_rate",
    )
    list_filter = ("status", "rate_overridden", "created_at")
    search_fields = ("creator_code", "display_name", "email")
    readonly_fields = (
        "creator_code",
        "commission_rate",
        "rate_overridden",
        "status",
        "total_clicks",
        "total_sales",
        "total_commission",
        "conversion_rate",
        "last_sale_date",
        "metrics_updated_at",
        "approved_at",
        "suspended_at",
        "created_at",
        "updated_at",
    )
    inlines = [ReferralLinkInline, TierChangeLogInline]
    actions = ["approve_creators", "suspend_creators"]

    fieldsets = (
        (None, {
            "fields": ("creator_code", "display_name", "email", "status", "notes")
        }),
        ("Commission", {
            "fields": ("commission_rate", "rate_overridden", "minimum_payout")
        }),
        ("Metrics", {
            "fields": (
                "total_clicks",
                "total_sales",
                "total_commission",
                "conversion_rate",
                "last_sale_date",
                "metrics_updated_at",
            ),
            "classes": ("collapse",)
        }),
        ("Timestamps", {
            "fields": ("approved_at", "suspended_at", "created_at", "updated_at"),
            "classes": ("collapse",)
        }),
    )

    def _transition(self, request, queryset, new_status):
        changed = 0
        for creator in queryset:
            result = CreatorService.change_status(creator.pk, new_status)
            if result.is_ok():
                changed += 1
            else:
                self.message_user(request, f"{creator.creator_code}: {result.unwrap_err().message}", messages.WARNING)
        self.message_user(request, f"{changed} creator(s) {new_status}.")

    @admin.action(description="Approve selected creators")
    def approve_creators(self, request, queryset):
        self._transition(request, queryset, "approved")

    @admin.action(description="Suspend selected creators")
    def suspend_creators(self, request, queryset):
        self._transition(request, queryset, "suspended")


# ===============================================================================
# Link and Click Admin
# ===============================================================================


@admin.register(ReferralLink)
class ReferralLinkAdmin(admin.ModelAdmin):
    """Admin for referral links."""

    list_display = (
        "link_code",
        "custom_alias",
        "creator",
        "is_active",
        "expires_at",
        "click_count",
        "unique_click_count",
        "conversion_count",
    )
    list_filter = ("is_active", "created_at")
    search_fields = ("link_code", "custom_alias", "original_url", "creator__creator_code")
    readonly_fields = (
        "creator",
        "link_code",
        "custom_alias",
        "click_count",
        "unique_click_count",
        "conversion_count",
        "last_clicked_at",
        "created_at",
        "updated_at",
    )
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False


@admin.register(ReferralClick)
class ReferralClickAdmin(admin.ModelAdmin):
    """Read-only admin for clicks."""

    list_display = ("link", "creator", "clicked_at", "device_type", "browser", "utm_source", "converted", "order_id")
    list_filter = ("converted", "device_type", "browser", "clicked_at")
    search_fields = ("order_id", "link__link_code", "creator__creator_code", "utm_campaign")
    readonly_fields = [field.name for field in ReferralClick._meta.fields]
    date_hierarchy = "clicked_at"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


# ===============================================================================
# Commission Admin
# ===============================================================================


@admin.register(CommissionTransaction)
class CommissionTransactionAdmin(admin.ModelAdmin):
    """Read-only admin for the commission ledger; settlement through actions."""

    list_display = (
        "order_id",
        "creator",
        "order_amount",
        "commission_rate",
        "commission_amount",
        "status",
        "type",
        "created_at",
    )
    list_filter = ("status", "type", "created_at")
    search_fields = ("order_id", "creator__creator_code", "creator__email")
    readonly_fields = [field.name for field in CommissionTransaction._meta.fields]
    date_hierarchy = "created_at"
    actions = ["approve_transactions", "mark_paid", "cancel_transactions"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    @admin.action(description="Approve selected commissions")
    def approve_transactions(self, request, queryset):
        result = CommissionService.approve_many(list(queryset.values_list("pk", flat=True)))
        self.message_user(request, f"{result.succeeded} approved, {result.failed} failed.")

    def _transition(self, request, queryset, new_status):
        changed = 0
        for txn in queryset:
            if CommissionService.update_status(txn.pk, new_status).is_ok():
                changed += 1
        self.message_user(request, f"{changed} commission(s) moved to {new_status}.")

    @admin.action(description="Mark selected commissions as paid")
    def mark_paid(self, request, queryset):
        self._transition(request, queryset, "paid")

    @admin.action(description="Cancel selected commissions")
    def cancel_transactions(self, request, queryset):
        self._transition(request, queryset, "cancelled")


@admin.register(TierChangeLog)
class TierChangeLogAdmin(admin.ModelAdmin):
    """Read-only rate history."""

    list_display = ("creator", "previous_rate", "new_rate", "tier", "source", "replaced_override", "created_at")
    list_filter = ("source", "replaced_override", "tier")
    search_fields = ("creator__creator_code", "reason")
    readonly_fields = [field.name for field in TierChangeLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
