from django.contrib import admin

from incentives.models import IncentiveAward, IncentiveTier


@admin.register(IncentiveTier)
class IncentiveTierAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "min_achievement_percent",
        "max_achievement_percent",
        "reward_type",
        "fixed_amount",
        "percentage_rate",
        "applicable_to",
        "sort_order",
        "is_active",
    )
    list_filter = ("is_active", "reward_type", "applicable_to")
    search_fields = ("name",)
    ordering = ("sort_order", "min_achievement_percent")


@admin.register(IncentiveAward)
class IncentiveAwardAdmin(admin.ModelAdmin):
    list_display = (
        "branch",
        "period_start",
        "period_end",
        "achievement_percent",
        "tier_name",
        "final_reward",
        "status",
    )
    list_filter = ("status", "award_type", "period_start")
    search_fields = ("branch__name", "branch__code", "tier_name")
    list_select_related = ("branch",)
    # Status changes go through the lifecycle services, never through admin edits.
    readonly_fields = (
        "status",
        "version",
        "calculated_reward",
        "final_reward",
        "approved_by",
        "approved_at",
        "paid_by",
        "paid_at",
        "cancelled_by",
        "cancelled_at",
    )
