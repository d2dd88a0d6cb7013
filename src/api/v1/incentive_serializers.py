"""Serializers dedicated to the incentives module."""
from __future__ import annotations

from rest_framework import serializers

from incentives.models import IncentiveAward, IncentiveTier
from targets.services import month_bounds, parse_year_month


def _validate_year_month(value):
    try:
        parse_year_month(value)
    except ValueError as exc:
        raise serializers.ValidationError(str(exc))
    return value


class IncentiveTierSerializer(serializers.ModelSerializer):
    """Serializer for incentive tiers."""

    created_by_name = serializers.CharField(source="created_by.get_full_name", read_only=True, default="")

    class Meta:
        model = IncentiveTier
        fields = [
            "id",
            "name",
            "description",
            "min_achievement_percent",
            "max_achievement_percent",
            "reward_type",
            "fixed_amount",
            "percentage_rate",
            "applicable_to",
            "sort_order",
            "is_active",
            "created_by",
            "created_by_name",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_by", "created_by_name", "created_at", "updated_at"]

    def validate(self, attrs):
        def current(name):
            if name in attrs:
                return attrs[name]
            return getattr(self.instance, name, None) if self.instance else None

        reward_type = current("reward_type") or IncentiveTier.RewardType.FIXED
        lower = current("min_achievement_percent")
        upper = current("max_achievement_percent")
        errors = {}
        if upper is not None and lower is not None and upper <= lower:
            errors["max_achievement_percent"] = "Upper bound must be greater than the lower bound."
        if reward_type in (IncentiveTier.RewardType.FIXED, IncentiveTier.RewardType.BOTH) and current("fixed_amount") is None:
            errors["fixed_amount"] = "A fixed amount is required for this reward type."
        if (
            reward_type in (IncentiveTier.RewardType.PERCENTAGE, IncentiveTier.RewardType.BOTH)
            and current("percentage_rate") is None
        ):
            errors["percentage_rate"] = "A percentage rate is required for this reward type."
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class IncentiveAwardSerializer(serializers.ModelSerializer):
    """Read serializer for committed awards."""

    branch_name = serializers.CharField(source="branch.name", read_only=True)

    class Meta:
        model = IncentiveAward
        fields = [
            "id",
            "award_type",
            "branch",
            "branch_name",
            "period_start",
            "period_end",
            "target_amount",
            "achieved_amount",
            "achievement_percent",
            "tier",
            "tier_name",
            "calculated_reward",
            "adjusted_reward",
            "final_reward",
            "status",
            "notes",
            "journal_ids",
            "version",
            "created_by",
            "approved_by",
            "approved_at",
            "paid_by",
            "paid_at",
            "cancelled_by",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CalculateIncentivesSerializer(serializers.Serializer):
    year_month = serializers.CharField(max_length=7, validators=[_validate_year_month])


class ProposedAwardInputSerializer(serializers.Serializer):
    """One staged award as returned by the calculate endpoint."""

    branch_id = serializers.UUIDField()
    branch_name = serializers.CharField(required=False, allow_blank=True)
    target_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    achieved_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    achievement_percent = serializers.DecimalField(max_digits=9, decimal_places=2)
    tier_id = serializers.UUIDField(required=False, allow_null=True)
    tier_name = serializers.CharField(required=False, allow_blank=True, default="")
    calculated_reward = serializers.DecimalField(max_digits=14, decimal_places=2)
    journal_ids = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CommitAwardsSerializer(serializers.Serializer):
    """Awards to persist plus the period, given as a month or explicit dates."""

    year_month = serializers.CharField(max_length=7, required=False, validators=[_validate_year_month])
    period_start = serializers.DateField(required=False)
    period_end = serializers.DateField(required=False)
    awards = ProposedAwardInputSerializer(many=True, allow_empty=False)

    def validate(self, attrs):
        if attrs.get("year_month"):
            start, end = month_bounds(attrs["year_month"])
            attrs.setdefault("period_start", start)
            attrs.setdefault("period_end", end)
        if not attrs.get("period_start") or not attrs.get("period_end"):
            raise serializers.ValidationError(
                {"period_start": "Provide year_month or both period_start and period_end."}
            )
        if attrs["period_end"] < attrs["period_start"]:
            raise serializers.ValidationError({"period_end": "period_end must not be before period_start."})
        return attrs


class AwardCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class AwardAdjustSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    notes = serializers.CharField(required=False, allow_blank=True)
