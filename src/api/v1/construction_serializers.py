"""Serializers for construction budgets."""
from __future__ import annotations

from rest_framework import serializers

from construction.models import BudgetAllocation, ConstructionCategory, ConstructionProject


class BudgetAllocationSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)

    class Meta:
        model = BudgetAllocation
        fields = [
            "id",
            "project",
            "category",
            "category_name",
            "planned_amount",
            "notes",
            "updated_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BudgetAllocationUpsertSerializer(serializers.Serializer):
    """Planned amount for one (project, category) pair."""

    project = serializers.PrimaryKeyRelatedField(queryset=ConstructionProject.objects.all())
    category = serializers.PrimaryKeyRelatedField(queryset=ConstructionCategory.objects.all())
    planned_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    notes = serializers.CharField(required=False, allow_blank=True)


class ConstructionProjectSerializer(serializers.ModelSerializer):
    branch_name = serializers.CharField(source="branch.name", read_only=True)

    class Meta:
        model = ConstructionProject
        fields = [
            "id",
            "branch",
            "branch_name",
            "title",
            "status",
            "budget",
            "actual_cost",
            "start_date",
            "target_completion_date",
            "actual_completion_date",
            "progress_percent",
        ]
        read_only_fields = fields
