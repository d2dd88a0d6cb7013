"""ViewSets for budget allocations and reconciled project costs."""
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.v1.construction_serializers import (
    BudgetAllocationSerializer,
    BudgetAllocationUpsertSerializer,
    ConstructionProjectSerializer,
)
from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import CanManageBudgets
from construction.models import BudgetAllocation, ConstructionCategory, ConstructionProject
from construction.services import (
    build_budget_report,
    build_project_summaries,
    get_budget_allocations,
    get_reconciled_actual_cost,
    upsert_budget_allocation,
)


def _get_or_404(model, pk, field_name):
    try:
        return model.objects.get(pk=pk)
    except (ValueError, DjangoValidationError):
        raise ValidationError({field_name: "Invalid identifier."})
    except model.DoesNotExist:
        raise NotFound(f"{model._meta.verbose_name.capitalize()} not found.")


class BudgetAllocationViewSet(viewsets.ReadOnlyModelViewSet):
    """Planned budget per project category; writes go through ``upsert``."""

    serializer_class = BudgetAllocationSerializer
    queryset = BudgetAllocation.objects.select_related("project", "category")
    pagination_class = StandardResultsSetPagination

    def get_permissions(self):
        if self.action == "upsert":
            return [IsAuthenticated(), CanManageBudgets()]
        return [IsAuthenticated()]

    def get_queryset(self):
        project_id = self.request.query_params.get("project")
        if project_id and self.action == "list":
            project = _get_or_404(ConstructionProject, project_id, "project")
            return get_budget_allocations(project)
        return super().get_queryset()

    @action(detail=False, methods=["post"])
    def upsert(self, request):
        serializer = BudgetAllocationUpsertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            allocation, created = upsert_budget_allocation(
                project=data["project"],
                category=data["category"],
                planned_amount=data["planned_amount"],
                notes=data.get("notes"),
                actor=request.user,
            )
        except ValueError as exc:
            raise ValidationError({"detail": str(exc)})
        return Response(
            self.get_serializer(allocation).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class ConstructionProjectViewSet(viewsets.ReadOnlyModelViewSet):
    """Projects with reconciled cost and budget health."""

    serializer_class = ConstructionProjectSerializer
    queryset = ConstructionProject.objects.select_related("branch")
    filterset_fields = ["branch", "status"]
    search_fields = ["title"]
    ordering_fields = ["created_at", "title", "budget"]
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsAuthenticated]

    def list(self, request, *args, **kwargs):
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        projects = page if page is not None else queryset
        data = [
            {
                **self.get_serializer(summary.project).data,
                "reconciled_actual_cost": str(summary.actual_cost),
                "budget_variance": summary.variance.as_dict(),
            }
            for summary in build_project_summaries(projects)
        ]
        if page is not None:
            return self.get_paginated_response(data)
        return Response(data)

    @action(detail=True, methods=["get"], url_path="actual-cost")
    def actual_cost(self, request, pk=None):
        project = self.get_object()
        category = None
        category_id = request.query_params.get("category")
        if category_id:
            category = _get_or_404(ConstructionCategory, category_id, "category")
        return Response(
            {
                "project": str(project.pk),
                "category": str(category.pk) if category else None,
                "actual_cost": str(get_reconciled_actual_cost(project, category)),
            }
        )

    @action(detail=True, methods=["get"], url_path="budget-report")
    def budget_report(self, request, pk=None):
        report = build_budget_report(self.get_object())
        return Response(
            {
                "project": report.project_id,
                "project_title": report.project_title,
                "lines": [
                    {
                        "category": line.category_id,
                        "category_name": line.category_name,
                        "allocation": line.allocation_id,
                        "work_items_cost": str(line.work_items_cost),
                        "paid_payments_cost": str(line.paid_payments_cost),
                        **line.variance.as_dict(),
                    }
                    for line in report.lines
                ],
                "total": report.total.as_dict(),
            }
        )
