"""Budget allocation services and reconciled cost reporting."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction

from branches.services import create_audit_log
from construction.costing import (
    ZERO,
    BudgetVariance,
    aggregate_paid_payments,
    aggregate_work_item_costs,
    compute_budget_variance,
    reconcile_actual_cost,
    reconcile_cost_totals,
)
from construction.models import (
    BudgetAllocation,
    ConstructionCategory,
    ConstructionProject,
    PaymentRequest,
    ProjectWorkItem,
)

logger = logging.getLogger("bakery")

_COST_FIELDS = ("project_id", "category_id", "actual_cost")
_PAYMENT_FIELDS = ("project_id", "category_id", "amount", "status")


@dataclass
class CategoryBudgetLine:
    category_id: str
    category_name: str
    allocation_id: str | None
    work_items_cost: Decimal
    paid_payments_cost: Decimal
    variance: BudgetVariance


@dataclass
class ProjectBudgetReport:
    """Per-category and total variance for one project."""

    project_id: str
    project_title: str
    lines: list[CategoryBudgetLine] = field(default_factory=list)
    total: BudgetVariance | None = None


@dataclass
class ProjectCostSummary:
    project: ConstructionProject
    actual_cost: Decimal
    variance: BudgetVariance


def _acceptable_overrun_percent() -> Decimal:
    return Decimal(str(getattr(settings, "BUDGET_ACCEPTABLE_OVERRUN_PERCENT", "10")))


def upsert_budget_allocation(
    *,
    project: ConstructionProject,
    category: ConstructionCategory,
    planned_amount,
    notes: str | None = None,
    actor=None,
) -> tuple[BudgetAllocation, bool]:
    """Create or update the single allocation for (project, category).

    Returns ``(allocation, created)``. A concurrent first insert for the same
    pair surfaces as an IntegrityError on the unique constraint; the loser
    retries and updates the row the winner created.
    """
    planned_amount = Decimal(str(planned_amount if planned_amount is not None else "0"))
    if planned_amount < 0:
        raise ValueError("Planned amount cannot be negative.")

    for _attempt in range(3):
        try:
            with transaction.atomic():
                allocation = (
                    BudgetAllocation.objects.select_for_update()
                    .filter(project=project, category=category)
                    .first()
                )
                if allocation is None:
                    allocation = BudgetAllocation.objects.create(
                        project=project,
                        category=category,
                        planned_amount=planned_amount,
                        notes=(notes or "").strip(),
                        updated_by=actor if getattr(actor, "is_authenticated", False) else None,
                    )
                    created = True
                    before = None
                else:
                    before = {"planned_amount": str(allocation.planned_amount)}
                    allocation.planned_amount = planned_amount
                    update_fields = ["planned_amount", "updated_by", "updated_at"]
                    if notes is not None:
                        allocation.notes = notes.strip()
                        update_fields.append("notes")
                    allocation.updated_by = actor if getattr(actor, "is_authenticated", False) else None
                    allocation.save(update_fields=update_fields)
                    created = False

                create_audit_log(
                    actor=actor,
                    branch=project.branch,
                    action="BUDGET_ALLOCATION_CREATE" if created else "BUDGET_ALLOCATION_UPDATE",
                    entity_type="BudgetAllocation",
                    entity_id=str(allocation.pk),
                    before=before,
                    after={
                        "project_id": str(project.pk),
                        "category_id": str(category.pk),
                        "planned_amount": str(allocation.planned_amount),
                    },
                )
            logger.info(
                "Budget allocation %s: project=%s category=%s planned=%s",
                "created" if created else "updated",
                project.pk,
                category.pk,
                planned_amount,
            )
            return allocation, created
        except IntegrityError:
            continue

    raise ValueError("Could not save the budget allocation. Please retry.")


def get_budget_allocations(project):
    """All allocations for the project, one per category."""
    return (
        BudgetAllocation.objects.filter(project=project)
        .select_related("category")
        .order_by("category__name")
    )


def _source_totals(project_ids):
    work_items = aggregate_work_item_costs(
        ProjectWorkItem.objects.filter(project_id__in=project_ids).values(*_COST_FIELDS)
    )
    payments = aggregate_paid_payments(
        PaymentRequest.objects.filter(
            project_id__in=project_ids,
            status=PaymentRequest.Status.PAID,
        ).values(*_PAYMENT_FIELDS)
    )
    return work_items, payments


def get_reconciled_actual_cost(project: ConstructionProject, category=None) -> Decimal:
    """Reconciled actual cost for a project, or one of its categories.

    At project level the manually recorded ``project.actual_cost`` snapshot
    is a third source alongside work items and paid payments.
    """
    work_items, payments = _source_totals([project.pk])
    if category is not None:
        category_id = getattr(category, "pk", category)
        return reconcile_actual_cost(
            work_items.for_category(project.pk, category_id),
            payments.for_category(project.pk, category_id),
        )
    return reconcile_actual_cost(
        work_items.for_project(project.pk),
        payments.for_project(project.pk),
        project.actual_cost,
    )


def build_budget_report(project: ConstructionProject) -> ProjectBudgetReport:
    """Planned vs reconciled actual cost per category, plus project totals."""
    threshold = _acceptable_overrun_percent()
    work_items, payments = _source_totals([project.pk])
    reconciled = reconcile_cost_totals(work_items, payments)

    allocations = {a.category_id: a for a in get_budget_allocations(project)}
    category_ids = set(allocations) | {
        category_id for (project_id, category_id) in reconciled.by_category if project_id == project.pk
    }
    categories = ConstructionCategory.objects.filter(pk__in=category_ids).order_by("name")

    report = ProjectBudgetReport(project_id=str(project.pk), project_title=project.title)
    total_planned = ZERO
    for category in categories:
        allocation = allocations.get(category.pk)
        planned = allocation.planned_amount if allocation else ZERO
        total_planned += planned
        report.lines.append(
            CategoryBudgetLine(
                category_id=str(category.pk),
                category_name=category.name,
                allocation_id=str(allocation.pk) if allocation else None,
                work_items_cost=work_items.for_category(project.pk, category.pk),
                paid_payments_cost=payments.for_category(project.pk, category.pk),
                variance=compute_budget_variance(
                    planned,
                    reconciled.for_category(project.pk, category.pk),
                    threshold,
                ),
            )
        )

    total_actual = reconcile_actual_cost(reconciled.for_project(project.pk), project.actual_cost)
    report.total = compute_budget_variance(total_planned, total_actual, threshold)
    return report


def build_project_summaries(projects) -> list[ProjectCostSummary]:
    """Project budget vs reconciled actual cost for a portfolio listing."""
    projects = list(projects)
    if not projects:
        return []
    threshold = _acceptable_overrun_percent()
    work_items, payments = _source_totals([p.pk for p in projects])
    reconciled = reconcile_cost_totals(work_items, payments)

    summaries = []
    for project in projects:
        actual = reconcile_actual_cost(reconciled.for_project(project.pk), project.actual_cost)
        summaries.append(
            ProjectCostSummary(
                project=project,
                actual_cost=actual,
                variance=compute_budget_variance(project.budget or ZERO, actual, threshold),
            )
        )
    return summaries
