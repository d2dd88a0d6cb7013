"""Cost aggregation, reconciliation and budget variance for construction projects.

Everything here is pure: callers pass rows (model instances or ``values()``
dicts) and get Decimal totals back. No queries are issued.

- Work items and paid payment requests are two independent records of the
  same spend; neither is authoritative, so the reconciled actual cost is the
  larger of the two.
- A missing ``actual_cost`` on a work item counts as 0.
- Percentages are classified on unrounded values, reported at 2 decimals.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import models

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_ACCEPTABLE_OVERRUN_PERCENT = Decimal("10")

PAID_STATUS = "paid"


class BudgetStatus(models.TextChoices):
    WITHIN_BUDGET = "within_budget", "Within budget"
    ACCEPTABLE_OVERRUN = "acceptable_overrun", "Acceptable overrun"
    MAJOR_OVERRUN = "major_overrun", "Major overrun"


@dataclass
class CostTotals:
    """Cost totals keyed by project and by (project, category)."""

    by_project: dict = field(default_factory=dict)
    by_category: dict = field(default_factory=dict)

    def add(self, project_id, category_id, amount: Decimal) -> None:
        self.by_project[project_id] = self.by_project.get(project_id, ZERO) + amount
        if category_id is not None:
            key = (project_id, category_id)
            self.by_category[key] = self.by_category.get(key, ZERO) + amount

    def for_project(self, project_id) -> Decimal:
        return self.by_project.get(project_id, ZERO)

    def for_category(self, project_id, category_id) -> Decimal:
        return self.by_category.get((project_id, category_id), ZERO)


@dataclass
class BudgetVariance:
    planned: Decimal
    actual: Decimal
    variance: Decimal
    variance_percent: Decimal
    consumption_percent: Decimal
    progress_percent: Decimal
    status: str

    def as_dict(self) -> dict:
        return {
            "planned_amount": str(self.planned),
            "actual_cost": str(self.actual),
            "variance": str(self.variance),
            "variance_percent": str(self.variance_percent),
            "consumption_percent": str(self.consumption_percent),
            "progress_percent": str(self.progress_percent),
            "status": self.status,
        }


def _get(row, name):
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _to_decimal(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def aggregate_work_item_costs(items: Iterable) -> CostTotals:
    """Sum work-item ``actual_cost`` per project and per (project, category)."""
    totals = CostTotals()
    for item in items:
        totals.add(
            _get(item, "project_id"),
            _get(item, "category_id"),
            _to_decimal(_get(item, "actual_cost")),
        )
    return totals


def aggregate_paid_payments(payments: Iterable) -> CostTotals:
    """Sum ``amount`` of payment requests in the paid status."""
    totals = CostTotals()
    for payment in payments:
        if _get(payment, "status") != PAID_STATUS:
            continue
        totals.add(
            _get(payment, "project_id"),
            _get(payment, "category_id"),
            _to_decimal(_get(payment, "amount")),
        )
    return totals


def reconcile_actual_cost(*source_totals) -> Decimal:
    """Reconciled cost is the largest of the independent source totals."""
    return max((_to_decimal(total) for total in source_totals), default=ZERO)


def reconcile_cost_totals(work_items: CostTotals, payments: CostTotals) -> CostTotals:
    """Apply :func:`reconcile_actual_cost` key by key over both sources."""
    reconciled = CostTotals()
    for project_id in set(work_items.by_project) | set(payments.by_project):
        reconciled.by_project[project_id] = reconcile_actual_cost(
            work_items.for_project(project_id),
            payments.for_project(project_id),
        )
    for key in set(work_items.by_category) | set(payments.by_category):
        reconciled.by_category[key] = reconcile_actual_cost(
            work_items.by_category.get(key, ZERO),
            payments.by_category.get(key, ZERO),
        )
    return reconciled


def compute_budget_variance(
    planned,
    actual,
    acceptable_overrun_percent=DEFAULT_ACCEPTABLE_OVERRUN_PERCENT,
) -> BudgetVariance:
    """Compare planned and actual cost and classify budget health.

    ``consumption_percent`` is unbounded (130 means 30% over plan) while
    ``progress_percent`` is capped at 100 for progress bars. With nothing
    planned both percentages are 0, so any spend lands in the acceptable
    overrun band.
    """
    planned = _to_decimal(planned)
    actual = _to_decimal(actual)
    threshold = _to_decimal(acceptable_overrun_percent)

    variance = planned - actual
    if planned > 0:
        variance_percent = variance / planned * HUNDRED
        consumption_percent = actual / planned * HUNDRED
    else:
        variance_percent = Decimal("0")
        consumption_percent = Decimal("0")

    if variance >= 0:
        status = BudgetStatus.WITHIN_BUDGET
    elif abs(variance_percent) <= threshold:
        status = BudgetStatus.ACCEPTABLE_OVERRUN
    else:
        status = BudgetStatus.MAJOR_OVERRUN

    return BudgetVariance(
        planned=planned.quantize(CENT),
        actual=actual.quantize(CENT),
        variance=variance.quantize(CENT),
        variance_percent=variance_percent.quantize(CENT),
        consumption_percent=consumption_percent.quantize(CENT),
        progress_percent=min(consumption_percent, HUNDRED).quantize(CENT),
        status=status.value,
    )
