"""Read-side helpers over targets and sales journals."""
from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.db.models import Sum

from targets.models import BranchMonthlyTarget, CashierSalesJournal


@dataclass
class AchievedSales:
    """Sales counted toward a branch target for one period."""

    total: Decimal
    journal_ids: list[str] = field(default_factory=list)


def parse_year_month(year_month: str) -> tuple[int, int]:
    try:
        year_str, month_str = year_month.split("-")
        year, month = int(year_str), int(month_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid month '{year_month}', expected YYYY-MM.")
    if not 1 <= month <= 12 or len(year_str) != 4:
        raise ValueError(f"Invalid month '{year_month}', expected YYYY-MM.")
    return year, month


def month_bounds(year_month: str) -> tuple[date, date]:
    """Return the first and last calendar day of ``year_month`` (inclusive)."""
    year, month = parse_year_month(year_month)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def get_branch_target_amount(branch, year_month: str) -> Decimal:
    """Target for the month, or 0 when none is set or it was archived."""
    target = (
        BranchMonthlyTarget.objects.filter(branch=branch, year_month=year_month)
        .exclude(status=BranchMonthlyTarget.Status.ARCHIVED)
        .only("target_amount")
        .first()
    )
    if target is None:
        return Decimal("0.00")
    return target.target_amount


def get_achieved_sales(branch, period_start: date, period_end: date) -> AchievedSales:
    """Sum submitted and approved journals dated within the period."""
    journals = CashierSalesJournal.objects.filter(
        branch=branch,
        journal_date__gte=period_start,
        journal_date__lte=period_end,
        status__in=CashierSalesJournal.COUNTED_STATUSES,
    )
    total = journals.aggregate(total=Sum("total_sales"))["total"] or Decimal("0.00")
    journal_ids = [str(pk) for pk in journals.order_by("journal_date").values_list("pk", flat=True)]
    return AchievedSales(total=total, journal_ids=journal_ids)
