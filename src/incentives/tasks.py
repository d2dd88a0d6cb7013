"""Celery tasks for the incentives module."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from celery import shared_task
from django.conf import settings

logger = logging.getLogger("bakery")


def _previous_year_month(today: date) -> str:
    if today.month == 1:
        return f"{today.year - 1}-12"
    return f"{today.year}-{today.month - 1:02d}"


@shared_task(name="incentives.tasks.stage_monthly_incentives")
def stage_monthly_incentives(year_month: str | None = None):
    """Compute proposals for a month and log the totals. Nothing is saved."""
    from incentives.services import calculate_incentives

    year_month = year_month or date.today().strftime("%Y-%m")
    proposals = calculate_incentives(year_month)
    total = sum((p.calculated_reward for p in proposals), Decimal("0.00"))
    logger.info(
        "Incentive preview %s: %d branches, %d with a tier, total reward %s",
        year_month,
        len(proposals),
        sum(1 for p in proposals if p.tier_id),
        total,
    )
    return {
        "year_month": year_month,
        "branches": len(proposals),
        "total_reward": str(total),
    }


@shared_task(name="incentives.tasks.commit_previous_month_incentives")
def commit_previous_month_incentives(force: bool = False):
    """
    Scheduled daily (Celery Beat). Only runs on the 1st of each month and
    only when INCENTIVES_AUTO_COMMIT_PREVIOUS_MONTH is enabled.
    Commits pending awards for branches not yet calculated last month.
    """
    from incentives.exceptions import DuplicateAwardPeriod
    from incentives.services import calculate_incentives, commit_awards
    from targets.services import month_bounds

    if not getattr(settings, "INCENTIVES_AUTO_COMMIT_PREVIOUS_MONTH", False):
        logger.debug("commit_previous_month_incentives: disabled by settings")
        return None

    today = date.today()
    if today.day != 1 and not force:
        logger.debug("commit_previous_month_incentives: skipping (today is day %d)", today.day)
        return None

    year_month = _previous_year_month(today)
    period_start, period_end = month_bounds(year_month)
    proposals = [p for p in calculate_incentives(year_month) if p.existing_award_id is None]
    if not proposals:
        logger.info("Incentives for %s already calculated for every branch", year_month)
        return {"year_month": year_month, "committed": 0}

    try:
        awards = commit_awards(proposals, period_start=period_start, period_end=period_end)
    except DuplicateAwardPeriod as exc:
        logger.warning("Incentive auto-commit for %s skipped: %s", year_month, exc)
        return {"year_month": year_month, "committed": 0}

    return {"year_month": year_month, "committed": len(awards)}
