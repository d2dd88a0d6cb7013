"""Incentive calculation engine for branch monthly awards.

Pipeline for each branch and month:
- target from the branch's monthly target (0 when none is set)
- achieved from submitted/approved cashier journals in the month
- exact achievement percent for tier matching; only the reported value is
  rounded to 2 decimals
- first matching active tier for the branch scope, ordered by sort_order
  then lower bound
- reward from the tier's reward type

Nothing here writes to the database; staged proposals are persisted by
``incentives.services.commit_awards``.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal

logger = logging.getLogger("bakery")

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

PROPOSED = "proposed"


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# ----------------------------------------------------------------------
# Achievement, tier matching and reward
# ----------------------------------------------------------------------


def resolve_achievement_percent(target_amount, achieved_amount) -> Decimal:
    """Exact ``achieved / target * 100``; 0 when there is no target."""
    target = _dec(target_amount)
    if target <= 0:
        return ZERO
    return _dec(achieved_amount) / target * HUNDRED


def round_percent(percent) -> Decimal:
    return _dec(percent).quantize(CENT, rounding=ROUND_HALF_UP)


def tier_sort_key(tier):
    return (tier.sort_order or 0, _dec(tier.min_achievement_percent))


def match_tier(achievement_percent, tiers):
    """Return the first tier whose [min, max) range contains the percent.

    An empty ``max_achievement_percent`` means no upper bound. Percents that
    fall in a gap between tiers match nothing and yield ``None``.
    """
    percent = _dec(achievement_percent)
    for tier in sorted(tiers, key=tier_sort_key):
        lower = _dec(tier.min_achievement_percent)
        upper = tier.max_achievement_percent
        if percent < lower:
            continue
        if upper is None or percent < _dec(upper):
            return tier
    return None


@dataclass
class RewardBreakdown:
    fixed_part: Decimal = ZERO
    percentage_part: Decimal = ZERO
    excess: Decimal = ZERO
    total: Decimal = ZERO
    rounded_to_zero: bool = False


def calculate_reward(tier, target_amount, achieved_amount) -> RewardBreakdown:
    """Monetary reward for a matched tier.

    Percentage rewards apply to sales above target only, so a branch that
    just reaches its target earns nothing from the percentage component.
    Without a positive target there is no excess to reward.
    """
    if tier is None:
        return RewardBreakdown()

    reward_type = tier.reward_type
    target = _dec(target_amount)
    excess = max(_dec(achieved_amount) - target, ZERO) if target > 0 else ZERO
    fixed_part = ZERO
    percentage_part = ZERO
    if reward_type in ("fixed", "both"):
        fixed_part = _dec(tier.fixed_amount)
    if reward_type in ("percentage", "both"):
        percentage_part = _dec(tier.percentage_rate) / HUNDRED * excess

    raw = max(fixed_part + percentage_part, ZERO)
    total = raw.quantize(CENT, rounding=ROUND_HALF_UP)
    rounded_to_zero = raw > 0 and total == 0
    if rounded_to_zero:
        logger.warning(
            "Incentive reward rounded to zero: tier=%s raw=%s",
            getattr(tier, "pk", None),
            raw,
        )
    return RewardBreakdown(
        fixed_part=fixed_part.quantize(CENT, rounding=ROUND_HALF_UP),
        percentage_part=percentage_part.quantize(CENT, rounding=ROUND_HALF_UP),
        excess=excess.quantize(CENT, rounding=ROUND_HALF_UP),
        total=total,
        rounded_to_zero=rounded_to_zero,
    )


# ----------------------------------------------------------------------
# Tier registry helpers
# ----------------------------------------------------------------------


def load_candidate_tiers(scope: str | None = None) -> list:
    """Active tiers that apply to every branch or to ``scope``."""
    from incentives.models import IncentiveTier

    scopes = {IncentiveTier.ApplicableTo.ALL}
    if scope:
        scopes.add(scope)
    return sorted(
        IncentiveTier.objects.filter(is_active=True, applicable_to__in=scopes),
        key=tier_sort_key,
    )


def find_tier_coverage_issues(tiers) -> list[dict]:
    """Report gaps and overlaps between tier ranges, lowest range first.

    Matching never fails on a misconfigured set (first match wins and gaps
    mean no reward); this report lets administrators see where that happens.
    A ``to_percent`` of ``None`` means the range is open-ended.
    """
    ordered = sorted(
        tiers,
        key=lambda t: (_dec(t.min_achievement_percent), _dec(t.max_achievement_percent or "Infinity")),
    )
    issues = []
    covered_to = ZERO
    last = None
    for tier in ordered:
        lower = _dec(tier.min_achievement_percent)
        upper = None if tier.max_achievement_percent is None else _dec(tier.max_achievement_percent)
        involved = [str(t.pk) for t in (last, tier) if t is not None]
        if covered_to is not None and lower > covered_to:
            issues.append(_coverage_issue("gap", covered_to, lower, involved))
        elif covered_to is None or lower < covered_to:
            if covered_to is None:
                overlap_end = upper
            elif upper is None:
                overlap_end = covered_to
            else:
                overlap_end = min(upper, covered_to)
            issues.append(_coverage_issue("overlap", lower, overlap_end, involved))
        if covered_to is not None and (upper is None or upper > covered_to):
            covered_to = upper
            last = tier
    if ordered and covered_to is not None:
        issues.append(_coverage_issue("gap", covered_to, None, [str(last.pk)]))
    return issues


def _coverage_issue(kind, start, end, tier_ids) -> dict:
    return {
        "kind": kind,
        "from_percent": str(start),
        "to_percent": None if end is None else str(end),
        "tiers": tier_ids,
    }


# ----------------------------------------------------------------------
# Staging
# ----------------------------------------------------------------------


@dataclass
class ProposedAward:
    """Staged, unpersisted award for one branch and period."""

    branch_id: str
    branch_name: str
    target_amount: Decimal
    achieved_amount: Decimal
    achievement_percent: Decimal
    tier_id: str | None
    tier_name: str
    calculated_reward: Decimal
    status: str = PROPOSED
    rounded_to_zero: bool = False
    journal_ids: list[str] = field(default_factory=list)
    existing_award_id: str | None = None

    def as_dict(self) -> dict:
        data = asdict(self)
        for key in ("target_amount", "achieved_amount", "achievement_percent", "calculated_reward"):
            data[key] = str(data[key])
        return data


class IncentiveCalculationEngine:
    """Stage monthly awards for every active branch."""

    def __init__(self, year_month: str) -> None:
        from targets.services import month_bounds

        self.year_month = year_month
        self.period_start, self.period_end = month_bounds(year_month)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate_and_stage(self, branches=None) -> list[ProposedAward]:
        """Return one proposal per branch without writing anything.

        Branches whose period is already committed are still reported, with
        the existing award's id and status, so callers can show them as
        already calculated.
        """
        from branches.models import Branch

        if branches is None:
            branches = Branch.objects.filter(is_active=True).order_by("name")
        branches = list(branches)
        existing = self._existing_awards([b.pk for b in branches])

        tiers_by_scope: dict[str, list] = {}
        proposals = []
        for branch in branches:
            scope = branch.incentive_scope or ""
            if scope not in tiers_by_scope:
                tiers_by_scope[scope] = load_candidate_tiers(scope)
            proposals.append(
                self.propose_for_branch(branch, tiers_by_scope[scope], existing.get(branch.pk))
            )
        logger.info(
            "Staged %d incentive proposals for %s (%d with a tier)",
            len(proposals),
            self.year_month,
            sum(1 for p in proposals if p.tier_id),
        )
        return proposals

    def propose_for_branch(self, branch, tiers, existing_award=None) -> ProposedAward:
        from targets.services import get_achieved_sales, get_branch_target_amount

        target = get_branch_target_amount(branch, self.year_month)
        achieved = get_achieved_sales(branch, self.period_start, self.period_end)
        percent = resolve_achievement_percent(target, achieved.total)
        tier = match_tier(percent, tiers)
        reward = calculate_reward(tier, target, achieved.total)

        if tier is None:
            logger.info(
                "No incentive tier matched branch=%s period=%s achievement=%s%%",
                branch.pk,
                self.year_month,
                round_percent(percent),
            )

        return ProposedAward(
            branch_id=str(branch.pk),
            branch_name=branch.name,
            target_amount=target,
            achieved_amount=achieved.total,
            achievement_percent=round_percent(percent),
            tier_id=str(tier.pk) if tier is not None else None,
            tier_name=tier.name if tier is not None else "",
            calculated_reward=reward.total,
            status=existing_award.status if existing_award is not None else PROPOSED,
            rounded_to_zero=reward.rounded_to_zero,
            journal_ids=achieved.journal_ids,
            existing_award_id=str(existing_award.pk) if existing_award is not None else None,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _existing_awards(self, branch_ids) -> dict:
        from incentives.models import IncentiveAward

        awards = IncentiveAward.objects.filter(
            branch_id__in=branch_ids,
            period_start=self.period_start,
            period_end=self.period_end,
        ).exclude(status=IncentiveAward.Status.CANCELLED)
        return {award.branch_id: award for award in awards}
