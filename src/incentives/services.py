"""Award lifecycle: commit staged proposals and move awards through approval."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from branches.models import Branch
from branches.services import create_audit_log
from incentives.engine import IncentiveCalculationEngine, ProposedAward, load_candidate_tiers
from incentives.exceptions import (
    DuplicateAwardPeriod,
    IncentiveError,
    InvalidAwardAmount,
    InvalidStateTransition,
)
from incentives.models import IncentiveAward, IncentiveTier
from targets.services import month_bounds

logger = logging.getLogger("bakery")

Status = IncentiveAward.Status


def calculate_incentives(year_month: str) -> list[ProposedAward]:
    """Stage proposals for every active branch; nothing is persisted."""
    return IncentiveCalculationEngine(year_month).calculate_and_stage()


def _field(proposal, name, default=None):
    if isinstance(proposal, Mapping):
        return proposal.get(name, default)
    return getattr(proposal, name, default)


def _amount(proposal, name) -> Decimal:
    value = _field(proposal, name)
    return Decimal(str(value)) if value not in (None, "") else Decimal("0.00")


def _actor_or_none(actor):
    return actor if getattr(actor, "is_authenticated", False) else None


def _find_active_award(branch_ids, period_start, period_end):
    return (
        IncentiveAward.objects.filter(
            branch_id__in=branch_ids,
            period_start=period_start,
            period_end=period_end,
        )
        .exclude(status=Status.CANCELLED)
        .select_related("branch")
        .first()
    )


def _engine_for_period(period_start: date, period_end: date):
    """Engine for a calendar-month period, or None for any other span."""
    year_month = period_start.strftime("%Y-%m")
    if month_bounds(year_month) != (period_start, period_end):
        return None
    return IncentiveCalculationEngine(year_month)


def _check_against_engine(proposal, expected: ProposedAward, branch) -> None:
    submitted = (
        _amount(proposal, "target_amount"),
        _amount(proposal, "achieved_amount"),
        str(_field(proposal, "tier_id") or ""),
        _amount(proposal, "achievement_percent"),
        _amount(proposal, "calculated_reward"),
    )
    computed = (
        expected.target_amount,
        expected.achieved_amount,
        expected.tier_id or "",
        expected.achievement_percent,
        expected.calculated_reward,
    )
    if submitted != computed:
        raise IncentiveError(
            f"The proposal for {branch.name} does not match the current calculation. "
            "Recalculate before committing."
        )


@transaction.atomic
def _create_awards(proposals, *, period_start, period_end, actor, award_type) -> list[IncentiveAward]:
    branch_ids = [str(_field(p, "branch_id")) for p in proposals]
    if len(set(branch_ids)) != len(branch_ids):
        raise IncentiveError("The batch contains the same branch more than once.")

    branches = {str(pk): branch for pk, branch in Branch.objects.in_bulk(branch_ids).items()}
    missing = [bid for bid in branch_ids if bid not in branches]
    if missing:
        raise IncentiveError(f"Unknown branch: {missing[0]}.")

    tier_ids = {str(_field(p, "tier_id")) for p in proposals if _field(p, "tier_id")}
    tiers = {str(pk): tier for pk, tier in IncentiveTier.objects.in_bulk(list(tier_ids)).items()}
    unknown_tiers = tier_ids - set(tiers)
    if unknown_tiers:
        raise IncentiveError(f"Unknown incentive tier: {sorted(unknown_tiers)[0]}.")

    clash = _find_active_award(branch_ids, period_start, period_end)
    if clash is not None:
        raise DuplicateAwardPeriod(clash.branch.name, period_start, period_end)

    engine = None
    if award_type == IncentiveAward.AwardType.MONTHLY:
        engine = _engine_for_period(period_start, period_end)
    tiers_by_scope: dict[str, list] = {}
    created_by = _actor_or_none(actor)
    awards = []
    for proposal in proposals:
        branch = branches[str(_field(proposal, "branch_id"))]
        target = _amount(proposal, "target_amount")
        achieved = _amount(proposal, "achieved_amount")
        reward = _amount(proposal, "calculated_reward")
        if target < 0 or achieved < 0 or reward < 0:
            raise InvalidAwardAmount(
                f"Amounts for {branch.name} must not be negative "
                f"(target={target}, achieved={achieved}, reward={reward})."
            )
        if engine is not None:
            scope = branch.incentive_scope or ""
            if scope not in tiers_by_scope:
                tiers_by_scope[scope] = load_candidate_tiers(scope)
            expected = engine.propose_for_branch(branch, tiers_by_scope[scope])
            _check_against_engine(proposal, expected, branch)
        tier = tiers.get(str(_field(proposal, "tier_id") or ""))
        award = IncentiveAward.objects.create(
            award_type=award_type,
            branch=branch,
            period_start=period_start,
            period_end=period_end,
            target_amount=target,
            achieved_amount=achieved,
            achievement_percent=_amount(proposal, "achievement_percent"),
            tier=tier,
            tier_name=_field(proposal, "tier_name") or (tier.name if tier else ""),
            calculated_reward=reward,
            final_reward=reward,
            status=Status.PENDING,
            notes=_field(proposal, "notes") or "",
            journal_ids=list(_field(proposal, "journal_ids") or []),
            created_by=created_by,
        )
        create_audit_log(
            actor=actor,
            branch=branch,
            action="INCENTIVE_AWARD_COMMIT",
            entity_type="IncentiveAward",
            entity_id=str(award.pk),
            after={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "tier": award.tier_name,
                "final_reward": str(award.final_reward),
            },
        )
        awards.append(award)
    return awards


def commit_awards(
    proposals,
    *,
    period_start: date,
    period_end: date,
    actor=None,
    award_type: str = IncentiveAward.AwardType.MONTHLY,
) -> list[IncentiveAward]:
    """Persist staged proposals as pending awards, all or nothing.

    Raises :class:`DuplicateAwardPeriod` when any branch already holds a
    non-cancelled award for the period, including when a concurrent commit
    wins the race and the unique constraint rejects this one.

    Monthly proposals covering a calendar month are checked against a fresh
    calculation; a stale or altered proposal raises :class:`IncentiveError`.
    """
    proposals = list(proposals)
    if period_end < period_start:
        raise IncentiveError("period_end must not be before period_start.")
    if not proposals:
        return []

    try:
        awards = _create_awards(
            proposals,
            period_start=period_start,
            period_end=period_end,
            actor=actor,
            award_type=award_type,
        )
    except IntegrityError as exc:
        raise DuplicateAwardPeriod(None, period_start, period_end) from exc

    logger.info(
        "Committed %d incentive awards for %s..%s by=%s",
        len(awards),
        period_start,
        period_end,
        actor,
    )
    return awards


def _transition(
    award,
    *,
    action: str,
    from_statuses: tuple[str, ...],
    to_status: str | None,
    actor,
    changes: dict | None = None,
) -> IncentiveAward:
    """Compare-and-set status change guarded by row lock and version."""
    award_id = getattr(award, "pk", award)
    with transaction.atomic():
        locked = IncentiveAward.objects.select_for_update().select_related("branch").get(pk=award_id)
        if locked.status not in from_statuses:
            raise InvalidStateTransition(locked.pk, locked.status, action)

        before = {"status": locked.status, "final_reward": str(locked.final_reward)}
        values = dict(changes or {})
        if to_status is not None:
            values["status"] = to_status
        updated = IncentiveAward.objects.filter(
            pk=locked.pk,
            status=locked.status,
            version=locked.version,
        ).update(version=F("version") + 1, updated_at=timezone.now(), **values)
        if updated != 1:
            raise InvalidStateTransition(locked.pk, locked.status, action)

        locked.refresh_from_db()
        create_audit_log(
            actor=actor,
            branch=locked.branch,
            action=f"INCENTIVE_AWARD_{action.upper()}",
            entity_type="IncentiveAward",
            entity_id=str(locked.pk),
            before=before,
            after={"status": locked.status, "final_reward": str(locked.final_reward)},
        )

    logger.info("Incentive award %s: %s -> %s by=%s", locked.pk, before["status"], locked.status, actor)
    return locked


def approve_award(award, *, actor=None) -> IncentiveAward:
    """pending -> approved."""
    return _transition(
        award,
        action="approve",
        from_statuses=(Status.PENDING,),
        to_status=Status.APPROVED,
        actor=actor,
        changes={"approved_by": _actor_or_none(actor), "approved_at": timezone.now()},
    )


def pay_award(award, *, actor=None) -> IncentiveAward:
    """approved -> paid. The final reward is frozen from here on."""
    return _transition(
        award,
        action="pay",
        from_statuses=(Status.APPROVED,),
        to_status=Status.PAID,
        actor=actor,
        changes={"paid_by": _actor_or_none(actor), "paid_at": timezone.now()},
    )


def cancel_award(award, *, actor=None, reason: str = "") -> IncentiveAward:
    """pending|approved -> cancelled; frees the branch period for a new commit."""
    return _transition(
        award,
        action="cancel",
        from_statuses=(Status.PENDING, Status.APPROVED),
        to_status=Status.CANCELLED,
        actor=actor,
        changes={
            "cancelled_by": _actor_or_none(actor),
            "cancelled_at": timezone.now(),
            "cancellation_reason": (reason or "").strip(),
        },
    )


def adjust_award_reward(award, amount, *, actor=None, notes: str | None = None) -> IncentiveAward:
    """Override the reward of an unpaid award; the calculated reward is kept."""
    amount = Decimal(str(amount))
    if amount < 0:
        raise InvalidAwardAmount("Adjusted reward must not be negative.")
    changes = {"adjusted_reward": amount, "final_reward": amount}
    if notes is not None:
        changes["notes"] = notes.strip()
    return _transition(
        award,
        action="adjust",
        from_statuses=(Status.PENDING, Status.APPROVED),
        to_status=None,
        actor=actor,
        changes=changes,
    )
