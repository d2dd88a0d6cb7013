"""Committing proposals and moving awards through approval and payment."""
from datetime import date
from unittest.mock import patch
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from branches.models import AuditLog
from incentives.exceptions import DuplicateAwardPeriod, IncentiveError, InvalidAwardAmount, InvalidStateTransition
from incentives.models import IncentiveAward
from incentives.services import (
    adjust_award_reward,
    approve_award,
    calculate_incentives,
    cancel_award,
    commit_awards,
    pay_award,
)

MAY_START = date(2025, 5, 1)
MAY_END = date(2025, 5, 31)


@pytest.fixture
def committed_award(may_sales, tier_set, manager_user):
    proposals = calculate_incentives("2025-05")
    return commit_awards(proposals, period_start=MAY_START, period_end=MAY_END, actor=manager_user)[0]


@pytest.mark.django_db
class TestCommitAwards:
    def test_commit_creates_pending_award(self, committed_award, manager_user):
        award = committed_award
        assert award.status == IncentiveAward.Status.PENDING
        assert award.tier_name == "Gold"
        assert award.calculated_reward == Decimal("600.00")
        assert award.final_reward == Decimal("600.00")
        assert award.adjusted_reward is None
        assert award.created_by == manager_user
        assert award.version == 1
        assert AuditLog.objects.filter(action="INCENTIVE_AWARD_COMMIT", entity_id=str(award.pk)).exists()

    def test_second_commit_for_same_period_is_rejected(self, committed_award):
        proposals = calculate_incentives("2025-05")
        assert proposals[0].existing_award_id == str(committed_award.pk)
        assert proposals[0].status == IncentiveAward.Status.PENDING

        with pytest.raises(DuplicateAwardPeriod):
            commit_awards(proposals, period_start=MAY_START, period_end=MAY_END)

        assert IncentiveAward.objects.filter(branch=committed_award.branch, period_start=MAY_START).count() == 1

    def test_batch_is_all_or_nothing(self, committed_award, other_branch, make_target):
        make_target(other_branch, "2025-05", "5000.00")
        proposals = calculate_incentives("2025-05")
        assert len(proposals) == 2

        with pytest.raises(DuplicateAwardPeriod):
            commit_awards(proposals, period_start=MAY_START, period_end=MAY_END)

        assert not IncentiveAward.objects.filter(branch=other_branch).exists()

    def test_other_periods_are_independent(self, committed_award):
        june = calculate_incentives("2025-06")
        awards = commit_awards(june, period_start=date(2025, 6, 1), period_end=date(2025, 6, 30))
        assert len(awards) == 1
        assert awards[0].achieved_amount == Decimal("0.00")

    def test_cancelled_award_frees_the_period(self, committed_award, admin_user):
        cancel_award(committed_award, actor=admin_user, reason="Target revised")
        proposals = calculate_incentives("2025-05")
        assert proposals[0].existing_award_id is None

        awards = commit_awards(proposals, period_start=MAY_START, period_end=MAY_END)
        assert len(awards) == 1
        assert IncentiveAward.objects.filter(period_start=MAY_START).count() == 2

    def test_commit_accepts_plain_dicts(self, may_sales, tier_set):
        proposals = [p.as_dict() for p in calculate_incentives("2025-05")]
        award = commit_awards(proposals, period_start=MAY_START, period_end=MAY_END)[0]
        assert award.final_reward == Decimal("600.00")
        assert award.tier == tier_set["gold"]

    def test_empty_batch_is_noop(self, db):
        assert commit_awards([], period_start=MAY_START, period_end=MAY_END) == []

    def test_negative_amount_rejected(self, may_sales, tier_set):
        proposal = calculate_incentives("2025-05")[0].as_dict()
        proposal["calculated_reward"] = "-1.00"
        with pytest.raises(InvalidAwardAmount):
            commit_awards([proposal], period_start=MAY_START, period_end=MAY_END)
        assert IncentiveAward.objects.count() == 0

    def test_duplicate_branch_in_batch_rejected(self, may_sales, tier_set):
        proposal = calculate_incentives("2025-05")[0]
        with pytest.raises(IncentiveError):
            commit_awards([proposal, proposal], period_start=MAY_START, period_end=MAY_END)

    def test_inverted_period_rejected(self, may_sales, tier_set):
        with pytest.raises(IncentiveError):
            commit_awards(calculate_incentives("2025-05"), period_start=MAY_END, period_end=MAY_START)

    def test_altered_reward_rejected(self, may_sales, tier_set):
        proposal = calculate_incentives("2025-05")[0].as_dict()
        proposal["calculated_reward"] = "9999.00"
        with pytest.raises(IncentiveError, match="does not match"):
            commit_awards([proposal], period_start=MAY_START, period_end=MAY_END)
        assert IncentiveAward.objects.count() == 0

    def test_altered_tier_rejected(self, may_sales, tier_set):
        proposal = calculate_incentives("2025-05")[0].as_dict()
        proposal["tier_id"] = str(tier_set["bronze"].pk)
        with pytest.raises(IncentiveError):
            commit_awards([proposal], period_start=MAY_START, period_end=MAY_END)

    def test_stale_proposal_rejected(self, may_sales, tier_set, make_journal):
        proposals = calculate_incentives("2025-05")
        make_journal(may_sales, date(2025, 5, 15), "1000.00")
        with pytest.raises(IncentiveError):
            commit_awards(proposals, period_start=MAY_START, period_end=MAY_END)
        assert IncentiveAward.objects.count() == 0

    def test_special_award_for_custom_period_is_stored_as_given(self, branch):
        award = commit_awards(
            [{"branch_id": str(branch.pk), "calculated_reward": "250.00", "notes": "Eid campaign"}],
            period_start=date(2025, 4, 1),
            period_end=date(2025, 4, 10),
            award_type=IncentiveAward.AwardType.SPECIAL,
        )[0]
        assert award.award_type == IncentiveAward.AwardType.SPECIAL
        assert award.final_reward == Decimal("250.00")
        assert award.tier is None


@pytest.mark.django_db
class TestActiveAwardConstraint:
    def test_database_rejects_second_active_award(self, committed_award):
        with pytest.raises(IntegrityError), transaction.atomic():
            IncentiveAward.objects.create(
                branch=committed_award.branch,
                period_start=MAY_START,
                period_end=MAY_END,
                status=IncentiveAward.Status.PENDING,
            )

    def test_database_allows_cancelled_duplicates(self, committed_award):
        IncentiveAward.objects.create(
            branch=committed_award.branch,
            period_start=MAY_START,
            period_end=MAY_END,
            status=IncentiveAward.Status.CANCELLED,
        )
        assert IncentiveAward.objects.filter(branch=committed_award.branch).count() == 2

    def test_constraint_violation_surfaces_as_duplicate_period(self, committed_award, other_branch, make_target):
        make_target(other_branch, "2025-05", "5000.00")
        proposals = calculate_incentives("2025-05")
        assert [p.branch_name for p in proposals] == [other_branch.name, committed_award.branch.name]

        with patch("incentives.services._find_active_award", return_value=None):
            with pytest.raises(DuplicateAwardPeriod) as excinfo:
                commit_awards(proposals, period_start=MAY_START, period_end=MAY_END)

        assert excinfo.value.branch_name is None
        assert isinstance(excinfo.value.__cause__, IntegrityError)
        assert not IncentiveAward.objects.filter(branch=other_branch).exists()
        assert IncentiveAward.objects.count() == 1


@pytest.mark.django_db
class TestTransitions:
    def test_full_happy_path(self, committed_award, manager_user, accountant_user):
        award = approve_award(committed_award, actor=manager_user)
        assert award.status == IncentiveAward.Status.APPROVED
        assert award.approved_by == manager_user
        assert award.approved_at is not None
        assert award.version == 2

        award = pay_award(award, actor=accountant_user)
        assert award.status == IncentiveAward.Status.PAID
        assert award.paid_by == accountant_user
        assert award.paid_at is not None
        assert award.version == 3

        actions = list(
            AuditLog.objects.filter(entity_id=str(award.pk)).order_by("id").values_list("action", flat=True)
        )
        assert actions == ["INCENTIVE_AWARD_COMMIT", "INCENTIVE_AWARD_APPROVE", "INCENTIVE_AWARD_PAY"]

    def test_cannot_pay_pending_award(self, committed_award, accountant_user):
        with pytest.raises(InvalidStateTransition) as excinfo:
            pay_award(committed_award, actor=accountant_user)
        assert excinfo.value.current_status == IncentiveAward.Status.PENDING
        committed_award.refresh_from_db()
        assert committed_award.status == IncentiveAward.Status.PENDING

    def test_cannot_approve_twice(self, committed_award, manager_user):
        approve_award(committed_award, actor=manager_user)
        with pytest.raises(InvalidStateTransition):
            approve_award(committed_award, actor=manager_user)

    def test_paid_award_cannot_be_cancelled(self, committed_award, manager_user, accountant_user):
        approve_award(committed_award, actor=manager_user)
        pay_award(committed_award, actor=accountant_user)
        with pytest.raises(InvalidStateTransition):
            cancel_award(committed_award, actor=manager_user, reason="too late")

    def test_cancelled_award_is_terminal(self, committed_award, manager_user):
        cancel_award(committed_award, actor=manager_user, reason="  duplicate  ")
        committed_award.refresh_from_db()
        assert committed_award.cancellation_reason == "duplicate"
        with pytest.raises(InvalidStateTransition):
            approve_award(committed_award, actor=manager_user)

    def test_stale_instance_cannot_skip_a_step(self, committed_award, manager_user):
        stale = IncentiveAward.objects.get(pk=committed_award.pk)
        cancel_award(committed_award, actor=manager_user)
        with pytest.raises(InvalidStateTransition):
            approve_award(stale, actor=manager_user)

    def test_approved_award_can_be_cancelled_once(self, committed_award, manager_user):
        approve_award(committed_award, actor=manager_user)
        award = cancel_award(committed_award, actor=manager_user, reason="Branch closed")
        assert award.status == IncentiveAward.Status.CANCELLED
        assert award.cancelled_by == manager_user
        assert award.cancelled_at is not None
        assert award.approved_by == manager_user

        with pytest.raises(InvalidStateTransition) as excinfo:
            cancel_award(committed_award, actor=manager_user, reason="again")
        assert excinfo.value.current_status == IncentiveAward.Status.CANCELLED


@pytest.mark.django_db
class TestAdjustReward:
    def test_adjust_keeps_calculated_reward(self, committed_award, manager_user):
        award = adjust_award_reward(committed_award, Decimal("450.00"), actor=manager_user, notes="Late journals")
        assert award.calculated_reward == Decimal("600.00")
        assert award.adjusted_reward == Decimal("450.00")
        assert award.final_reward == Decimal("450.00")
        assert award.notes == "Late journals"
        assert award.status == IncentiveAward.Status.PENDING

    def test_adjust_after_approval_allowed(self, committed_award, manager_user):
        approve_award(committed_award, actor=manager_user)
        award = adjust_award_reward(committed_award, "0", actor=manager_user)
        assert award.final_reward == Decimal("0.00")
        assert award.status == IncentiveAward.Status.APPROVED

    def test_negative_adjustment_rejected(self, committed_award, manager_user):
        with pytest.raises(InvalidAwardAmount):
            adjust_award_reward(committed_award, Decimal("-5"), actor=manager_user)

    def test_paid_award_is_frozen(self, committed_award, manager_user, accountant_user):
        approve_award(committed_award, actor=manager_user)
        pay_award(committed_award, actor=accountant_user)
        with pytest.raises(InvalidStateTransition):
            adjust_award_reward(committed_award, Decimal("1.00"), actor=manager_user)
