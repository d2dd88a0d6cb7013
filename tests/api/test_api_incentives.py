"""API tests for incentive tiers and the award workflow."""
from decimal import Decimal

import pytest

from incentives.models import IncentiveAward, IncentiveTier

TIERS_URL = "/api/v1/incentive-tiers/"
AWARDS_URL = "/api/v1/incentive-awards/"


def _calculate(client, year_month="2025-05"):
    resp = client.post(f"{AWARDS_URL}calculate/", {"year_month": year_month}, format="json")
    assert resp.status_code == 200, resp.data
    return resp.data


def _commit(client, proposals, year_month="2025-05"):
    return client.post(
        f"{AWARDS_URL}commit/",
        {"year_month": year_month, "awards": proposals},
        format="json",
    )


@pytest.mark.django_db
class TestIncentiveTierAPI:
    def test_admin_creates_tier(self, admin_client):
        resp = admin_client.post(
            TIERS_URL,
            {
                "name": "Platinum",
                "min_achievement_percent": "150.00",
                "max_achievement_percent": None,
                "reward_type": "both",
                "fixed_amount": "1000.00",
                "percentage_rate": "7.50",
                "applicable_to": "branch",
                "sort_order": 4,
            },
            format="json",
        )
        assert resp.status_code == 201, resp.data
        tier = IncentiveTier.objects.get(pk=resp.data["id"])
        assert tier.created_by is not None
        assert tier.max_achievement_percent is None

    def test_manager_can_read_but_not_write(self, manager_client, tier_set):
        resp = manager_client.get(TIERS_URL)
        assert resp.status_code == 200
        assert resp.data["count"] == 3

        resp = manager_client.post(
            TIERS_URL,
            {"name": "X", "min_achievement_percent": "0", "reward_type": "fixed", "fixed_amount": "1"},
            format="json",
        )
        assert resp.status_code == 403

    def test_upper_bound_must_exceed_lower(self, admin_client):
        resp = admin_client.post(
            TIERS_URL,
            {
                "name": "Broken",
                "min_achievement_percent": "100",
                "max_achievement_percent": "90",
                "reward_type": "fixed",
                "fixed_amount": "100",
            },
            format="json",
        )
        assert resp.status_code == 400
        assert "max_achievement_percent" in resp.data

    def test_reward_type_requires_its_amounts(self, admin_client):
        resp = admin_client.post(
            TIERS_URL,
            {"name": "No rate", "min_achievement_percent": "100", "reward_type": "percentage"},
            format="json",
        )
        assert resp.status_code == 400
        assert "percentage_rate" in resp.data

    def test_coverage_report(self, admin_client, tier_set):
        resp = admin_client.get(f"{TIERS_URL}coverage/")
        assert resp.status_code == 200
        assert resp.data["tier_count"] == 3
        assert resp.data["issues"] == [
            {"kind": "gap", "from_percent": "0.00", "to_percent": "80.00", "tiers": [str(tier_set["bronze"].pk)]}
        ]

    def test_coverage_flags_overlap(self, admin_client, tier_set):
        IncentiveTier.objects.create(
            name="Overlap",
            min_achievement_percent=Decimal("95"),
            max_achievement_percent=Decimal("105"),
            fixed_amount=Decimal("10"),
        )
        resp = admin_client.get(f"{TIERS_URL}coverage/", {"scope": "branch"})
        assert resp.data["is_contiguous"] is False
        assert "overlap" in [issue["kind"] for issue in resp.data["issues"]]


@pytest.mark.django_db
class TestIncentiveAwardWorkflowAPI:
    def test_calculate_returns_unsaved_proposals(self, manager_client, may_sales, tier_set):
        data = _calculate(manager_client)
        assert len(data) == 1
        assert data[0]["achievement_percent"] == "120.00"
        assert data[0]["calculated_reward"] == "600.00"
        assert data[0]["tier_name"] == "Gold"
        assert data[0]["status"] == "proposed"
        assert IncentiveAward.objects.count() == 0

    def test_calculate_rejects_bad_month(self, manager_client):
        resp = manager_client.post(f"{AWARDS_URL}calculate/", {"year_month": "May 2025"}, format="json")
        assert resp.status_code == 400

    def test_viewer_cannot_calculate(self, viewer_client, may_sales):
        resp = viewer_client.post(f"{AWARDS_URL}calculate/", {"year_month": "2025-05"}, format="json")
        assert resp.status_code == 403

    def test_anonymous_is_rejected(self, api_client):
        resp = api_client.get(AWARDS_URL)
        assert resp.status_code == 401

    def test_commit_twice_conflicts(self, manager_client, may_sales, tier_set):
        proposals = _calculate(manager_client)

        resp = _commit(manager_client, proposals)
        assert resp.status_code == 201, resp.data
        assert resp.data[0]["status"] == "pending"
        assert resp.data[0]["final_reward"] == "600.00"
        assert resp.data[0]["period_start"] == "2025-05-01"
        assert resp.data[0]["period_end"] == "2025-05-31"

        resp = _commit(manager_client, proposals)
        assert resp.status_code == 409
        assert resp.data["code"] == "duplicate_award_period"
        assert IncentiveAward.objects.count() == 1

    def test_commit_requires_period(self, manager_client, may_sales, tier_set):
        proposals = _calculate(manager_client)
        resp = manager_client.post(f"{AWARDS_URL}commit/", {"awards": proposals}, format="json")
        assert resp.status_code == 400

    def test_commit_with_explicit_dates(self, manager_client, may_sales, tier_set):
        proposals = _calculate(manager_client)
        resp = manager_client.post(
            f"{AWARDS_URL}commit/",
            {"period_start": "2025-05-01", "period_end": "2025-05-31", "awards": proposals},
            format="json",
        )
        assert resp.status_code == 201, resp.data

    def test_empty_batch_rejected(self, manager_client):
        resp = _commit(manager_client, [])
        assert resp.status_code == 400

    def test_unknown_branch_rejected(self, manager_client, may_sales, tier_set):
        proposals = _calculate(manager_client)
        proposals[0]["branch_id"] = "00000000-0000-0000-0000-000000000000"
        resp = _commit(manager_client, proposals)
        assert resp.status_code == 400
        assert "Unknown branch" in resp.data["detail"]

    def test_altered_reward_rejected(self, manager_client, may_sales, tier_set):
        proposals = _calculate(manager_client)
        proposals[0]["calculated_reward"] = "5000.00"
        resp = _commit(manager_client, proposals)
        assert resp.status_code == 400
        assert "Recalculate" in resp.data["detail"]
        assert IncentiveAward.objects.count() == 0

    def test_cancel_approved_award(self, manager_client, may_sales, tier_set):
        award_id = _commit(manager_client, _calculate(manager_client)).data[0]["id"]
        manager_client.post(f"{AWARDS_URL}{award_id}/approve/")

        resp = manager_client.post(f"{AWARDS_URL}{award_id}/cancel/", {"reason": "Closed"}, format="json")
        assert resp.status_code == 200, resp.data
        assert resp.data["status"] == "cancelled"

        resp = manager_client.post(f"{AWARDS_URL}{award_id}/cancel/", {"reason": "Closed"}, format="json")
        assert resp.status_code == 409
        assert resp.data["code"] == "invalid_state_transition"

    def test_approve_pay_flow_with_roles(self, manager_client, accountant_client, may_sales, tier_set):
        award_id = _commit(manager_client, _calculate(manager_client)).data[0]["id"]

        resp = manager_client.post(f"{AWARDS_URL}{award_id}/pay/")
        assert resp.status_code == 403

        resp = accountant_client.post(f"{AWARDS_URL}{award_id}/pay/")
        assert resp.status_code == 409
        assert resp.data["code"] == "invalid_state_transition"

        resp = accountant_client.post(f"{AWARDS_URL}{award_id}/approve/")
        assert resp.status_code == 403

        resp = manager_client.post(f"{AWARDS_URL}{award_id}/approve/")
        assert resp.status_code == 200, resp.data
        assert resp.data["status"] == "approved"

        resp = accountant_client.post(f"{AWARDS_URL}{award_id}/pay/")
        assert resp.status_code == 200, resp.data
        assert resp.data["status"] == "paid"

        resp = manager_client.post(f"{AWARDS_URL}{award_id}/cancel/", {"reason": "late"}, format="json")
        assert resp.status_code == 409

    def test_adjust_and_cancel(self, manager_client, may_sales, tier_set):
        award_id = _commit(manager_client, _calculate(manager_client)).data[0]["id"]

        resp = manager_client.post(
            f"{AWARDS_URL}{award_id}/adjust/",
            {"amount": "550.00", "notes": "Missing journal"},
            format="json",
        )
        assert resp.status_code == 200, resp.data
        assert resp.data["calculated_reward"] == "600.00"
        assert resp.data["final_reward"] == "550.00"

        resp = manager_client.post(f"{AWARDS_URL}{award_id}/adjust/", {"amount": "-1"}, format="json")
        assert resp.status_code == 400

        resp = manager_client.post(f"{AWARDS_URL}{award_id}/cancel/", {"reason": "Recount"}, format="json")
        assert resp.status_code == 200
        assert resp.data["status"] == "cancelled"

        # The period is free again.
        resp = _commit(manager_client, _calculate(manager_client))
        assert resp.status_code == 201, resp.data

    def test_list_filters_by_status(self, viewer_client, manager_client, may_sales, tier_set):
        _commit(manager_client, _calculate(manager_client))
        resp = viewer_client.get(AWARDS_URL, {"status": "pending"})
        assert resp.status_code == 200
        assert resp.data["count"] == 1
        resp = viewer_client.get(AWARDS_URL, {"status": "paid"})
        assert resp.data["count"] == 0

    def test_api_responses_are_not_cached(self, viewer_client):
        resp = viewer_client.get(AWARDS_URL)
        assert "no-store" in resp["Cache-Control"]
        assert resp["Pragma"] == "no-cache"
