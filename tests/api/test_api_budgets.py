"""API tests for budget allocations and reconciled project cost."""
from decimal import Decimal

import pytest

from construction.models import BudgetAllocation, PaymentRequest, ProjectWorkItem

ALLOCATIONS_URL = "/api/v1/budget-allocations/"
PROJECTS_URL = "/api/v1/construction-projects/"


def _upsert(client, project, category, amount):
    return client.post(
        f"{ALLOCATIONS_URL}upsert/",
        {"project": str(project.pk), "category": str(category.pk), "planned_amount": amount},
        format="json",
    )


@pytest.fixture
def electrical_costs(project, electrical):
    ProjectWorkItem.objects.create(project=project, category=electrical, name="Wiring", actual_cost=Decimal("40000"))
    PaymentRequest.objects.create(
        project=project,
        category=electrical,
        request_type=PaymentRequest.RequestType.TRANSFER,
        amount=Decimal("55000"),
        description="Electrical contractor",
        status=PaymentRequest.Status.PAID,
    )
    return project


@pytest.mark.django_db
class TestBudgetAllocationAPI:
    def test_upsert_creates_then_updates(self, manager_client, project, electrical):
        resp = _upsert(manager_client, project, electrical, "50000.00")
        assert resp.status_code == 201, resp.data
        allocation_id = resp.data["id"]

        resp = _upsert(manager_client, project, electrical, "52000.00")
        assert resp.status_code == 200, resp.data
        assert resp.data["id"] == allocation_id
        assert resp.data["planned_amount"] == "52000.00"
        assert BudgetAllocation.objects.count() == 1

    def test_negative_amount_rejected(self, accountant_client, project, electrical):
        resp = _upsert(accountant_client, project, electrical, "-10.00")
        assert resp.status_code == 400
        assert not BudgetAllocation.objects.exists()

    def test_unknown_category_rejected(self, manager_client, project):
        resp = manager_client.post(
            f"{ALLOCATIONS_URL}upsert/",
            {"project": str(project.pk), "category": "00000000-0000-0000-0000-000000000000", "planned_amount": "1"},
            format="json",
        )
        assert resp.status_code == 400
        assert "category" in resp.data

    def test_viewer_cannot_upsert(self, viewer_client, project, electrical):
        resp = _upsert(viewer_client, project, electrical, "100.00")
        assert resp.status_code == 403

    def test_list_for_project(self, manager_client, viewer_client, project, electrical, finishing):
        _upsert(manager_client, project, finishing, "1000.00")
        _upsert(manager_client, project, electrical, "2000.00")
        resp = viewer_client.get(ALLOCATIONS_URL, {"project": str(project.pk)})
        assert resp.status_code == 200
        assert [row["category_name"] for row in resp.data["results"]] == ["Electrical", "Finishing"]

    def test_list_for_unknown_project(self, viewer_client):
        resp = viewer_client.get(ALLOCATIONS_URL, {"project": "00000000-0000-0000-0000-000000000000"})
        assert resp.status_code == 404


@pytest.mark.django_db
class TestConstructionProjectAPI:
    def test_actual_cost_uses_max_of_sources(self, viewer_client, electrical_costs, electrical):
        resp = viewer_client.get(f"{PROJECTS_URL}{electrical_costs.pk}/actual-cost/", {"category": str(electrical.pk)})
        assert resp.status_code == 200
        assert resp.data["actual_cost"] == "55000.00"

        resp = viewer_client.get(f"{PROJECTS_URL}{electrical_costs.pk}/actual-cost/")
        assert resp.data["category"] is None
        assert resp.data["actual_cost"] == "55000.00"

    def test_actual_cost_bad_category(self, viewer_client, project):
        resp = viewer_client.get(f"{PROJECTS_URL}{project.pk}/actual-cost/", {"category": "not-a-uuid"})
        assert resp.status_code == 400

    def test_budget_report(self, manager_client, electrical_costs, electrical):
        _upsert(manager_client, electrical_costs, electrical, "50000.00")
        resp = manager_client.get(f"{PROJECTS_URL}{electrical_costs.pk}/budget-report/")
        assert resp.status_code == 200
        line = resp.data["lines"][0]
        assert line["category_name"] == "Electrical"
        assert line["actual_cost"] == "55000.00"
        assert line["variance"] == "-5000.00"
        assert line["variance_percent"] == "-10.00"
        assert line["status"] == "acceptable_overrun"
        assert resp.data["total"]["planned_amount"] == "50000.00"

    def test_list_includes_reconciled_cost(self, viewer_client, electrical_costs):
        resp = viewer_client.get(PROJECTS_URL)
        assert resp.status_code == 200
        row = resp.data["results"][0]
        assert row["reconciled_actual_cost"] == "55000.00"
        assert row["budget_variance"]["status"] == "within_budget"
        assert row["budget_variance"]["consumption_percent"] == "36.67"
