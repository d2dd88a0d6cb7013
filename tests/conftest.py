from datetime import date
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from accounts.models import User
from branches.models import Branch
from construction.models import ConstructionCategory, ConstructionProject
from incentives.models import IncentiveTier
from targets.models import BranchMonthlyTarget, CashierSalesJournal


def _make_user(email, role):
    return User.objects.create_user(
        email=email,
        password="testpass123",
        first_name=role.title(),
        last_name="User",
        role=role,
    )


@pytest.fixture
def admin_user(db):
    return _make_user("admin@test.com", User.Role.ADMIN)


@pytest.fixture
def manager_user(db):
    return _make_user("manager@test.com", User.Role.MANAGER)


@pytest.fixture
def accountant_user(db):
    return _make_user("accountant@test.com", User.Role.ACCOUNTANT)


@pytest.fixture
def viewer_user(db):
    return _make_user("viewer@test.com", User.Role.VIEWER)


@pytest.fixture
def api_client():
    return APIClient()


def _client_for(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_client(admin_user):
    return _client_for(admin_user)


@pytest.fixture
def manager_client(manager_user):
    return _client_for(manager_user)


@pytest.fixture
def accountant_client(accountant_user):
    return _client_for(accountant_user)


@pytest.fixture
def viewer_client(viewer_user):
    return _client_for(viewer_user)


@pytest.fixture
def branch(db):
    return Branch.objects.create(name="Olaya Bakery", code="RUH-01", city="Riyadh")


@pytest.fixture
def other_branch(db):
    return Branch.objects.create(name="Malqa Bakery", code="RUH-02", city="Riyadh")


@pytest.fixture
def tier_set(db):
    """Gap-free tiers: nothing below 80%, Bronze, Silver, open-ended Gold."""
    bronze = IncentiveTier.objects.create(
        name="Bronze",
        min_achievement_percent=Decimal("80"),
        max_achievement_percent=Decimal("100"),
        reward_type=IncentiveTier.RewardType.FIXED,
        fixed_amount=Decimal("200.00"),
        sort_order=1,
    )
    silver = IncentiveTier.objects.create(
        name="Silver",
        min_achievement_percent=Decimal("100"),
        max_achievement_percent=Decimal("110"),
        reward_type=IncentiveTier.RewardType.FIXED,
        fixed_amount=Decimal("300.00"),
        sort_order=2,
    )
    gold = IncentiveTier.objects.create(
        name="Gold",
        min_achievement_percent=Decimal("110"),
        max_achievement_percent=None,
        reward_type=IncentiveTier.RewardType.BOTH,
        fixed_amount=Decimal("500.00"),
        percentage_rate=Decimal("5"),
        sort_order=3,
    )
    return {"bronze": bronze, "silver": silver, "gold": gold}


@pytest.fixture
def make_target(db):
    def _make(branch, year_month, amount, status=BranchMonthlyTarget.Status.ACTIVE):
        return BranchMonthlyTarget.objects.create(
            branch=branch,
            year_month=year_month,
            target_amount=Decimal(str(amount)),
            status=status,
        )

    return _make


@pytest.fixture
def make_journal(db):
    def _make(branch, journal_date, total_sales, status=CashierSalesJournal.Status.APPROVED):
        return CashierSalesJournal.objects.create(
            branch=branch,
            cashier_name="Cashier",
            journal_date=journal_date,
            total_sales=Decimal(str(total_sales)),
            status=status,
        )

    return _make


@pytest.fixture
def may_sales(branch, make_target, make_journal):
    """Olaya: target 10,000 and 12,000 achieved over May 2025 (120%)."""
    make_target(branch, "2025-05", "10000.00")
    make_journal(branch, date(2025, 5, 3), "5000.00")
    make_journal(branch, date(2025, 5, 31), "7000.00", status=CashierSalesJournal.Status.SUBMITTED)
    return branch


@pytest.fixture
def project(branch):
    return ConstructionProject.objects.create(
        branch=branch,
        title="Olaya kitchen extension",
        status=ConstructionProject.Status.IN_PROGRESS,
        budget=Decimal("150000.00"),
    )


@pytest.fixture
def electrical(db):
    return ConstructionCategory.objects.create(name="Electrical", slug="electrical")


@pytest.fixture
def finishing(db):
    return ConstructionCategory.objects.create(name="Finishing", slug="finishing")
