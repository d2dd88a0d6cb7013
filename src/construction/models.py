"""Construction projects, their cost sources and planned budget allocations."""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class ConstructionCategory(TimeStampedModel):
    """Cost category (civil works, electrical, finishing...)."""

    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=120, unique=True)
    icon = models.CharField(max_length=60, blank=True, default="")

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Construction categories"

    def __str__(self):
        return self.name


class ConstructionProject(TimeStampedModel):
    """Fit-out or renovation project attached to a branch."""

    class Status(models.TextChoices):
        PLANNED = "planned", "Planned"
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"
        ON_HOLD = "on_hold", "On hold"

    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.CASCADE,
        related_name="construction_projects",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.PLANNED)
    budget = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    actual_cost = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Manually recorded cost snapshot; reconciled against work items and payments.",
    )
    start_date = models.DateField(null=True, blank=True)
    target_completion_date = models.DateField(null=True, blank=True)
    actual_completion_date = models.DateField(null=True, blank=True)
    progress_percent = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)],
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.title


class ProjectWorkItem(TimeStampedModel):
    """Unit of work whose logged cost is one source of project actual cost."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        IN_PROGRESS = "in_progress", "In progress"
        COMPLETED = "completed", "Completed"

    project = models.ForeignKey(
        ConstructionProject,
        on_delete=models.CASCADE,
        related_name="work_items",
    )
    category = models.ForeignKey(
        ConstructionCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="work_items",
    )
    name = models.CharField(max_length=255)
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING)
    cost_estimate = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    actual_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    scheduled_start = models.DateField(null=True, blank=True)
    scheduled_end = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["project", "scheduled_start", "name"]

    def __str__(self):
        return self.name


class PaymentRequest(TimeStampedModel):
    """Request to pay a contractor or expense; only paid requests count as cost."""

    class RequestType(models.TextChoices):
        TRANSFER = "transfer", "Transfer"
        EXPENSE = "expense", "Expense"
        ADVANCE = "advance", "Advance"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"
        PAID = "paid", "Paid"

    project = models.ForeignKey(
        ConstructionProject,
        on_delete=models.CASCADE,
        related_name="payment_requests",
    )
    category = models.ForeignKey(
        ConstructionCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_requests",
    )
    request_number = models.CharField(max_length=50, blank=True, default="")
    request_type = models.CharField(max_length=10, choices=RequestType.choices)
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    description = models.TextField()
    beneficiary_name = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_requests",
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.request_number or self.pk} {self.amount} ({self.get_status_display()})"


class BudgetAllocation(TimeStampedModel):
    """Planned budget for one category within a project."""

    project = models.ForeignKey(
        ConstructionProject,
        on_delete=models.CASCADE,
        related_name="budget_allocations",
    )
    category = models.ForeignKey(
        ConstructionCategory,
        on_delete=models.CASCADE,
        related_name="budget_allocations",
    )
    planned_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    notes = models.TextField(blank=True, default="")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="budget_allocations_updated",
    )

    class Meta:
        ordering = ["category__name"]
        constraints = [
            models.UniqueConstraint(fields=["project", "category"], name="uniq_budget_allocation_category"),
        ]

    def __str__(self):
        return f"{self.project} / {self.category}: {self.planned_amount}"
