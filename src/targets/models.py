"""Monthly branch targets and the cashier journals that measure them."""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models

from core.models import TimeStampedModel

year_month_validator = RegexValidator(
    regex=r"^\d{4}-(0[1-9]|1[0-2])$",
    message="Month must use the YYYY-MM format.",
)


class BranchMonthlyTarget(TimeStampedModel):
    """Sales target for one branch and one calendar month."""

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        ACTIVE = "active", "Active"
        LOCKED = "locked", "Locked"
        ARCHIVED = "archived", "Archived"

    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.CASCADE,
        related_name="monthly_targets",
    )
    year_month = models.CharField(max_length=7, validators=[year_month_validator])
    target_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="branch_targets_created",
    )

    class Meta:
        ordering = ["-year_month", "branch__name"]
        constraints = [
            models.UniqueConstraint(fields=["branch", "year_month"], name="uniq_branch_monthly_target"),
        ]

    def __str__(self):
        return f"{self.branch} {self.year_month}: {self.target_amount}"


class CashierSalesJournal(TimeStampedModel):
    """Daily closing journal submitted by a cashier."""

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SUBMITTED = "submitted", "Submitted"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    COUNTED_STATUSES = (Status.SUBMITTED, Status.APPROVED)

    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.CASCADE,
        related_name="sales_journals",
    )
    cashier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales_journals",
    )
    cashier_name = models.CharField(max_length=150, blank=True, default="")
    journal_date = models.DateField(db_index=True)
    total_sales = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    cash_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    network_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    delivery_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT)

    class Meta:
        ordering = ["-journal_date"]
        indexes = [
            models.Index(fields=["branch", "journal_date", "status"], name="journal_branch_date_idx"),
        ]

    def __str__(self):
        return f"{self.branch} {self.journal_date} ({self.get_status_display()})"
