"""Incentive tiers and the awards computed from them."""
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

from core.models import TimeStampedModel

MONEY = {"max_digits": 14, "decimal_places": 2}
PERCENT = {"max_digits": 9, "decimal_places": 2}


class IncentiveTier(TimeStampedModel):
    """Achievement band [min, max) that grants a reward."""

    class RewardType(models.TextChoices):
        FIXED = "fixed", "Fixed amount"
        PERCENTAGE = "percentage", "Percentage of excess sales"
        BOTH = "both", "Fixed + percentage"

    class ApplicableTo(models.TextChoices):
        ALL = "all", "All"
        BRANCH = "branch", "Branch"
        CASHIER = "cashier", "Cashier"

    name = models.CharField(max_length=120)
    description = models.TextField(blank=True, default="")
    min_achievement_percent = models.DecimalField(
        **PERCENT,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    max_achievement_percent = models.DecimalField(
        **PERCENT,
        null=True,
        blank=True,
        help_text="Exclusive upper bound. Leave empty for an open-ended top tier.",
    )
    reward_type = models.CharField(max_length=12, choices=RewardType.choices, default=RewardType.FIXED)
    fixed_amount = models.DecimalField(
        **MONEY,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    percentage_rate = models.DecimalField(
        max_digits=7,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Percent applied to sales above target.",
    )
    applicable_to = models.CharField(max_length=20, choices=ApplicableTo.choices, default=ApplicableTo.ALL)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="incentive_tiers_created",
    )

    class Meta:
        ordering = ["sort_order", "min_achievement_percent"]
        indexes = [
            models.Index(fields=["is_active", "applicable_to"], name="tier_active_scope_idx"),
        ]

    def __str__(self):
        upper = f"{self.max_achievement_percent}%" if self.max_achievement_percent is not None else "+"
        return f"{self.name} ({self.min_achievement_percent}% - {upper})"

    def clean(self):
        errors = {}
        if (
            self.max_achievement_percent is not None
            and self.min_achievement_percent is not None
            and self.max_achievement_percent <= self.min_achievement_percent
        ):
            errors["max_achievement_percent"] = "Upper bound must be greater than the lower bound."
        if self.reward_type in (self.RewardType.FIXED, self.RewardType.BOTH) and self.fixed_amount is None:
            errors["fixed_amount"] = "A fixed amount is required for this reward type."
        if self.reward_type in (self.RewardType.PERCENTAGE, self.RewardType.BOTH) and self.percentage_rate is None:
            errors["percentage_rate"] = "A percentage rate is required for this reward type."
        if errors:
            raise ValidationError(errors)


class IncentiveAward(TimeStampedModel):
    """Reward granted to a branch for one period.

    Status only moves forward: pending -> approved -> paid, with cancellation
    possible before payment. A cancelled award releases its period so the
    branch can be recalculated.
    """

    class AwardType(models.TextChoices):
        MONTHLY = "monthly", "Monthly"
        DAILY = "daily", "Daily"
        SPECIAL = "special", "Special"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        PAID = "paid", "Paid"
        CANCELLED = "cancelled", "Cancelled"

    award_type = models.CharField(max_length=10, choices=AwardType.choices, default=AwardType.MONTHLY)
    branch = models.ForeignKey(
        "branches.Branch",
        on_delete=models.PROTECT,
        related_name="incentive_awards",
    )
    period_start = models.DateField()
    period_end = models.DateField()
    target_amount = models.DecimalField(**MONEY, default=Decimal("0.00"))
    achieved_amount = models.DecimalField(**MONEY, default=Decimal("0.00"))
    achievement_percent = models.DecimalField(**PERCENT, default=Decimal("0.00"))
    tier = models.ForeignKey(
        IncentiveTier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="awards",
    )
    tier_name = models.CharField(max_length=120, blank=True, default="")
    calculated_reward = models.DecimalField(**MONEY, default=Decimal("0.00"))
    adjusted_reward = models.DecimalField(**MONEY, null=True, blank=True)
    final_reward = models.DecimalField(**MONEY, default=Decimal("0.00"))
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING, db_index=True)
    notes = models.TextField(blank=True, default="")
    journal_ids = models.JSONField(default=list, blank=True)
    version = models.PositiveIntegerField(default=1)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="incentive_awards_created",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="incentive_awards_approved",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="incentive_awards_paid",
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="incentive_awards_cancelled",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-period_start", "branch__name"]
        constraints = [
            models.UniqueConstraint(
                fields=["branch", "period_start", "period_end"],
                condition=~Q(status="cancelled"),
                name="uniq_active_incentive_award_period",
            ),
        ]
        indexes = [
            models.Index(fields=["period_start", "status"], name="award_period_status_idx"),
        ]

    def __str__(self):
        return f"{self.branch} {self.period_start}..{self.period_end} ({self.get_status_display()})"
