import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _user_fk(related_name):
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("branches", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="IncentiveTier",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "min_achievement_percent",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=9,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "max_achievement_percent",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Exclusive upper bound. Leave empty for an open-ended top tier.",
                        max_digits=9,
                        null=True,
                    ),
                ),
                (
                    "reward_type",
                    models.CharField(
                        choices=[
                            ("fixed", "Fixed amount"),
                            ("percentage", "Percentage of excess sales"),
                            ("both", "Fixed + percentage"),
                        ],
                        default="fixed",
                        max_length=12,
                    ),
                ),
                (
                    "fixed_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=14,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "percentage_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Percent applied to sales above target.",
                        max_digits=7,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "applicable_to",
                    models.CharField(
                        choices=[("all", "All"), ("branch", "Branch"), ("cashier", "Cashier")],
                        default="all",
                        max_length=20,
                    ),
                ),
                ("sort_order", models.IntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_by", _user_fk("incentive_tiers_created")),
            ],
            options={
                "ordering": ["sort_order", "min_achievement_percent"],
                "indexes": [
                    models.Index(fields=["is_active", "applicable_to"], name="tier_active_scope_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="IncentiveAward",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "award_type",
                    models.CharField(
                        choices=[("monthly", "Monthly"), ("daily", "Daily"), ("special", "Special")],
                        default="monthly",
                        max_length=10,
                    ),
                ),
                ("period_start", models.DateField()),
                ("period_end", models.DateField()),
                ("target_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("achieved_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("achievement_percent", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=9)),
                ("tier_name", models.CharField(blank=True, default="", max_length=120)),
                ("calculated_reward", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("adjusted_reward", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("final_reward", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("paid", "Paid"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("notes", models.TextField(blank=True, default="")),
                ("journal_ids", models.JSONField(blank=True, default=list)),
                ("version", models.PositiveIntegerField(default=1)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                (
                    "branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="incentive_awards",
                        to="branches.branch",
                    ),
                ),
                (
                    "tier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="awards",
                        to="incentives.incentivetier",
                    ),
                ),
                ("created_by", _user_fk("incentive_awards_created")),
                ("approved_by", _user_fk("incentive_awards_approved")),
                ("paid_by", _user_fk("incentive_awards_paid")),
                ("cancelled_by", _user_fk("incentive_awards_cancelled")),
            ],
            options={
                "ordering": ["-period_start", "branch__name"],
                "indexes": [
                    models.Index(fields=["period_start", "status"], name="award_period_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "cancelled"), _negated=True),
                        fields=("branch", "period_start", "period_end"),
                        name="uniq_active_incentive_award_period",
                    ),
                ],
            },
        ),
    ]
