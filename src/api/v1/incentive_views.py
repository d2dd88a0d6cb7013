"""ViewSets and endpoints for the incentives module."""
from __future__ import annotations

import logging

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.v1.incentive_serializers import (
    AwardAdjustSerializer,
    AwardCancelSerializer,
    CalculateIncentivesSerializer,
    CommitAwardsSerializer,
    IncentiveAwardSerializer,
    IncentiveTierSerializer,
)
from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import CanConfigureIncentiveTiers, CanPayIncentives, IsManagerOrAdmin
from branches.services import create_audit_log
from incentives.engine import find_tier_coverage_issues, load_candidate_tiers
from incentives.exceptions import DuplicateAwardPeriod, InvalidStateTransition
from incentives.models import IncentiveAward, IncentiveTier
from incentives.services import (
    adjust_award_reward,
    approve_award,
    calculate_incentives,
    cancel_award,
    commit_awards,
    pay_award,
)

logger = logging.getLogger("bakery")


def _conflict(exc, code: str) -> Response:
    return Response({"detail": str(exc), "code": code}, status=status.HTTP_409_CONFLICT)


def _tier_snapshot(tier: IncentiveTier) -> dict:
    return {
        "name": tier.name,
        "min_achievement_percent": str(tier.min_achievement_percent),
        "max_achievement_percent": (
            str(tier.max_achievement_percent) if tier.max_achievement_percent is not None else None
        ),
        "reward_type": tier.reward_type,
        "is_active": tier.is_active,
    }


class IncentiveTierViewSet(viewsets.ModelViewSet):
    """CRUD for reward tiers."""

    serializer_class = IncentiveTierSerializer
    queryset = IncentiveTier.objects.select_related("created_by")
    filterset_fields = ["is_active", "reward_type", "applicable_to"]
    search_fields = ["name", "description"]
    ordering_fields = ["sort_order", "min_achievement_percent", "created_at"]
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsAuthenticated, CanConfigureIncentiveTiers]

    def perform_create(self, serializer):
        tier = serializer.save(created_by=self.request.user)
        create_audit_log(
            actor=self.request.user,
            branch=None,
            action="INCENTIVE_TIER_CREATE",
            entity_type="IncentiveTier",
            entity_id=str(tier.id),
            after=_tier_snapshot(tier),
        )

    def perform_update(self, serializer):
        before = _tier_snapshot(serializer.instance)
        tier = serializer.save()
        create_audit_log(
            actor=self.request.user,
            branch=None,
            action="INCENTIVE_TIER_UPDATE",
            entity_type="IncentiveTier",
            entity_id=str(tier.id),
            before=before,
            after=_tier_snapshot(tier),
        )

    def perform_destroy(self, instance):
        create_audit_log(
            actor=self.request.user,
            branch=None,
            action="INCENTIVE_TIER_DELETE",
            entity_type="IncentiveTier",
            entity_id=str(instance.id),
            before=_tier_snapshot(instance),
        )
        super().perform_destroy(instance)

    @action(detail=False, methods=["get"])
    def coverage(self, request):
        """Gaps and overlaps among the active tiers for a scope."""
        scope = request.query_params.get("scope") or IncentiveTier.ApplicableTo.BRANCH
        tiers = load_candidate_tiers(scope)
        issues = find_tier_coverage_issues(tiers)
        return Response(
            {
                "scope": scope,
                "tier_count": len(tiers),
                "is_contiguous": not issues or all(
                    issue["kind"] == "gap" and issue["to_percent"] is None for issue in issues
                ),
                "issues": issues,
            }
        )


class IncentiveAwardViewSet(viewsets.ReadOnlyModelViewSet):
    """Committed awards plus the calculate/commit/approve/pay workflow."""

    serializer_class = IncentiveAwardSerializer
    queryset = IncentiveAward.objects.select_related("branch", "tier")
    filterset_fields = ["status", "branch", "award_type", "period_start", "period_end"]
    search_fields = ["branch__name", "tier_name"]
    ordering_fields = ["period_start", "final_reward", "achievement_percent", "created_at"]
    pagination_class = StandardResultsSetPagination

    def get_permissions(self):
        if self.action == "pay":
            return [IsAuthenticated(), CanPayIncentives()]
        if self.action in ("list", "retrieve"):
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsManagerOrAdmin()]

    @action(detail=False, methods=["post"])
    def calculate(self, request):
        serializer = CalculateIncentivesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        proposals = calculate_incentives(serializer.validated_data["year_month"])
        return Response([proposal.as_dict() for proposal in proposals])

    @action(detail=False, methods=["post"])
    def commit(self, request):
        serializer = CommitAwardsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            awards = commit_awards(
                data["awards"],
                period_start=data["period_start"],
                period_end=data["period_end"],
                actor=request.user,
            )
        except DuplicateAwardPeriod as exc:
            return _conflict(exc, "duplicate_award_period")
        except ValueError as exc:
            raise ValidationError({"detail": str(exc)})
        return Response(self.get_serializer(awards, many=True).data, status=status.HTTP_201_CREATED)

    def _run_transition(self, func, **kwargs):
        award = self.get_object()
        try:
            award = func(award, actor=self.request.user, **kwargs)
        except InvalidStateTransition as exc:
            return _conflict(exc, "invalid_state_transition")
        except ValueError as exc:
            raise ValidationError({"detail": str(exc)})
        return Response(self.get_serializer(award).data)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        return self._run_transition(approve_award)

    @action(detail=True, methods=["post"])
    def pay(self, request, pk=None):
        return self._run_transition(pay_award)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        serializer = AwardCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run_transition(cancel_award, reason=serializer.validated_data["reason"])

    @action(detail=True, methods=["post"])
    def adjust(self, request, pk=None):
        serializer = AwardAdjustSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run_transition(
            adjust_award_reward,
            amount=serializer.validated_data["amount"],
            notes=serializer.validated_data.get("notes"),
        )
