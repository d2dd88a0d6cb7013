"""Custom DRF permissions for the bakery operations API."""
from rest_framework.permissions import SAFE_METHODS, BasePermission


def _has_role(user, roles) -> bool:
    if not (user and user.is_authenticated):
        return False
    if getattr(user, "is_superuser", False):
        return True
    return getattr(user, "role", None) in roles


class IsManagerOrAdmin(BasePermission):
    """Allow access to users with the ADMIN or MANAGER role."""

    def has_permission(self, request, view):
        return _has_role(request.user, ("ADMIN", "MANAGER"))


class CanConfigureIncentiveTiers(BasePermission):
    """Everyone authenticated reads tiers; only administrators change them."""

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return bool(request.user and request.user.is_authenticated)
        return _has_role(request.user, ("ADMIN",))


class CanPayIncentives(BasePermission):
    """Payment is recorded by administrators or accountants."""

    def has_permission(self, request, view):
        return _has_role(request.user, ("ADMIN", "ACCOUNTANT"))


class CanManageBudgets(BasePermission):
    def has_permission(self, request, view):
        return _has_role(request.user, ("ADMIN", "MANAGER", "ACCOUNTANT"))
