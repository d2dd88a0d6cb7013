"""Branch-level helpers shared by the incentive and budget services."""
from __future__ import annotations

from typing import Any

from branches.models import AuditLog, Branch


def create_audit_log(
    actor,
    branch: Branch | None,
    action: str,
    entity_type: str,
    entity_id: str,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
) -> AuditLog:
    """Create and return a new :class:`~branches.models.AuditLog` entry."""
    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None
    return AuditLog.objects.create(
        actor=actor,
        branch=branch,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=before,
        after_json=after,
    )
