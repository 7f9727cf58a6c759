from __future__ import annotations

from typing import Any, Optional

from users.context import CallerContext

from ..models import OpsAuditLog


ASSIGNMENT_CREATED = "ops.asignacion.created"
ASSIGNMENT_CLOSED = "ops.asignacion.closed"
SERIES_PAINTED = "ops.pauta.serie_painted"
ROTATING_SERIES_PAINTED = "ops.pauta.serie_rotativa_painted"
GRID_GENERATED = "ops.pauta.generated"
CELL_UPSERTED = "ops.pauta.upsert"


def record_audit(
    caller: CallerContext,
    *,
    action: str,
    entity: str,
    entity_id: Any = "",
    details: Optional[dict[str, Any]] = None,
    using: Optional[str] = None,
) -> OpsAuditLog:
    """Persist an audit entry; callers run it inside their own transaction."""

    entry = OpsAuditLog(
        tenant_id=caller.tenant_id,
        actor_id=caller.actor_id,
        action=action,
        entity=entity,
        entity_id="" if entity_id is None else str(entity_id),
        details=details or {},
    )
    entry.save(using=using)
    return entry
