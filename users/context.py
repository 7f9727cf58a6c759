from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class CallerContext:
    """Tenant and actor on whose behalf an operation runs."""

    tenant_id: int
    actor_id: Optional[int] = None

    @classmethod
    def from_user(cls, user: Any) -> "CallerContext":
        tenant_id = getattr(user, "tenant_id", None)
        if not tenant_id:
            raise ValueError("El usuario no pertenece a ninguna empresa.")
        return cls(tenant_id=tenant_id, actor_id=getattr(user, "pk", None))
