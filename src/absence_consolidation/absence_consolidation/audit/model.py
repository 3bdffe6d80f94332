from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.enums import AuditAction


@dataclass(frozen=True)
class AuditEvent:
    action: AuditAction
    entity: str
    entity_id: str
    actor_id: Optional[int]
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)
