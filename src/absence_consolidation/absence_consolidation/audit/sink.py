from __future__ import annotations

import logging
from typing import Protocol

from .model import AuditEvent

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None:
        raise NotImplementedError


def emit(sink: AuditSink | None, event: AuditEvent) -> None:
    """Fire-and-forget: an audit failure never undoes or fails the operation it describes."""
    if sink is None:
        return
    try:
        sink.record(event)
    except Exception:
        logger.exception("Audit sink failed for %s %s#%s", event.action.value, event.entity, event.entity_id)
