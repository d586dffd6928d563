"""
portal_kernel.services.audit_recorder -- best-effort audit trail writer.

Responsibility:
    Appends one AuditLog row per successful mutating operation.

Architecture position:
    Kernel > Services.  Unlike the other services it owns its own short
    transaction (via a session factory), because audit is not
    transactional with business state.

Invariants enforced:
    - Audit rows are append-only (see db/immutability.py).
    - A failed audit write is logged at ERROR and suppressed; it never
      reverses or fails the primary operation.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from portal_kernel.db.engine import session_scope
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.dtos import AuditEntry
from portal_kernel.domain.identity import IdentityContext
from portal_kernel.logging_config import get_logger
from portal_kernel.models.audit_log import AuditAction, AuditLog, AuditResource
from portal_kernel.utils.serialization import to_jsonable

logger = get_logger("services.audit_recorder")


class AuditRecorder:
    """Writes audit entries in a separate transaction."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def record(
        self,
        *,
        action: AuditAction | str,
        resource_type: AuditResource | str,
        resource_id: UUID | None = None,
        user_id: UUID | None = None,
        ip_address: str = "",
        user_agent: str = "",
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditEntry | None:
        """Append one audit entry.  Returns None (and logs) if the write failed."""
        action_value = action.value if isinstance(action, AuditAction) else str(action)
        resource_value = (
            resource_type.value if isinstance(resource_type, AuditResource) else str(resource_type)
        )
        try:
            with session_scope(self._session_factory) as session:
                entry = AuditLog(
                    id=uuid4(),
                    user_id=user_id,
                    action=action_value,
                    resource_type=resource_value,
                    resource_id=resource_id,
                    old_values=to_jsonable(old_values),
                    new_values=to_jsonable(new_values),
                    ip_address=ip_address or "",
                    user_agent=(user_agent or "")[:500],
                    created_at=self._clock.now(),
                )
                session.add(entry)
                session.flush()
                dto = entry.to_dto()
        except Exception:
            # Audit is a side channel: report, never propagate.
            logger.error(
                "audit_record_failed",
                extra={
                    "action": action_value,
                    "resource_type": resource_value,
                    "resource_id": str(resource_id) if resource_id else None,
                },
                exc_info=True,
            )
            return None

        logger.debug(
            "audit_recorded",
            extra={
                "audit_id": str(dto.id),
                "action": action_value,
                "resource_type": resource_value,
            },
        )
        return dto

    def record_for(
        self,
        caller: IdentityContext,
        action: AuditAction | str,
        resource_type: AuditResource | str,
        resource_id: UUID | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditEntry | None:
        """Record with actor and client metadata taken from the identity context."""
        return self.record(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            user_id=caller.user_id,
            ip_address=caller.ip_address,
            user_agent=caller.user_agent,
            old_values=old_values,
            new_values=new_values,
        )
