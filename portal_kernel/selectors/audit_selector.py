"""
Module: portal_kernel.selectors.audit_selector
Responsibility: Read-only access to the audit trail.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from portal_kernel.domain.dtos import AuditEntry
from portal_kernel.models.audit_log import AuditLog
from portal_kernel.selectors.base import BaseSelector


class AuditSelector(BaseSelector[AuditLog]):
    """Audit trail queries, oldest entry first."""

    def list_for_resource(self, resource_type: str, resource_id: UUID) -> list[AuditEntry]:
        stmt = (
            select(AuditLog)
            .where(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == resource_id,
            )
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

