"""
Module: portal_kernel.models.audit_log
Responsibility: ORM persistence for the append-only audit trail.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Audit rows are append-only; no UPDATE or DELETE (ORM listeners).

Audit relevance:
    AuditLog IS the audit trail.  Every successful create, update, submit,
    delete/cancel, decision and execution status change produces one row.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import Base, UUIDString
from portal_kernel.db.types import IpAddress, UserAgent

if TYPE_CHECKING:
    from portal_kernel.domain.dtos import AuditEntry


class AuditAction(str, Enum):
    """Verbs recorded in the audit trail."""

    CREATE = "create"
    UPDATE = "update"
    SUBMIT = "submit"
    DELETE = "delete"
    CANCEL = "cancel"
    APPROVE = "approve"
    REJECT = "reject"
    STATUS_CHANGE = "status_change"


class AuditResource(str, Enum):
    REQUEST = "request"
    APPROVAL = "approval"


class AuditLog(Base):
    """Append-only audit record."""

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id", "created_at"),
        Index("ix_audit_logs_user", "user_id"),
    )

    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    old_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    new_values: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[IpAddress] = mapped_column(nullable=False, default="")
    user_agent: Mapped[UserAgent] = mapped_column(nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.resource_type}/{self.resource_id}>"

    def to_dto(self) -> AuditEntry:
        from portal_kernel.domain.dtos import AuditEntry

        return AuditEntry(
            id=self.id,
            user_id=self.user_id,
            action=self.action,
            resource_type=self.resource_type,
            resource_id=self.resource_id,
            old_values=self.old_values,
            new_values=self.new_values,
            ip_address=self.ip_address or "",
            user_agent=self.user_agent or "",
            created_at=self.created_at,
        )
