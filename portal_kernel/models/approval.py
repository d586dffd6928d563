"""
Module: portal_kernel.models.approval
Responsibility: ORM persistence for approvals on provisioning requests.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - DB check constraint limits status values.
    - Partial unique index: at most one pending approval per request.
    - Decided approvals cannot be updated; approvals are never deleted
      (ORM listeners, db/immutability.py).

Failure modes:
    - IntegrityError on a second pending approval for the same request.
    - ImmutabilityViolationError on decided-approval UPDATE or any DELETE.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import Base, UUIDString
from portal_kernel.db.types import StatusCode

if TYPE_CHECKING:
    from portal_kernel.domain.dtos import ApprovalRecord


class Approval(Base):
    """Persistent approval.

    Contract:
        Created pending by ApprovalService.create_pending; decided exactly
        once through a conditional UPDATE keyed on status='pending'.
    """

    __tablename__ = "approvals"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_approvals_valid_status",
        ),
        Index(
            "uq_approvals_one_pending_per_request",
            "request_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_approvals_status_created", "status", "created_at"),
        Index("ix_approvals_request", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("provisioning_requests.id"), nullable=False,
    )
    approver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[StatusCode] = mapped_column(nullable=False, default="pending")
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Approval {self.id} request={self.request_id} status={self.status}>"

    def to_dto(self) -> ApprovalRecord:
        """Convert ORM model to frozen domain DTO."""
        from portal_kernel.domain.approval import ApprovalStatus
        from portal_kernel.domain.dtos import ApprovalRecord

        return ApprovalRecord(
            id=self.id,
            request_id=self.request_id,
            approver_id=self.approver_id,
            status=ApprovalStatus(self.status),
            comment=self.comment,
            approved_at=self.approved_at,
            created_at=self.created_at,
        )
