"""
Module: portal_kernel.selectors.approval_selector
Responsibility: Read-only queries over approvals.
Architecture position: Kernel > Selectors.

Approvals are visible to every reviewer regardless of who raised the
underlying request; role gating happens in the approval service.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from portal_kernel.domain.approval import ApprovalStatus
from portal_kernel.domain.dtos import ApprovalFilter, ApprovalRecord
from portal_kernel.models.approval import Approval
from portal_kernel.selectors.base import BaseSelector


class ApprovalSelector(BaseSelector[Approval]):
    """Read-only access to approvals."""

    def get(self, approval_id: UUID) -> ApprovalRecord | None:
        model = self.session.get(Approval, approval_id)
        return model.to_dto() if model is not None else None

    def pending_for_request(self, request_id: UUID) -> ApprovalRecord | None:
        """The single pending approval for a request, if any."""
        model = self.session.execute(
            select(Approval).where(
                Approval.request_id == request_id,
                Approval.status == ApprovalStatus.PENDING.value,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_approvals(self, approval_filter: ApprovalFilter | None = None) -> list[ApprovalRecord]:
        """Approvals matching the filter, newest first."""
        f = approval_filter or ApprovalFilter()
        stmt = select(Approval)
        if f.status is not None:
            stmt = stmt.where(Approval.status == ApprovalStatus(f.status).value)
        if f.request_id is not None:
            stmt = stmt.where(Approval.request_id == f.request_id)
        stmt = stmt.order_by(Approval.created_at.desc(), Approval.id.desc())
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
