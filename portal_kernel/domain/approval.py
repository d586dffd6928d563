"""
Approval domain types (``portal_kernel.domain.approval``).

Responsibility
--------------
Approval status lifecycle and the mapping from an approver's outcome onto
the parent request status.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` defines the only valid status transitions.
  Decided statuses have no outgoing edges, so a decided approval is
  immutable.
"""

from __future__ import annotations

from enum import Enum

from portal_kernel.domain.lifecycle import RequestStatus


class ApprovalStatus(str, Enum):
    """Approval lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
})


class ApprovalOutcome(str, Enum):
    """Verdicts an approver can record."""

    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def approval_status(self) -> ApprovalStatus:
        return ApprovalStatus(self.value)

    @property
    def request_status(self) -> RequestStatus:
        """Request status that mirrors this verdict."""
        return RequestStatus(self.value)


# Comment recorded when cancelling a request closes its pending approval.
CANCELLATION_COMMENT = "Request cancelled"
