"""
portal_kernel.services.approval_service -- Approval Engine.

Responsibility:
    Creates the pending approval for a submitted request, records approver
    decisions, and feeds each decision back into the request lifecycle.

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.
    The lifecycle service owns an instance of this service and passes
    itself as the decision sink.

Invariants enforced:
    - At most one pending approval per request (service check + partial
      unique index).
    - A decided approval is never decided again: the decision is a
      conditional UPDATE keyed on status='pending', so under concurrent
      calls exactly one writer matches the row.
    - Approval decision and request status change happen in the caller's
      transaction; any failure rolls both back.

Failure modes:
    - RoleRequiredError if the caller is not an approver or admin.
    - ApprovalNotFoundError if approval_id is unknown.
    - ApprovalAlreadyProcessedError if the approval is no longer pending.
    - DuplicatePendingApprovalError on a second pending approval (defect).
    - InvalidRequestTransitionError (from the sink) if the request is no
      longer pending.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    CANCELLATION_COMMENT,
    ApprovalOutcome,
    ApprovalStatus,
)
from portal_kernel.domain.clock import Clock
from portal_kernel.domain.dtos import ApprovalFilter, ApprovalRecord, RequestRecord
from portal_kernel.domain.identity import REVIEWER_ROLES, IdentityContext, require_role
from portal_kernel.exceptions import (
    ApprovalAlreadyProcessedError,
    ApprovalNotFoundError,
    DuplicatePendingApprovalError,
    InvalidFieldError,
)
from portal_kernel.logging_config import get_logger
from portal_kernel.models.approval import Approval
from portal_kernel.selectors.approval_selector import ApprovalSelector
from portal_kernel.services.base import BaseService

logger = get_logger("services.approval")


class ApprovalDecisionSink(Protocol):
    """Receives a decided outcome and mirrors it onto the parent request."""

    def apply_approval_decision(
        self, request_id: UUID, outcome: ApprovalOutcome,
    ) -> RequestRecord:
        ...


def parse_outcome(outcome: ApprovalOutcome | str) -> ApprovalOutcome:
    """Coerce caller input into an ApprovalOutcome or raise InvalidFieldError."""
    if isinstance(outcome, ApprovalOutcome):
        return outcome
    try:
        return ApprovalOutcome(str(outcome).lower())
    except ValueError:
        raise InvalidFieldError(
            "outcome", f"must be one of: {', '.join(o.value for o in ApprovalOutcome)}",
        ) from None


class ApprovalService(BaseService[Approval]):
    """Manages the approval lifecycle for provisioning requests."""

    def __init__(
        self,
        session: Session,
        decision_sink: ApprovalDecisionSink,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session, clock)
        self._sink = decision_sink
        self._selector = ApprovalSelector(session)

    # ------------------------------------------------------------------
    # Lifecycle-facing operations
    # ------------------------------------------------------------------

    def create_pending(self, request_id: UUID) -> ApprovalRecord:
        """Create the single pending approval for a request entering pending."""
        existing = self._selector.pending_for_request(request_id)
        if existing is not None:
            logger.error(
                "duplicate_pending_approval",
                extra={
                    "request_id": str(request_id),
                    "existing_approval_id": str(existing.id),
                },
            )
            raise DuplicatePendingApprovalError(str(request_id), str(existing.id))

        model = Approval(
            id=uuid4(),
            request_id=request_id,
            status=ApprovalStatus.PENDING.value,
            created_at=self._clock.now(),
        )
        self.session.add(model)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise DuplicatePendingApprovalError(str(request_id), "unknown") from exc

        logger.info(
            "approval_created",
            extra={"approval_id": str(model.id), "request_id": str(request_id)},
        )
        return model.to_dto()

    def close_for_cancelled_request(
        self, request_id: UUID, actor_id: UUID,
    ) -> ApprovalRecord | None:
        """Reject the pending approval of a request being cancelled, if any."""
        pending = self._selector.pending_for_request(request_id)
        if pending is None:
            return None

        closed = self._guarded_update(
            update(Approval)
            .where(
                Approval.id == pending.id,
                Approval.status == ApprovalStatus.PENDING.value,
            )
            .values(
                status=ApprovalStatus.REJECTED.value,
                approver_id=actor_id,
                approved_at=self._clock.now(),
                comment=CANCELLATION_COMMENT,
            )
        )
        if not closed:
            # Decided concurrently; the request write that follows will lose too.
            return None
        model = self._load_model(pending.id)
        self.session.refresh(model)

        logger.info(
            "approval_closed_for_cancellation",
            extra={"approval_id": str(model.id), "request_id": str(request_id)},
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    def decide(
        self,
        caller: IdentityContext,
        approval_id: UUID,
        outcome: ApprovalOutcome | str,
        comment: str | None = None,
    ) -> ApprovalRecord:
        """Record an approver's verdict and mirror it onto the parent request.

        The approval write is conditional on status='pending'.  A caller that
        loses a race sees zero rows updated and gets
        ApprovalAlreadyProcessedError, with nothing written.
        """
        require_role(caller, REVIEWER_ROLES, "decide approvals")
        verdict = parse_outcome(outcome)

        model = self._load_model(approval_id)
        current = ApprovalStatus(model.status)
        new_status = verdict.approval_status
        if new_status not in APPROVAL_TRANSITIONS.get(current, frozenset()):
            raise ApprovalAlreadyProcessedError(str(approval_id), current.value)

        now = self._clock.now()
        won = self._guarded_update(
            update(Approval)
            .where(
                Approval.id == approval_id,
                Approval.status == ApprovalStatus.PENDING.value,
            )
            .values(
                status=new_status.value,
                approver_id=caller.user_id,
                approved_at=now,
                comment=comment,
            )
        )
        if not won:
            self.session.refresh(model)
            logger.info(
                "approval_decision_lost_race",
                extra={"approval_id": str(approval_id), "current_status": model.status},
            )
            raise ApprovalAlreadyProcessedError(str(approval_id), model.status)

        self._sink.apply_approval_decision(model.request_id, verdict)

        self.session.refresh(model)

        logger.info(
            "approval_decision_recorded",
            extra={
                "approval_id": str(approval_id),
                "request_id": str(model.request_id),
                "approver_id": str(caller.user_id),
                "decision": verdict.value,
            },
        )
        return model.to_dto()

    def get(self, caller: IdentityContext, approval_id: UUID) -> ApprovalRecord:
        require_role(caller, REVIEWER_ROLES, "view approvals")
        record = self._selector.get(approval_id)
        if record is None:
            raise ApprovalNotFoundError(str(approval_id))
        return record

    def list_approvals(
        self,
        caller: IdentityContext,
        approval_filter: ApprovalFilter | None = None,
    ) -> list[ApprovalRecord]:
        """Approvals for reviewers.  Defaults to pending, newest first."""
        require_role(caller, REVIEWER_ROLES, "list approvals")
        return self._selector.list_approvals(approval_filter)

    def _load_model(self, approval_id: UUID) -> Approval:
        model = self.session.get(Approval, approval_id)
        if model is None:
            raise ApprovalNotFoundError(str(approval_id))
        return model
