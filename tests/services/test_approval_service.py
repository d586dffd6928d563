"""
Tests for ApprovalService -- approval decisions mirrored onto requests.

Covers:
- create_pending(): duplicate pending approvals are an internal error
- decide(): approve/reject, role gate, already-processed guard, mirror
  failure rolls back the approval write
- get() / list_approvals(): role gate, default pending filter, "all"
"""

from uuid import uuid4

import pytest
from sqlalchemy import update

from portal_kernel.domain.approval import ApprovalOutcome, ApprovalStatus
from portal_kernel.domain.dtos import ApprovalFilter
from portal_kernel.domain.lifecycle import RequestStatus
from portal_kernel.exceptions import (
    ApprovalAlreadyProcessedError,
    ApprovalNotFoundError,
    DuplicatePendingApprovalError,
    InternalError,
    InvalidFieldError,
    InvalidRequestTransitionError,
    InvalidStateError,
    RoleRequiredError,
)
from portal_kernel.models.approval import Approval
from portal_kernel.models.request import ProvisioningRequest
from portal_kernel.selectors.approval_selector import ApprovalSelector
from portal_kernel.services.approval_service import ApprovalService


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def approvals(lifecycle):
    """The ApprovalService wired to the lifecycle service as decision sink."""
    return lifecycle.approvals


@pytest.fixture
def pending_request(session, lifecycle, requester, make_draft):
    """A prod request submitted for approval.  Returns (request, approval)."""
    record = lifecycle.create_request(requester, make_draft(environment="prod"))
    submitted = lifecycle.submit_request(requester, record.id)
    approval = ApprovalSelector(session).pending_for_request(record.id)
    return submitted, approval


# ---------------------------------------------------------------------------
# create_pending
# ---------------------------------------------------------------------------


class TestCreatePending:
    """create_pending()"""

    def test_second_pending_approval_is_internal_error(self, approvals, pending_request):
        request, existing = pending_request
        with pytest.raises(DuplicatePendingApprovalError) as exc_info:
            approvals.create_pending(request.id)
        assert isinstance(exc_info.value, InternalError)
        assert exc_info.value.existing_approval_id == str(existing.id)


# ---------------------------------------------------------------------------
# decide
# ---------------------------------------------------------------------------


class TestDecide:
    """decide()"""

    def test_approve_mirrors_onto_request(
        self, session, approvals, approver, pending_request, deterministic_clock,
    ):
        request, approval = pending_request
        decided = approvals.decide(approver, approval.id, ApprovalOutcome.APPROVED, "LGTM")

        assert decided.status is ApprovalStatus.APPROVED
        assert decided.approver_id == approver.user_id
        assert decided.comment == "LGTM"
        assert decided.approved_at == deterministic_clock.now()
        assert session.get(ProvisioningRequest, request.id).status == RequestStatus.APPROVED.value

    def test_reject_mirrors_onto_request(self, session, approvals, admin, pending_request):
        request, approval = pending_request
        decided = approvals.decide(admin, approval.id, "REJECTED")

        assert decided.status is ApprovalStatus.REJECTED
        assert decided.comment is None
        assert session.get(ProvisioningRequest, request.id).status == RequestStatus.REJECTED.value

    def test_user_cannot_decide(self, approvals, requester, pending_request):
        _, approval = pending_request
        with pytest.raises(RoleRequiredError):
            approvals.decide(requester, approval.id, "approved")

    def test_second_decision_is_invalid_state_and_changes_nothing(
        self, session, approvals, approver, admin, pending_request,
    ):
        request, approval = pending_request
        approvals.decide(approver, approval.id, "approved", "first")

        with pytest.raises(ApprovalAlreadyProcessedError) as exc_info:
            approvals.decide(admin, approval.id, "rejected", "second")
        assert isinstance(exc_info.value, InvalidStateError)
        assert exc_info.value.current_status == "approved"

        model = session.get(Approval, approval.id)
        assert model.status == "approved"
        assert model.comment == "first"
        assert model.approver_id == approver.user_id
        assert session.get(ProvisioningRequest, request.id).status == "approved"

    def test_unknown_approval(self, approvals, approver):
        with pytest.raises(ApprovalNotFoundError):
            approvals.decide(approver, uuid4(), "approved")

    def test_unknown_outcome(self, approvals, approver, pending_request):
        _, approval = pending_request
        with pytest.raises(InvalidFieldError) as exc_info:
            approvals.decide(approver, approval.id, "maybe")
        assert exc_info.value.field == "outcome"

    def test_decision_on_request_no_longer_pending_fails(
        self, session, approvals, approver, pending_request,
    ):
        """The mirror write refuses, so the caller's transaction must roll back."""
        request, approval = pending_request
        session.execute(
            update(ProvisioningRequest)
            .where(ProvisioningRequest.id == request.id)
            .values(status=RequestStatus.CANCELLED.value)
        )

        with pytest.raises(InvalidRequestTransitionError):
            approvals.decide(approver, approval.id, "approved")

    def test_standalone_service_always_mirrors(
        self, session, approver, pending_request, deterministic_clock,
    ):
        request, approval = pending_request
        mirrored = []

        class RecordingSink:
            def apply_approval_decision(self, request_id, outcome):
                mirrored.append((request_id, outcome))

        service = ApprovalService(session, RecordingSink(), clock=deterministic_clock)
        service.decide(approver, approval.id, "rejected")

        assert mirrored == [(request.id, ApprovalOutcome.REJECTED)]

    def test_decision_sink_is_required(self, session):
        with pytest.raises(TypeError):
            ApprovalService(session)

    def test_decision_is_logged(self, approvals, approver, pending_request, captured_logs):
        _, approval = pending_request
        approvals.decide(approver, approval.id, "approved")

        record = next(
            r for r in captured_logs() if r["message"] == "approval_decision_recorded"
        )
        assert record["approval_id"] == str(approval.id)
        assert record["decision"] == "approved"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    """get() / list_approvals()"""

    def test_get_requires_reviewer(self, approvals, requester, approver, pending_request):
        _, approval = pending_request
        assert approvals.get(approver, approval.id).id == approval.id
        with pytest.raises(RoleRequiredError):
            approvals.get(requester, approval.id)

    def test_get_unknown(self, approvals, approver):
        with pytest.raises(ApprovalNotFoundError):
            approvals.get(approver, uuid4())

    def test_list_defaults_to_pending(
        self, lifecycle, approvals, requester, approver, make_draft, deterministic_clock,
    ):
        first = lifecycle.create_request(requester, make_draft(environment="prod"))
        lifecycle.submit_request(requester, first.id)
        deterministic_clock.advance(10)
        second = lifecycle.create_request(requester, make_draft(environment="staging"))
        lifecycle.submit_request(requester, second.id)

        pending = approvals.list_approvals(approver)
        assert [a.request_id for a in pending] == [second.id, first.id]

        approvals.decide(approver, pending[0].id, "approved")
        assert [a.request_id for a in approvals.list_approvals(approver)] == [first.id]
        assert len(approvals.list_approvals(approver, ApprovalFilter.any_status())) == 2
        assert len(approvals.list_approvals(approver, ApprovalFilter.from_status("all"))) == 2
        approved = approvals.list_approvals(
            approver, ApprovalFilter(status=ApprovalStatus.APPROVED),
        )
        assert [a.request_id for a in approved] == [second.id]

    def test_list_by_request(self, approvals, approver, pending_request):
        request, approval = pending_request
        found = approvals.list_approvals(approver, ApprovalFilter(request_id=request.id))
        assert [a.id for a in found] == [approval.id]
        assert approvals.list_approvals(approver, ApprovalFilter(request_id=uuid4())) == []

    def test_list_requires_reviewer(self, approvals, requester):
        with pytest.raises(RoleRequiredError):
            approvals.list_approvals(requester)
