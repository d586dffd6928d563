"""
Race tests: conflicting transitions from real threads.

Two (or more) threads are released together by a Barrier and call the
portal against the same request or approval.  Each thread uses its own
session from the shared factory, exactly as concurrent callers would.

Invariants tested:
- Concurrent decide on one approval: exactly one winner, and the request
  mirrors the winning outcome.
- Concurrent submit of one request: exactly one winner and exactly one
  pending approval.
- Decide racing cancel: the request and approval end in agreement.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from portal_kernel.domain.approval import ApprovalStatus
from portal_kernel.domain.dtos import ApprovalFilter
from portal_kernel.domain.lifecycle import RequestStatus
from portal_kernel.exceptions import InvalidStateError

pytestmark = pytest.mark.concurrency


def race(*calls):
    """Run each callable in its own thread, released together.

    Returns a list of (result, error) pairs in call order.
    """
    barrier = Barrier(len(calls))

    def run(fn):
        barrier.wait()
        try:
            return fn(), None
        except InvalidStateError as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(run, fn) for fn in calls]
        return [f.result(timeout=60) for f in futures]


class TestConcurrentDecide:
    """Two approvers decide the same approval."""

    @pytest.mark.parametrize("attempt", range(3))
    def test_exactly_one_decision_wins(self, portal, requester, approver, admin, make_draft, attempt):
        record = portal.create_request(requester, make_draft(environment="prod"))
        portal.submit_request(requester, record.id)
        (approval,) = portal.list_approvals(approver)

        outcomes = race(
            lambda: portal.approve(approver, approval.id, "approve"),
            lambda: portal.reject(admin, approval.id, "reject"),
        )

        winners = [result for result, error in outcomes if error is None]
        losers = [error for result, error in outcomes if error is not None]
        assert len(winners) == 1
        assert len(losers) == 1

        winner = winners[0]
        final_approval = portal.get_approval(admin, approval.id)
        final_request = portal.get_request(requester, record.id)
        assert final_approval.status is winner.status
        assert final_request.status.value == winner.status.value
        assert final_approval.comment == winner.comment

        decisions = [
            e for e in portal.audit_trail(admin, "approval", approval.id)
            if e.action in ("approve", "reject")
        ]
        assert len(decisions) == 1


class TestConcurrentSubmit:
    """The owner double-submits from two clients."""

    @pytest.mark.parametrize("attempt", range(3))
    def test_exactly_one_submit_wins(self, portal, requester, approver, make_draft, attempt):
        record = portal.create_request(requester, make_draft(environment="prod"))

        outcomes = race(
            lambda: portal.submit_request(requester, record.id),
            lambda: portal.submit_request(requester, record.id),
        )

        assert sum(1 for _, error in outcomes if error is None) == 1
        assert portal.get_request(requester, record.id).status is RequestStatus.PENDING
        approvals = portal.list_approvals(approver, ApprovalFilter.any_status(record.id))
        assert len(approvals) == 1
        assert approvals[0].status is ApprovalStatus.PENDING


class TestDecideRacingCancel:
    """An approver decides while the requester cancels."""

    def test_request_and_approval_agree(self, portal, requester, approver, make_draft):
        record = portal.create_request(requester, make_draft(environment="prod"))
        portal.submit_request(requester, record.id)
        (approval,) = portal.list_approvals(approver)

        race(
            lambda: portal.approve(approver, approval.id),
            lambda: portal.delete_request(requester, record.id),
        )

        final_request = portal.get_request(requester, record.id)
        final_approval = portal.get_approval(approver, approval.id)
        assert final_approval.status is not ApprovalStatus.PENDING
        assert final_request.status is not RequestStatus.PENDING
        assert portal.list_approvals(approver) == []
        if final_approval.status is ApprovalStatus.REJECTED:
            assert final_request.status is RequestStatus.CANCELLED
        else:
            assert final_request.status in (RequestStatus.APPROVED, RequestStatus.CANCELLED)
