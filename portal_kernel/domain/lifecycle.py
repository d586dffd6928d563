"""
Request lifecycle domain types (``portal_kernel.domain.lifecycle``).

Responsibility
--------------
Closed status enum and explicit transition table for provisioning requests.
Services consult ``REQUEST_TRANSITIONS`` before every status write; no other
status values or edges exist.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every request status is a ``RequestStatus`` member.
* ``rejected`` and ``cancelled`` have no outgoing edges; there is no
  resubmission path after rejection.
* Only ``draft`` and ``planned`` requests can be submitted.
* Only ``draft`` and ``rejected`` requests are logically deleted; every
  other status is cancelled instead.
"""

from __future__ import annotations

from enum import Enum


class RequestStatus(str, Enum):
    """Provisioning request lifecycle states."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PLANNING = "planning"
    PLANNED = "planned"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


DEFAULT_PRIORITY = Priority.NORMAL


REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.DRAFT: frozenset({
        RequestStatus.PENDING,
        RequestStatus.APPROVED,
        RequestStatus.PLANNING,
        RequestStatus.PLANNED,
    }),
    RequestStatus.PENDING: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.APPROVED: frozenset({
        RequestStatus.PLANNING,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.PLANNING: frozenset({
        RequestStatus.PLANNED,
        RequestStatus.FAILED,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.PLANNED: frozenset({
        RequestStatus.PENDING,
        RequestStatus.APPROVED,
        RequestStatus.APPLYING,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.APPLYING: frozenset({
        RequestStatus.APPLIED,
        RequestStatus.FAILED,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.APPLIED: frozenset({RequestStatus.CANCELLED}),
    RequestStatus.FAILED: frozenset({RequestStatus.CANCELLED}),
    RequestStatus.CANCELLED: frozenset(),
}

SUBMITTABLE_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.DRAFT,
    RequestStatus.PLANNED,
})

EDITABLE_STATUSES: frozenset[RequestStatus] = frozenset({RequestStatus.DRAFT})

# Deleted outright (soft-delete marker); everything else is cancelled.
DELETABLE_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.DRAFT,
    RequestStatus.REJECTED,
})

# Targets reachable only through the administrative execution path.
EXECUTION_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.PLANNING,
    RequestStatus.PLANNED,
    RequestStatus.APPLYING,
    RequestStatus.APPLIED,
    RequestStatus.FAILED,
})

COMPLETION_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPLIED,
    RequestStatus.FAILED,
})


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """True if ``current -> target`` is an edge of the transition table."""
    return target in REQUEST_TRANSITIONS.get(current, frozenset())


def submission_target(requires_approval: bool) -> RequestStatus:
    """Status a submitted request lands in for the environment's policy."""
    return RequestStatus.PENDING if requires_approval else RequestStatus.APPROVED
