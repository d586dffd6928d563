"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable data structures that cross the service boundary: command
    inputs (RequestDraft, RequestChanges, filters), records returned to
    callers (RequestRecord, ApprovalRecord, AuditEntry, catalog records),
    and validation results.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ORM models convert
    themselves into these records via ``to_dto()``; callers never receive
    ORM instances.

Data flow:
    RequestDraft -> ProvisioningRequest (ORM) -> RequestRecord
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from portal_kernel.domain.approval import ApprovalStatus
from portal_kernel.domain.lifecycle import Priority, RequestStatus

ALL_STATUSES = "all"


# =========================================================================
# Catalog
# =========================================================================


@dataclass(frozen=True)
class EnvironmentRecord:
    """Deployment target and its approval policy."""

    id: UUID
    name: str
    display_name: str
    description: str
    gcp_project_id: str
    region: str
    requires_approval: bool
    is_active: bool


@dataclass(frozen=True)
class ResourceTypeRecord:
    """Provisionable resource kind and the schema its configuration must satisfy."""

    id: UUID
    name: str
    display_name: str
    description: str
    module_path: str
    config_schema: dict[str, Any]
    base_cost: Decimal
    is_active: bool


class CatalogStore(Protocol):
    """Read-only lookup of catalog entries by id or name.

    Implementations return None for unknown or inactive entries.
    """

    def find_environment(self, ref: UUID | str) -> EnvironmentRecord | None:
        ...

    def find_resource_type(self, ref: UUID | str) -> ResourceTypeRecord | None:
        ...


# =========================================================================
# Requests
# =========================================================================


@dataclass(frozen=True)
class RequestRecord:
    """Snapshot of a provisioning request."""

    id: UUID
    title: str
    description: str
    requester_id: UUID
    environment_id: UUID
    resource_type_id: UUID
    configuration: dict[str, Any]
    status: RequestStatus
    priority: Priority
    terraform_plan: str | None
    estimated_cost: Decimal | None
    submitted_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    def snapshot(self) -> dict[str, Any]:
        """Audit-friendly view of the mutable fields."""
        return {
            "title": self.title,
            "description": self.description,
            "configuration": self.configuration,
            "status": self.status.value,
            "priority": self.priority.value,
        }


@dataclass(frozen=True)
class RequestDraft:
    """Input for creating a request.

    ``environment`` and ``resource_type`` accept an id or a catalog name.
    """

    environment: UUID | str
    resource_type: UUID | str
    title: str
    description: str = ""
    configuration: dict[str, Any] = field(default_factory=dict)
    priority: Priority | str | None = None


@dataclass(frozen=True)
class RequestChanges:
    """Input for updating a draft.  ``None`` leaves a field unchanged."""

    title: str | None = None
    description: str | None = None
    configuration: dict[str, Any] | None = None
    priority: Priority | str | None = None


@dataclass(frozen=True)
class RequestFilter:
    """Optional listing filters.  Requester scoping is applied on top."""

    status: RequestStatus | str | None = None
    environment_id: UUID | None = None
    requester_id: UUID | None = None


class DeleteOutcome(str, Enum):
    """What a delete call did to the request."""

    DELETED = "deleted"
    CANCELLED = "cancelled"


# =========================================================================
# Approvals
# =========================================================================


@dataclass(frozen=True)
class ApprovalRecord:
    """Snapshot of an approval."""

    id: UUID
    request_id: UUID
    approver_id: UUID | None
    status: ApprovalStatus
    comment: str | None
    approved_at: datetime | None
    created_at: datetime

    def snapshot(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "approver_id": str(self.approver_id) if self.approver_id else None,
            "comment": self.comment,
        }


@dataclass(frozen=True)
class ApprovalFilter:
    """Approval listing filter.  Defaults to pending approvals only."""

    status: ApprovalStatus | None = ApprovalStatus.PENDING
    request_id: UUID | None = None

    @classmethod
    def any_status(cls, request_id: UUID | None = None) -> ApprovalFilter:
        return cls(status=None, request_id=request_id)

    @classmethod
    def from_status(
        cls, status: ApprovalStatus | str | None, request_id: UUID | None = None,
    ) -> ApprovalFilter:
        """Build from caller input: None means pending, "all" means any status."""
        if status is None or status == "":
            return cls(request_id=request_id)
        if status == ALL_STATUSES:
            return cls.any_status(request_id)
        return cls(status=ApprovalStatus(status), request_id=request_id)


# =========================================================================
# Audit
# =========================================================================


@dataclass(frozen=True)
class AuditEntry:
    """One append-only audit log row."""

    id: UUID
    user_id: UUID | None
    action: str
    resource_type: str
    resource_id: UUID | None
    old_values: dict[str, Any] | None
    new_values: dict[str, Any] | None
    ip_address: str
    user_agent: str
    created_at: datetime


# =========================================================================
# Validation
# =========================================================================


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, and an
        optional field path (dotted, with [n] for array items).
    """

    code: str
    message: str
    field: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "field": self.field}


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Guarantees:
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    def __bool__(self) -> bool:
        return self.is_valid
