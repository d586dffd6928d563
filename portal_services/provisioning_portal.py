"""
portal_services.provisioning_portal -- the portal's external interface.

Responsibility:
    One method per caller-facing operation.  Each method opens a
    transaction, runs the kernel service, commits, and then records the
    audit entry in a separate transaction.

Architecture position:
    Services layer.  May import from portal_kernel/ (domain, services,
    selectors, db).  Owns every transaction boundary; the kernel services
    it drives only flush.

Invariants enforced:
    - Business state commits before audit is attempted; an audit failure
      is logged by AuditRecorder and never reaches the caller.
    - Each call runs under a fresh correlation_id with the caller bound as
      actor_id in LogContext.
    - Typed kernel exceptions propagate unchanged after rollback.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from portal_kernel.db.engine import session_scope
from portal_kernel.domain.approval import ApprovalOutcome, ApprovalStatus
from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.domain.dtos import (
    ApprovalFilter,
    ApprovalRecord,
    AuditEntry,
    DeleteOutcome,
    EnvironmentRecord,
    RequestChanges,
    RequestDraft,
    RequestFilter,
    RequestRecord,
    ResourceTypeRecord,
)
from portal_kernel.domain.identity import REVIEWER_ROLES, IdentityContext, require_role
from portal_kernel.domain.lifecycle import RequestStatus
from portal_kernel.exceptions import (
    InvalidFieldError,
    ResourceTypeNotFoundError,
)
from portal_kernel.logging_config import get_logger, operation_scope
from portal_kernel.models.audit_log import AuditAction, AuditResource
from portal_kernel.selectors.approval_selector import ApprovalSelector
from portal_kernel.selectors.audit_selector import AuditSelector
from portal_kernel.selectors.catalog_selector import CatalogSelector
from portal_kernel.selectors.request_selector import RequestSelector
from portal_kernel.services.audit_recorder import AuditRecorder
from portal_kernel.services.request_lifecycle_service import RequestLifecycleService

logger = get_logger("services.portal")


class ProvisioningPortal:
    """Transactional facade over the request lifecycle and approval engines.

    Contract:
        Every method takes the caller's IdentityContext first and returns
        frozen DTOs.  Failures surface as PortalKernelError subclasses.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        audit_recorder: AuditRecorder | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._audit = audit_recorder or AuditRecorder(session_factory, clock=self._clock)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _lifecycle(self, session: Session) -> RequestLifecycleService:
        return RequestLifecycleService(session, clock=self._clock)

    def _call(self, caller: IdentityContext, operation: str, **context: Any):
        """Fresh correlation_id and the caller as actor_id for one operation."""
        return operation_scope(
            logger,
            operation,
            correlation_id=uuid4(),
            actor_id=caller.user_id,
            **context,
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(self, caller: IdentityContext, draft: RequestDraft) -> RequestRecord:
        with self._call(caller, "create_request"):
            with session_scope(self._session_factory) as session:
                record = self._lifecycle(session).create_request(caller, draft)
        self._audit.record_for(
            caller, AuditAction.CREATE, AuditResource.REQUEST, record.id,
            new_values=record.snapshot(),
        )
        return record

    def update_request(
        self, caller: IdentityContext, request_id: UUID, changes: RequestChanges,
    ) -> RequestRecord:
        with self._call(caller, "update_request", request_id=str(request_id)):
            with session_scope(self._session_factory) as session:
                before = RequestSelector(session).get(request_id)
                record = self._lifecycle(session).update_request(caller, request_id, changes)
        self._audit.record_for(
            caller, AuditAction.UPDATE, AuditResource.REQUEST, record.id,
            old_values=before.snapshot() if before else None,
            new_values=record.snapshot(),
        )
        return record

    def submit_request(self, caller: IdentityContext, request_id: UUID) -> RequestRecord:
        with self._call(caller, "submit_request", request_id=str(request_id)):
            with session_scope(self._session_factory) as session:
                before = RequestSelector(session).get(request_id)
                record = self._lifecycle(session).submit_request(caller, request_id)
                approval = ApprovalSelector(session).pending_for_request(request_id)
        new_values: dict[str, Any] = {"status": record.status.value}
        if approval is not None:
            new_values["approval_id"] = str(approval.id)
        self._audit.record_for(
            caller, AuditAction.SUBMIT, AuditResource.REQUEST, record.id,
            old_values={"status": before.status.value} if before else None,
            new_values=new_values,
        )
        return record

    def delete_request(self, caller: IdentityContext, request_id: UUID) -> DeleteOutcome:
        """Delete a draft/rejected request, otherwise cancel it."""
        with self._call(caller, "delete_request", request_id=str(request_id)):
            with session_scope(self._session_factory) as session:
                before = RequestSelector(session).get(request_id)
                outcome = self._lifecycle(session).delete_request(caller, request_id)

        if before is not None and before.status is RequestStatus.CANCELLED:
            return outcome
        if outcome is DeleteOutcome.DELETED:
            action, new_values = AuditAction.DELETE, None
        else:
            action, new_values = AuditAction.CANCEL, {"status": RequestStatus.CANCELLED.value}
        self._audit.record_for(
            caller, action, AuditResource.REQUEST, request_id,
            old_values=before.snapshot() if before else None,
            new_values=new_values,
        )
        return outcome

    def get_request(self, caller: IdentityContext, request_id: UUID) -> RequestRecord:
        with self._call(caller, "get_request", request_id=str(request_id)):
            with session_scope(self._session_factory) as session:
                return self._lifecycle(session).get_request(caller, request_id)

    def list_requests(
        self, caller: IdentityContext, request_filter: RequestFilter | None = None,
    ) -> list[RequestRecord]:
        with self._call(caller, "list_requests"):
            with session_scope(self._session_factory) as session:
                return self._lifecycle(session).list_requests(caller, request_filter)

    def advance_execution(
        self,
        caller: IdentityContext,
        request_id: UUID,
        target: RequestStatus | str,
        terraform_plan: str | None = None,
    ) -> RequestRecord:
        """Administrative status change along the planning/apply path."""
        with self._call(caller, "advance_execution", request_id=str(request_id)):
            with session_scope(self._session_factory) as session:
                before = RequestSelector(session).get(request_id)
                record = self._lifecycle(session).advance_execution(
                    caller, request_id, target, terraform_plan,
                )
        new_values: dict[str, Any] = {"status": record.status.value}
        if terraform_plan is not None:
            new_values["terraform_plan_attached"] = True
        self._audit.record_for(
            caller, AuditAction.STATUS_CHANGE, AuditResource.REQUEST, record.id,
            old_values={"status": before.status.value} if before else None,
            new_values=new_values,
        )
        return record

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    def decide_approval(
        self,
        caller: IdentityContext,
        approval_id: UUID,
        outcome: ApprovalOutcome | str,
        comment: str | None = None,
    ) -> ApprovalRecord:
        """Approve or reject; the parent request mirrors the verdict atomically."""
        with self._call(caller, "decide_approval", approval_id=str(approval_id)):
            with session_scope(self._session_factory) as session:
                before = ApprovalSelector(session).get(approval_id)
                record = self._lifecycle(session).approvals.decide(
                    caller, approval_id, outcome, comment,
                )
        action = (
            AuditAction.APPROVE
            if record.status is ApprovalStatus.APPROVED
            else AuditAction.REJECT
        )
        new_values = record.snapshot()
        new_values["request_id"] = str(record.request_id)
        self._audit.record_for(
            caller, action, AuditResource.APPROVAL, record.id,
            old_values=before.snapshot() if before else None,
            new_values=new_values,
        )
        return record

    def approve(
        self, caller: IdentityContext, approval_id: UUID, comment: str | None = None,
    ) -> ApprovalRecord:
        return self.decide_approval(caller, approval_id, ApprovalOutcome.APPROVED, comment)

    def reject(
        self, caller: IdentityContext, approval_id: UUID, comment: str | None = None,
    ) -> ApprovalRecord:
        return self.decide_approval(caller, approval_id, ApprovalOutcome.REJECTED, comment)

    def get_approval(self, caller: IdentityContext, approval_id: UUID) -> ApprovalRecord:
        with self._call(caller, "get_approval", approval_id=str(approval_id)):
            with session_scope(self._session_factory) as session:
                return self._lifecycle(session).approvals.get(caller, approval_id)

    def list_approvals(
        self,
        caller: IdentityContext,
        approval_filter: ApprovalFilter | str | None = None,
    ) -> list[ApprovalRecord]:
        """Pending approvals by default.  A string is a status or "all"."""
        with self._call(caller, "list_approvals"):
            if not isinstance(approval_filter, ApprovalFilter):
                try:
                    approval_filter = ApprovalFilter.from_status(approval_filter)
                except ValueError:
                    raise InvalidFieldError(
                        "status", f"unknown approval status {approval_filter!r}",
                    ) from None
            with session_scope(self._session_factory) as session:
                return self._lifecycle(session).approvals.list_approvals(
                    caller, approval_filter,
                )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_environments(
        self, caller: IdentityContext, include_inactive: bool = False,
    ) -> list[EnvironmentRecord]:
        with self._call(caller, "list_environments"):
            with session_scope(self._session_factory) as session:
                return CatalogSelector(session).list_environments(
                    include_inactive=include_inactive and caller.is_admin,
                )

    def list_resource_types(
        self, caller: IdentityContext, include_inactive: bool = False,
    ) -> list[ResourceTypeRecord]:
        with self._call(caller, "list_resource_types"):
            with session_scope(self._session_factory) as session:
                return CatalogSelector(session).list_resource_types(
                    include_inactive=include_inactive and caller.is_admin,
                )

    def get_resource_type_schema(
        self, caller: IdentityContext, resource_type: UUID | str,
    ) -> dict[str, Any]:
        """Configuration schema for a resource type, by id or name."""
        with self._call(caller, "get_resource_type_schema"):
            with session_scope(self._session_factory) as session:
                record = CatalogSelector(session).find_resource_type(resource_type)
            if record is None:
                raise ResourceTypeNotFoundError(str(resource_type))
            return record.config_schema

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def audit_trail(
        self,
        caller: IdentityContext,
        resource_type: AuditResource | str,
        resource_id: UUID,
    ) -> list[AuditEntry]:
        """Audit entries for one resource, oldest first.

        Reviewers read any trail.  A user reads only the trail of a request
        they own.
        """
        try:
            resource = AuditResource(resource_type)
        except ValueError:
            raise InvalidFieldError(
                "resource_type", f"must be one of: {', '.join(r.value for r in AuditResource)}",
            ) from None
        with self._call(caller, "audit_trail"):
            with session_scope(self._session_factory) as session:
                if not caller.is_reviewer:
                    if resource is not AuditResource.REQUEST:
                        require_role(caller, REVIEWER_ROLES, "read approval audit trail")
                    self._lifecycle(session).get_request(caller, resource_id)
                return AuditSelector(session).list_for_resource(resource.value, resource_id)
