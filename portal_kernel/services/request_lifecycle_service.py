"""
portal_kernel.services.request_lifecycle_service -- Request Lifecycle Engine.

Responsibility:
    Owns the provisioning request state machine: creation, draft edits,
    submission, deletion/cancellation, mirroring approval decisions, and
    the administrative execution path (planning through applied/failed).

Architecture position:
    Kernel > Services.  May import from domain/, models/, selectors/, db/.
    Flushes only; the caller owns the transaction.

Invariants enforced:
    - Every status write follows REQUEST_TRANSITIONS and is a conditional
      UPDATE keyed on the expected prior status, so concurrent submissions
      (or a decision racing a cancellation) have at most one winner.
    - A request enters pending together with exactly one pending approval,
      in the same transaction.
    - Only the requester edits or submits; requester or admin deletes.
    - Configuration is validated against the resource type schema at
      create, update and submit.
    - Soft-deleted requests are invisible to every read.

Failure modes:
    - EnvironmentNotFoundError / ResourceTypeNotFoundError on unresolved
      catalog references.
    - RequestNotFoundError for unknown or deleted request ids.
    - NotRequestOwnerError / RoleRequiredError on ownership or role failure.
    - RequestNotEditableError on updates outside draft.
    - InvalidRequestTransitionError on illegal or lost-race transitions.
    - InvalidFieldError / ConfigurationSchemaError on malformed input.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session

from portal_kernel.db.types import TITLE_MAX_LENGTH
from portal_kernel.domain.approval import ApprovalOutcome
from portal_kernel.domain.clock import Clock
from portal_kernel.domain.config_validator import validate_configuration
from portal_kernel.domain.dtos import (
    CatalogStore,
    DeleteOutcome,
    RequestChanges,
    RequestDraft,
    RequestFilter,
    RequestRecord,
    ResourceTypeRecord,
)
from portal_kernel.domain.identity import IdentityContext, Role, require_role
from portal_kernel.domain.lifecycle import (
    COMPLETION_STATUSES,
    DEFAULT_PRIORITY,
    DELETABLE_STATUSES,
    EDITABLE_STATUSES,
    EXECUTION_STATUSES,
    SUBMITTABLE_STATUSES,
    Priority,
    RequestStatus,
    can_transition,
    submission_target,
)
from portal_kernel.exceptions import (
    ConfigurationSchemaError,
    EnvironmentNotFoundError,
    InvalidFieldError,
    InvalidRequestTransitionError,
    NotRequestOwnerError,
    RequestNotEditableError,
    RequestNotFoundError,
    ResourceTypeNotFoundError,
)
from portal_kernel.logging_config import get_logger
from portal_kernel.models.request import ProvisioningRequest
from portal_kernel.selectors.catalog_selector import CatalogSelector
from portal_kernel.selectors.request_selector import RequestSelector
from portal_kernel.services.approval_service import ApprovalService
from portal_kernel.services.base import BaseService
from portal_kernel.utils.serialization import to_jsonable

logger = get_logger("services.request_lifecycle")


def parse_priority(value: Priority | str | None) -> Priority:
    if value is None or value == "":
        return DEFAULT_PRIORITY
    if isinstance(value, Priority):
        return value
    try:
        return Priority(str(value).lower())
    except ValueError:
        raise InvalidFieldError(
            "priority", f"must be one of: {', '.join(p.value for p in Priority)}",
        ) from None


def parse_status(value: RequestStatus | str | None) -> RequestStatus | None:
    """Coerce a listing filter status; None or "" means any status."""
    if value is None or value == "":
        return None
    try:
        return RequestStatus(value)
    except ValueError:
        raise InvalidFieldError("status", f"unknown request status {value!r}") from None


def clean_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidFieldError("title", "is required")
    title = value.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise InvalidFieldError("title", f"must be at most {TITLE_MAX_LENGTH} characters")
    return title


class RequestLifecycleService(BaseService[ProvisioningRequest]):
    """State machine for provisioning requests.

    Contract:
        Every public method takes the caller's IdentityContext (except the
        internal ``apply_approval_decision``), flushes its writes, and
        returns frozen DTOs.

    Non-goals:
        Audit.  The portal facade records audit entries after commit.
    """

    def __init__(
        self,
        session: Session,
        catalog: CatalogStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(session, clock)
        self._catalog = catalog or CatalogSelector(session)
        self._requests = RequestSelector(session)
        self.approvals = ApprovalService(session, decision_sink=self, clock=self._clock)

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def create_request(self, caller: IdentityContext, draft: RequestDraft) -> RequestRecord:
        """Create a new request in draft owned by the caller."""
        title = clean_title(draft.title)
        priority = parse_priority(draft.priority)

        environment = self._catalog.find_environment(draft.environment)
        if environment is None:
            raise EnvironmentNotFoundError(str(draft.environment))
        resource_type = self._catalog.find_resource_type(draft.resource_type)
        if resource_type is None:
            raise ResourceTypeNotFoundError(str(draft.resource_type))

        configuration = self._validated_configuration(draft.configuration, resource_type)

        now = self._clock.now()
        model = ProvisioningRequest(
            id=uuid4(),
            title=title,
            description=draft.description or "",
            requester_id=caller.user_id,
            environment_id=environment.id,
            resource_type_id=resource_type.id,
            configuration=configuration,
            status=RequestStatus.DRAFT.value,
            priority=priority.value,
            estimated_cost=resource_type.base_cost,
            created_at=now,
            updated_at=now,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "request_created",
            extra={
                "request_id": str(model.id),
                "requester_id": str(caller.user_id),
                "environment": environment.name,
                "resource_type": resource_type.name,
                "priority": priority.value,
            },
        )
        return model.to_dto()

    def update_request(
        self,
        caller: IdentityContext,
        request_id: UUID,
        changes: RequestChanges,
    ) -> RequestRecord:
        """Edit title, description, configuration or priority of a draft.

        Only the requester may update; there is no role bypass.
        """
        model = self._load_live(request_id)
        self._require_owner(caller, model, "update")
        if model.status_enum not in EDITABLE_STATUSES:
            raise RequestNotEditableError(str(request_id), model.status)

        if changes.title is not None:
            model.title = clean_title(changes.title)
        if changes.description is not None:
            model.description = changes.description
        if changes.priority is not None:
            model.priority = parse_priority(changes.priority).value
        if changes.configuration is not None:
            resource_type = self._resource_type_for(model)
            model.configuration = self._validated_configuration(
                changes.configuration, resource_type,
            )
        model.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "request_updated",
            extra={
                "request_id": str(request_id),
                "fields": [
                    name for name in ("title", "description", "configuration", "priority")
                    if getattr(changes, name) is not None
                ],
            },
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit_request(self, caller: IdentityContext, request_id: UUID) -> RequestRecord:
        """Move draft|planned to pending (approval required) or approved.

        When the result is pending, the pending approval is created in the
        same flush sequence, so both become visible at commit together.
        """
        model = self._load_live(request_id)
        self._require_owner(caller, model, "submit")

        current = model.status_enum
        if current not in SUBMITTABLE_STATUSES:
            raise InvalidRequestTransitionError(
                str(request_id), current.value, RequestStatus.PENDING.value,
            )

        environment = self._catalog.find_environment(model.environment_id)
        if environment is None:
            raise EnvironmentNotFoundError(str(model.environment_id))
        target = submission_target(environment.requires_approval)
        if not can_transition(current, target):
            raise InvalidRequestTransitionError(str(request_id), current.value, target.value)

        resource_type = self._resource_type_for(model)
        self._validated_configuration(model.configuration, resource_type)

        now = self._clock.now()
        self._conditional_status_write(
            model,
            expected=SUBMITTABLE_STATUSES,
            target=target,
            values={"submitted_at": now},
        )

        if target is RequestStatus.PENDING:
            self.approvals.create_pending(model.id)

        logger.info(
            "request_submitted",
            extra={
                "request_id": str(request_id),
                "from_status": current.value,
                "to_status": target.value,
                "requires_approval": environment.requires_approval,
            },
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Delete / cancel
    # ------------------------------------------------------------------

    def delete_request(self, caller: IdentityContext, request_id: UUID) -> DeleteOutcome:
        """Delete a draft or rejected request; cancel a request in any other state."""
        model = self._load_live(request_id)
        if not caller.is_admin:
            self._require_owner(caller, model, "delete")

        current = model.status_enum
        now = self._clock.now()

        if current in DELETABLE_STATUSES:
            deleted = self._guarded_update(
                update(ProvisioningRequest)
                .where(
                    ProvisioningRequest.id == model.id,
                    ProvisioningRequest.status == current.value,
                    ProvisioningRequest.is_live(),
                )
                .values(deleted_at=now, updated_at=now)
            )
            if not deleted:
                self._raise_lost_race(model, "deleted")
            self.session.refresh(model)
            logger.info(
                "request_deleted",
                extra={"request_id": str(request_id), "status": current.value},
            )
            return DeleteOutcome.DELETED

        if current is RequestStatus.CANCELLED:
            logger.info("request_already_cancelled", extra={"request_id": str(request_id)})
            return DeleteOutcome.CANCELLED

        if current is RequestStatus.PENDING:
            # Lock order matches decide(): approval row, then request row.
            self.approvals.close_for_cancelled_request(model.id, caller.user_id)
        self._conditional_status_write(
            model,
            expected=frozenset({current}),
            target=RequestStatus.CANCELLED,
        )

        logger.info(
            "request_cancelled",
            extra={"request_id": str(request_id), "from_status": current.value},
        )
        return DeleteOutcome.CANCELLED

    # ------------------------------------------------------------------
    # Approval feedback (internal)
    # ------------------------------------------------------------------

    def apply_approval_decision(
        self, request_id: UUID, outcome: ApprovalOutcome,
    ) -> RequestRecord:
        """Mirror a decided approval onto its request.

        Invoked only by ApprovalService.decide.  Raises
        InvalidRequestTransitionError if the request is no longer pending,
        which rolls back the approval write as well.
        """
        model = self._load_live(request_id)
        target = outcome.request_status
        self._conditional_status_write(
            model,
            expected=frozenset({RequestStatus.PENDING}),
            target=target,
        )
        logger.info(
            "request_decision_applied",
            extra={"request_id": str(request_id), "to_status": target.value},
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Execution path (administrative)
    # ------------------------------------------------------------------

    def advance_execution(
        self,
        caller: IdentityContext,
        request_id: UUID,
        target: RequestStatus | str,
        terraform_plan: str | None = None,
    ) -> RequestRecord:
        """Record progress of the out-of-band planning/apply pipeline."""
        require_role(caller, frozenset({Role.ADMIN}), "advance request execution")
        try:
            target = RequestStatus(target)
        except ValueError:
            raise InvalidFieldError("status", f"unknown status {target!r}") from None
        if target not in EXECUTION_STATUSES:
            raise InvalidFieldError(
                "status",
                f"must be one of: {', '.join(sorted(s.value for s in EXECUTION_STATUSES))}",
            )

        model = self._load_live(request_id)
        current = model.status_enum
        if not can_transition(current, target):
            raise InvalidRequestTransitionError(str(request_id), current.value, target.value)

        values: dict[str, Any] = {}
        if terraform_plan is not None:
            values["terraform_plan"] = terraform_plan
        if target in COMPLETION_STATUSES:
            values["completed_at"] = self._clock.now()

        self._conditional_status_write(
            model, expected=frozenset({current}), target=target, values=values,
        )
        logger.info(
            "request_execution_advanced",
            extra={
                "request_id": str(request_id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_request(self, caller: IdentityContext, request_id: UUID) -> RequestRecord:
        """Request by id.  Users may only read their own requests."""
        model = self._load_live(request_id)
        if caller.role is Role.USER:
            self._require_owner(caller, model, "view")
        return model.to_dto()

    def list_requests(
        self,
        caller: IdentityContext,
        request_filter: RequestFilter | None = None,
    ) -> list[RequestRecord]:
        """Live requests, newest first.  Users only ever see their own."""
        f = request_filter or RequestFilter()
        f = RequestFilter(
            status=parse_status(f.status),
            environment_id=f.environment_id,
            requester_id=caller.user_id if caller.role is Role.USER else f.requester_id,
        )
        return self._requests.list_requests(f)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_live(self, request_id: UUID) -> ProvisioningRequest:
        model = self.session.get(ProvisioningRequest, request_id)
        if model is None or model.deleted_at is not None:
            raise RequestNotFoundError(str(request_id))
        return model

    @staticmethod
    def _require_owner(
        caller: IdentityContext, model: ProvisioningRequest, operation: str,
    ) -> None:
        if caller.user_id != model.requester_id:
            raise NotRequestOwnerError(str(model.id), str(caller.user_id), operation)

    def _resource_type_for(self, model: ProvisioningRequest) -> ResourceTypeRecord:
        resource_type = self._catalog.find_resource_type(model.resource_type_id)
        if resource_type is None:
            raise ResourceTypeNotFoundError(str(model.resource_type_id))
        return resource_type

    @staticmethod
    def _validated_configuration(
        configuration: Any, resource_type: ResourceTypeRecord,
    ) -> dict[str, Any]:
        if configuration is None:
            configuration = {}
        if not isinstance(configuration, dict):
            raise InvalidFieldError("configuration", "must be an object")
        result = validate_configuration(
            resource_type.config_schema, configuration, resource_type.name,
        )
        if not result:
            raise ConfigurationSchemaError(
                resource_type.name, [e.as_dict() for e in result.errors],
            )
        return to_jsonable(configuration)

    def _conditional_status_write(
        self,
        model: ProvisioningRequest,
        expected: frozenset[RequestStatus],
        target: RequestStatus,
        values: dict[str, Any] | None = None,
    ) -> None:
        """UPDATE ... SET status=target WHERE status IN expected.

        Zero rows matched means another transaction moved the request first.
        """
        moved = self._guarded_update(
            update(ProvisioningRequest)
            .where(
                ProvisioningRequest.id == model.id,
                ProvisioningRequest.status.in_([s.value for s in expected]),
                ProvisioningRequest.is_live(),
            )
            .values(status=target.value, updated_at=self._clock.now(), **(values or {}))
        )
        if not moved:
            self._raise_lost_race(model, target.value)
        self.session.refresh(model)

    def _raise_lost_race(self, model: ProvisioningRequest, target: str) -> None:
        expected_status = model.status
        self.session.refresh(model)
        logger.info(
            "request_transition_lost_race",
            extra={
                "request_id": str(model.id),
                "expected_status": expected_status,
                "current_status": model.status,
                "target": target,
            },
        )
        if model.deleted_at is not None:
            raise RequestNotFoundError(str(model.id))
        raise InvalidRequestTransitionError(str(model.id), model.status, target)
