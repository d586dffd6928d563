"""
Typed Exception Hierarchy for the Portal Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the portal core (REST handlers, CLIs, test harnesses) must map
every failure to a fixed response category without parsing messages.

Every exception in this module:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        portal.decide_approval(caller, approval_id, outcome)
    except Exception as e:
        if "already processed" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        portal.decide_approval(caller, approval_id, outcome)
    except ApprovalAlreadyProcessedError as e:
        return {"error": e.code, "status": e.current_status}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PortalKernelError (base)
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- ApprovalNotFoundError
    |   +-- EnvironmentNotFoundError
    |   +-- ResourceTypeNotFoundError
    |
    +-- PermissionDeniedError
    |   +-- NotRequestOwnerError
    |   +-- RoleRequiredError
    |
    +-- InvalidStateError
    |   +-- InvalidRequestTransitionError
    |   +-- RequestNotEditableError
    |   +-- ApprovalAlreadyProcessedError
    |
    +-- InputValidationError
    |   +-- InvalidFieldError
    |   +-- ConfigurationSchemaError
    |
    +-- InternalError
        +-- DuplicatePendingApprovalError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|-----------------------------------
NotFound        | REQUEST_NOT_FOUND            | Request id unknown or deleted
                | APPROVAL_NOT_FOUND           | Approval id unknown
                | ENVIRONMENT_NOT_FOUND        | Environment id/name unresolved
                | RESOURCE_TYPE_NOT_FOUND      | Resource type id/name unresolved
----------------|------------------------------|-----------------------------------
Permission      | NOT_REQUEST_OWNER            | Caller is not the requester
                | ROLE_REQUIRED                | Caller role lacks the privilege
----------------|------------------------------|-----------------------------------
InvalidState    | INVALID_REQUEST_TRANSITION   | Transition not in the table
                | REQUEST_NOT_EDITABLE         | Update on a non-draft request
                | APPROVAL_ALREADY_PROCESSED   | Decide on a decided approval
----------------|------------------------------|-----------------------------------
Validation      | INVALID_FIELD                | Malformed input field
                | CONFIGURATION_SCHEMA_INVALID | Config fails resource schema
----------------|------------------------------|-----------------------------------
Internal        | DUPLICATE_PENDING_APPROVAL   | Second pending approval (defect)
                | IMMUTABILITY_VIOLATION       | Write to an immutable record

===============================================================================
"""

from __future__ import annotations

from typing import Any


class PortalKernelError(Exception):
    """
    Base exception for all portal kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PORTAL_KERNEL_ERROR"


# Not found


class NotFoundError(PortalKernelError):
    """Base exception for unresolved references."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Provisioning request does not exist or was deleted."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class ApprovalNotFoundError(NotFoundError):
    """Approval does not exist."""

    code: str = "APPROVAL_NOT_FOUND"

    def __init__(self, approval_id: str):
        self.approval_id = approval_id
        super().__init__(f"Approval not found: {approval_id}")


class EnvironmentNotFoundError(NotFoundError):
    """Environment reference did not resolve to an active environment."""

    code: str = "ENVIRONMENT_NOT_FOUND"

    def __init__(self, environment_ref: str):
        self.environment_ref = environment_ref
        super().__init__(f"Environment not found: {environment_ref}")


class ResourceTypeNotFoundError(NotFoundError):
    """Resource type reference did not resolve to an active resource type."""

    code: str = "RESOURCE_TYPE_NOT_FOUND"

    def __init__(self, resource_type_ref: str):
        self.resource_type_ref = resource_type_ref
        super().__init__(f"Resource type not found: {resource_type_ref}")


# Permission


class PermissionDeniedError(PortalKernelError):
    """Base exception for ownership and role failures."""

    code: str = "PERMISSION_DENIED"


class NotRequestOwnerError(PermissionDeniedError):
    """Operation is reserved to the requester (or an admin, where allowed)."""

    code: str = "NOT_REQUEST_OWNER"

    def __init__(self, request_id: str, actor_id: str, operation: str):
        self.request_id = request_id
        self.actor_id = actor_id
        self.operation = operation
        super().__init__(
            f"User {actor_id} may not {operation} request {request_id}"
        )


class RoleRequiredError(PermissionDeniedError):
    """Caller role is not among the roles allowed for the operation."""

    code: str = "ROLE_REQUIRED"

    def __init__(self, actor_role: str, required_roles: tuple[str, ...], operation: str):
        self.actor_role = actor_role
        self.required_roles = required_roles
        self.operation = operation
        super().__init__(
            f"Role '{actor_role}' may not {operation}; "
            f"requires one of: {', '.join(required_roles)}"
        )


# Invalid state


class InvalidStateError(PortalKernelError):
    """Base exception for operations not legal in the current lifecycle state."""

    code: str = "INVALID_STATE"


class InvalidRequestTransitionError(InvalidStateError):
    """Request status change is not allowed by the transition table."""

    code: str = "INVALID_REQUEST_TRANSITION"

    def __init__(self, request_id: str, from_status: str, to_status: str):
        self.request_id = request_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Request {request_id} cannot move from {from_status} to {to_status}"
        )


class RequestNotEditableError(InvalidStateError):
    """Request fields may only change while the request is a draft."""

    code: str = "REQUEST_NOT_EDITABLE"

    def __init__(self, request_id: str, current_status: str):
        self.request_id = request_id
        self.current_status = current_status
        super().__init__(
            f"Request {request_id} is {current_status}; only draft requests can be updated"
        )


class ApprovalAlreadyProcessedError(InvalidStateError):
    """Approval has already been decided."""

    code: str = "APPROVAL_ALREADY_PROCESSED"

    def __init__(self, approval_id: str, current_status: str):
        self.approval_id = approval_id
        self.current_status = current_status
        super().__init__(
            f"Approval {approval_id} already processed (status: {current_status})"
        )


# Validation


class InputValidationError(PortalKernelError):
    """Base exception for malformed caller input."""

    code: str = "VALIDATION_ERROR"


class InvalidFieldError(InputValidationError):
    """A single input field is missing or malformed."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid field '{field}': {reason}")


class ConfigurationSchemaError(InputValidationError):
    """Request configuration does not satisfy the resource type schema."""

    code: str = "CONFIGURATION_SCHEMA_INVALID"

    def __init__(self, resource_type: str, field_errors: list[dict[str, Any]]):
        self.resource_type = resource_type
        self.field_errors = field_errors
        summary = "; ".join(
            f"{e.get('field') or '<root>'}: {e.get('message')}" for e in field_errors
        )
        super().__init__(
            f"Configuration invalid for resource type {resource_type}: {summary}"
        )


# Internal


class InternalError(PortalKernelError):
    """Base exception for invariant violations that indicate a defect."""

    code: str = "INTERNAL_ERROR"


class DuplicatePendingApprovalError(InternalError):
    """A pending approval already exists for the request."""

    code: str = "DUPLICATE_PENDING_APPROVAL"

    def __init__(self, request_id: str, existing_approval_id: str):
        self.request_id = request_id
        self.existing_approval_id = existing_approval_id
        super().__init__(
            f"Request {request_id} already has pending approval {existing_approval_id}"
        )


class ImmutabilityViolationError(InternalError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Transport mapping. Consumed by whatever layer speaks a wire protocol.
ERROR_CATEGORY_STATUS: dict[type[PortalKernelError], int] = {
    NotFoundError: 404,
    PermissionDeniedError: 403,
    InvalidStateError: 400,
    InputValidationError: 400,
    InternalError: 500,
}


def status_for(error: PortalKernelError) -> int:
    """Return the response status category for a kernel error (500 if unmapped)."""
    for category, status in ERROR_CATEGORY_STATUS.items():
        if isinstance(error, category):
            return status
    return 500
