"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The portal keeps an audit trail and a decision history that must not change
after the fact.  SQLAlchemy fires mapper events before UPDATE/DELETE reach
the database; listeners registered here intercept those events and raise
ImmutabilityViolationError, aborting the flush.

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Core-level conditional UPDATEs (``session.execute(update(...))``) bypass
mapper events.  The services only issue those with a WHERE clause on the
expected prior status, so they can never touch a decided row.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | Rule
---------------------|-----------------------------------------------------
AuditLog             | ALWAYS immutable, never deleted
Approval             | Immutable once decided; never deleted
ProvisioningRequest  | requester_id write-once; hard DELETE only from
                     | draft or rejected (normal path is soft delete)

===============================================================================
USAGE
===============================================================================

    from portal_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from portal_kernel.exceptions import ImmutabilityViolationError
from portal_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
    )


def _check_audit_log_immutability(mapper, connection, target):
    """Audit records are append-only."""
    _blocked("AuditLog", str(target.id), "UPDATE", "Audit records cannot be modified")


def _check_audit_log_delete(mapper, connection, target):
    _blocked("AuditLog", str(target.id), "DELETE", "Audit records cannot be deleted")


def _check_approval_immutability(mapper, connection, target):
    """
    Block updates to an approval that was already decided before this flush.

    The pending -> decided write itself is allowed: the status history shows
    'pending' as the old value.
    """
    status_history = get_history(target, "status")
    if status_history.deleted:
        previous = status_history.deleted[0]
    else:
        previous = target.status
    if previous != "pending":
        _blocked(
            "Approval",
            str(target.id),
            "UPDATE",
            f"Approval already decided ({previous}) and cannot be modified",
        )


def _check_approval_delete(mapper, connection, target):
    _blocked("Approval", str(target.id), "DELETE", "Approvals are never deleted")


def _check_request_owner_immutability(mapper, connection, target):
    """requester_id is fixed at creation."""
    history = get_history(target, "requester_id")
    if history.deleted and history.added and history.deleted[0] != history.added[0]:
        _blocked(
            "ProvisioningRequest",
            str(target.id),
            "UPDATE",
            "requester_id cannot change after creation",
        )


def _check_request_delete(mapper, connection, target):
    """Physical deletes only for draft or rejected requests."""
    if target.status not in ("draft", "rejected"):
        _blocked(
            "ProvisioningRequest",
            str(target.id),
            "DELETE",
            f"Requests in status '{target.status}' are cancelled, not deleted",
        )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Safe to call more than once.
    """
    from portal_kernel.models.approval import Approval
    from portal_kernel.models.audit_log import AuditLog
    from portal_kernel.models.request import ProvisioningRequest

    for target, event_name, listener_fn in _listeners(Approval, AuditLog, ProvisioningRequest):
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests.
    """
    from portal_kernel.models.approval import Approval
    from portal_kernel.models.audit_log import AuditLog
    from portal_kernel.models.request import ProvisioningRequest

    for target, event_name, listener_fn in _listeners(Approval, AuditLog, ProvisioningRequest):
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)


def _listeners(approval_cls, audit_cls, request_cls):
    return (
        (audit_cls, "before_update", _check_audit_log_immutability),
        (audit_cls, "before_delete", _check_audit_log_delete),
        (approval_cls, "before_update", _check_approval_immutability),
        (approval_cls, "before_delete", _check_approval_delete),
        (request_cls, "before_update", _check_request_owner_immutability),
        (request_cls, "before_delete", _check_request_delete),
    )
