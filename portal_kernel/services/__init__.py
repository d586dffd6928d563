"""Kernel services: request lifecycle, approvals, audit."""

from portal_kernel.services.approval_service import ApprovalService
from portal_kernel.services.audit_recorder import AuditRecorder
from portal_kernel.services.request_lifecycle_service import RequestLifecycleService

__all__ = [
    "ApprovalService",
    "AuditRecorder",
    "RequestLifecycleService",
]
