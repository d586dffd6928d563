"""Domain models for the portal kernel."""

from portal_kernel.models.approval import Approval
from portal_kernel.models.audit_log import AuditAction, AuditLog, AuditResource
from portal_kernel.models.catalog import Environment, ResourceType
from portal_kernel.models.request import ProvisioningRequest


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata is complete."""
    import portal_kernel.models.approval  # noqa: F401
    import portal_kernel.models.audit_log  # noqa: F401
    import portal_kernel.models.catalog  # noqa: F401
    import portal_kernel.models.request  # noqa: F401


__all__ = [
    "Approval",
    "AuditAction",
    "AuditLog",
    "AuditResource",
    "Environment",
    "ProvisioningRequest",
    "ResourceType",
    "import_all_models",
]
