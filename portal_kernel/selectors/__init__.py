"""Selectors - read-only query services for portal data."""

from portal_kernel.selectors.approval_selector import ApprovalSelector
from portal_kernel.selectors.audit_selector import AuditSelector
from portal_kernel.selectors.base import BaseSelector
from portal_kernel.selectors.catalog_selector import CatalogSelector
from portal_kernel.selectors.request_selector import RequestSelector

__all__ = [
    "ApprovalSelector",
    "AuditSelector",
    "BaseSelector",
    "CatalogSelector",
    "RequestSelector",
]
