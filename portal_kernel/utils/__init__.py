"""Utility modules for the portal kernel."""

from portal_kernel.utils.serialization import canonicalize_json, to_jsonable

__all__ = ["canonicalize_json", "to_jsonable"]
