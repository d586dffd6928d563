"""
Module: portal_kernel.selectors.catalog_selector
Responsibility: Database-backed Catalog Store.  Resolves environments and
    resource types by id or by name.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Inactive entries never resolve through find_*; they behave as unknown.

Failure modes:
    - Returns None on absence (never raises); callers map None to NotFound.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from portal_kernel.domain.dtos import EnvironmentRecord, ResourceTypeRecord
from portal_kernel.models.catalog import Environment, ResourceType
from portal_kernel.selectors.base import BaseSelector


def _as_uuid(ref: UUID | str) -> UUID | None:
    if isinstance(ref, UUID):
        return ref
    try:
        return UUID(str(ref))
    except ValueError:
        return None


class CatalogSelector(BaseSelector[Environment]):
    """Read-only catalog lookups.  Satisfies the CatalogStore protocol."""

    def _find(self, model, ref: UUID | str):
        ref_id = _as_uuid(ref)
        if ref_id is not None:
            criterion = model.id == ref_id
        else:
            criterion = model.name == str(ref)
        return self.session.execute(
            select(model).where(criterion, model.is_active.is_(True))
        ).scalar_one_or_none()

    def find_environment(self, ref: UUID | str) -> EnvironmentRecord | None:
        """Active environment by id or name."""
        model = self._find(Environment, ref)
        return model.to_dto() if model is not None else None

    def find_resource_type(self, ref: UUID | str) -> ResourceTypeRecord | None:
        """Active resource type by id or name."""
        model = self._find(ResourceType, ref)
        return model.to_dto() if model is not None else None

    def list_environments(self, include_inactive: bool = False) -> list[EnvironmentRecord]:
        stmt = select(Environment).order_by(Environment.name)
        if not include_inactive:
            stmt = stmt.where(Environment.is_active.is_(True))
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def list_resource_types(self, include_inactive: bool = False) -> list[ResourceTypeRecord]:
        stmt = select(ResourceType).order_by(ResourceType.name)
        if not include_inactive:
            stmt = stmt.where(ResourceType.is_active.is_(True))
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]
