"""
Module: portal_kernel.models.catalog
Responsibility: ORM persistence for the reference catalog -- deployment
    environments and provisionable resource types.
Architecture position: Kernel > Models.  May import from db/ only.

The catalog is read-mostly reference data.  The kernel consults it through
CatalogSelector; writes happen only during seeding.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import Base
from portal_kernel.db.types import ShortCode, Title

if TYPE_CHECKING:
    from portal_kernel.domain.dtos import EnvironmentRecord, ResourceTypeRecord

DEFAULT_REGION = "asia-southeast1"


class Environment(Base):
    """Deployment target (dev, staging, prod) and its approval policy."""

    __tablename__ = "environments"

    name: Mapped[ShortCode] = mapped_column(unique=True, nullable=False)
    display_name: Mapped[Title] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    gcp_project_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    region: Mapped[str] = mapped_column(String(100), nullable=False, default=DEFAULT_REGION)
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Environment {self.name} approval={self.requires_approval}>"

    def to_dto(self) -> EnvironmentRecord:
        from portal_kernel.domain.dtos import EnvironmentRecord

        return EnvironmentRecord(
            id=self.id,
            name=self.name,
            display_name=self.display_name,
            description=self.description or "",
            gcp_project_id=self.gcp_project_id or "",
            region=self.region,
            requires_approval=bool(self.requires_approval),
            is_active=bool(self.is_active),
        )


class ResourceType(Base):
    """Provisionable resource kind with its configuration schema."""

    __tablename__ = "resource_types"

    name: Mapped[ShortCode] = mapped_column(unique=True, nullable=False)
    display_name: Mapped[Title] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    module_path: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    config_schema: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    base_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"),
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ResourceType {self.name}>"

    def to_dto(self) -> ResourceTypeRecord:
        from portal_kernel.domain.dtos import ResourceTypeRecord

        return ResourceTypeRecord(
            id=self.id,
            name=self.name,
            display_name=self.display_name,
            description=self.description or "",
            module_path=self.module_path or "",
            config_schema=dict(self.config_schema or {}),
            base_cost=Decimal(self.base_cost) if self.base_cost is not None else Decimal("0"),
            is_active=bool(self.is_active),
        )
