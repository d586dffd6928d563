"""
Module: portal_kernel.models.request
Responsibility: ORM persistence for provisioning requests.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Status and priority values are limited by check constraints to the
      closed enums in domain/lifecycle.py.
    - requester_id is write-once (ORM listener, db/immutability.py).
    - Soft delete: deleted_at marks a request as logically gone.  Every
      read path filters with ``ProvisioningRequest.is_live()``.

Failure modes:
    - IntegrityError on an out-of-enum status or priority.
    - IntegrityError if environment_id / resource_type_id do not exist.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import Base, UUIDString
from portal_kernel.db.types import StatusCode, Title
from portal_kernel.domain.lifecycle import Priority, RequestStatus

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

    from portal_kernel.domain.dtos import RequestRecord


def _in_list(values) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


class ProvisioningRequest(Base):
    """Persistent provisioning request.

    Contract:
        Status is only written by RequestLifecycleService, always along an
        edge of REQUEST_TRANSITIONS.
    """

    __tablename__ = "provisioning_requests"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_in_list(RequestStatus)})",
            name="ck_provisioning_requests_valid_status",
        ),
        CheckConstraint(
            f"priority IN ({_in_list(Priority)})",
            name="ck_provisioning_requests_valid_priority",
        ),
        Index("ix_provisioning_requests_requester", "requester_id", "created_at"),
        Index("ix_provisioning_requests_status", "status"),
        Index("ix_provisioning_requests_environment", "environment_id"),
    )

    title: Mapped[Title] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requester_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    environment_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("environments.id"), nullable=False,
    )
    resource_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("resource_types.id"), nullable=False,
    )
    configuration: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[StatusCode] = mapped_column(
        nullable=False, default=RequestStatus.DRAFT.value,
    )
    priority: Mapped[StatusCode] = mapped_column(
        nullable=False, default=Priority.NORMAL.value,
    )
    terraform_plan: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_cost: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<ProvisioningRequest {self.id} status={self.status}>"

    @classmethod
    def is_live(cls) -> ColumnElement[bool]:
        """Exclusion predicate for soft-deleted rows."""
        return cls.deleted_at.is_(None)

    @property
    def status_enum(self) -> RequestStatus:
        return RequestStatus(self.status)

    def to_dto(self) -> RequestRecord:
        """Convert ORM model to frozen domain DTO."""
        from portal_kernel.domain.dtos import RequestRecord

        return RequestRecord(
            id=self.id,
            title=self.title,
            description=self.description or "",
            requester_id=self.requester_id,
            environment_id=self.environment_id,
            resource_type_id=self.resource_type_id,
            configuration=dict(self.configuration or {}),
            status=RequestStatus(self.status),
            priority=Priority(self.priority),
            terraform_plan=self.terraform_plan,
            estimated_cost=(
                Decimal(self.estimated_cost) if self.estimated_cost is not None else None
            ),
            submitted_at=self.submitted_at,
            completed_at=self.completed_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
