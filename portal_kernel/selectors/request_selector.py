"""
Module: portal_kernel.selectors.request_selector
Responsibility: Read-only queries over provisioning requests.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Soft-deleted requests are excluded on every query via
      ProvisioningRequest.is_live().
    - Listings are ordered newest first (created_at DESC, id DESC).

Failure modes:
    - Returns None or an empty list on absence (never raises).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from portal_kernel.domain.dtos import RequestFilter, RequestRecord
from portal_kernel.domain.lifecycle import RequestStatus
from portal_kernel.models.request import ProvisioningRequest
from portal_kernel.selectors.base import BaseSelector


class RequestSelector(BaseSelector[ProvisioningRequest]):
    """Read-only access to live provisioning requests."""

    def get(self, request_id: UUID) -> RequestRecord | None:
        """Live request by id, or None if unknown or deleted."""
        model = self.session.execute(
            select(ProvisioningRequest).where(
                ProvisioningRequest.id == request_id,
                ProvisioningRequest.is_live(),
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_requests(
        self,
        request_filter: RequestFilter | None = None,
        limit: int | None = None,
    ) -> list[RequestRecord]:
        """
        List live requests matching ``request_filter``, newest first.

        Requester scoping is expressed through ``request_filter.requester_id``;
        the lifecycle service forces it for callers with role ``user``.
        """
        f = request_filter or RequestFilter()
        stmt = select(ProvisioningRequest).where(ProvisioningRequest.is_live())
        if f.status is not None:
            stmt = stmt.where(ProvisioningRequest.status == RequestStatus(f.status).value)
        if f.environment_id is not None:
            stmt = stmt.where(ProvisioningRequest.environment_id == f.environment_id)
        if f.requester_id is not None:
            stmt = stmt.where(ProvisioningRequest.requester_id == f.requester_id)
        stmt = stmt.order_by(
            ProvisioningRequest.created_at.desc(),
            ProvisioningRequest.id.desc(),
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

