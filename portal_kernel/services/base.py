"""
BaseService -- shared plumbing for kernel services that write.

Responsibility:
    Holds the caller's ``Session`` and ``Clock`` and issues the guarded
    (compare-and-set) UPDATEs that every status change goes through.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Services flush; they never commit or roll back.  ProvisioningPortal
      (or a test) owns the transaction, which is what makes a decision and
      its request status change one unit.
    - A guarded UPDATE reports success only when exactly one row matched
      its WHERE clause.  Zero rows means a concurrent transaction moved the
      row first; callers turn that into an InvalidState error.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy import Update
from sqlalchemy.orm import Session

from portal_kernel.db.base import Base
from portal_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel write services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide general read queries -- those belong in
          ``portal_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    def _guarded_update(self, stmt: Update) -> bool:
        """Execute a conditional UPDATE; True if exactly one row changed.

        The identity map is not synchronized; callers refresh the model
        they hold.
        """
        result = self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
