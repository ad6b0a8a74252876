"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback it.  The caller
      (``session_scope()``, an orchestration service, or a test) owns
      commit/rollback.  Savepoints opened with ``session.begin_nested()``
      are the only exception, and are always closed before returning.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from couponbook_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the caller's transaction.

    Non-goals:
        - Does NOT provide query-only (read) methods; those belong in
          ``couponbook_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
