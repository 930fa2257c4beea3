"""
BaseService -- common constructor for the write-side services.

Responsibility:
    Every service receives the caller's SQLAlchemy ``Session`` and persists
    with ``session.flush()`` inside it, never ``session.commit()``.  The
    caller (request handler, ``session_scope()``, or test harness) owns the
    transaction, so a posting batch and the document status change it
    belongs to commit or roll back together.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Failure modes:
    - A subclass that commits breaks the all-or-nothing guarantee of
      document approval.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for write-side services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide report queries; those live in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
