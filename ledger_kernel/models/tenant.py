"""
Module: ledger_kernel.models.tenant
Responsibility: The owning company of every ledger row.  Holds the base
    currency all equivalent amounts are expressed in.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Tenant(TrackedBase):
    """A company using the ledger."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    base_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    def __repr__(self) -> str:
        return f"<Tenant {self.name} ({self.base_currency})>"
