"""
Module: ledger_kernel.models.document
Responsibility: Persisted status of a source document, used as the
    serialization point for approvals.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One record per (tenant, document_type, reference_number).
    - Status moves draft/sent/overdue -> approved through a single conditional
      UPDATE, so two concurrent approvals of one document cannot both post.
    - posted_batch_id is set in the same transaction as the batch it names.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScoped, TrackedBase, UUIDString


class DocumentStatus(str, Enum):
    """Lifecycle status of a source document."""

    DRAFT = "draft"
    SENT = "sent"
    OVERDUE = "overdue"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"
    REVERSED = "reversed"


# Statuses from which approval may post to the ledger
APPROVABLE_STATUSES: frozenset[DocumentStatus] = frozenset({
    DocumentStatus.DRAFT,
    DocumentStatus.SENT,
    DocumentStatus.OVERDUE,
})

# Statuses from which void may reverse the posted batch
VOIDABLE_STATUSES: frozenset[DocumentStatus] = frozenset({
    DocumentStatus.APPROVED,
    DocumentStatus.PAID,
})


class DocumentRecord(TenantScoped, TrackedBase):
    """Status row for one source document."""

    __tablename__ = "documents"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "document_type",
            "reference_number",
            name="uq_document_tenant_type_reference",
        ),
    )

    document_type: Mapped[str] = mapped_column(String(50), nullable=False)

    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[DocumentStatus] = mapped_column(
        String(20),
        default=DocumentStatus.DRAFT.value,
        nullable=False,
    )

    posted_batch_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<DocumentRecord {self.document_type} {self.reference_number} {self.status}>"
