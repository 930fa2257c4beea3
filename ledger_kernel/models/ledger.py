"""
Module: ledger_kernel.models.ledger
Responsibility: ORM persistence for posting batches and their ledger entries --
    the financial truth of the system.
Architecture position: Kernel > Models.  May import from db/ and domain/values.

Invariants enforced:
    - One PostingBatch per approving action; its id is the general_ledger_id
      shared by every LedgerEntry written for it.
    - At most one reversal per batch (uq_batch_reversal_of on
      reversal_of_batch_id).
    - amount >= 0 on every entry (ck_ledger_entry_amount_non_negative);
      nature carries the direction.
    - Entries are append-only.  Corrections are new reversing batches.

Failure modes:
    - IntegrityError on a second reversal of the same batch (race loser).
    - IntegrityError on a negative amount.

Audit relevance:
    Account code, name and nature are copied onto each entry at write time,
    matching the persisted shape audit and reporting readers rely on.
    reference_number groups entries for a document and is NOT unique.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TenantScoped, TrackedBase, UUIDString
from ledger_kernel.domain.values import Nature


class PostingBatch(TenantScoped, TrackedBase):
    """
    Header for one atomic economic event.

    Contract:
        Created exactly once per approving action and never edited.  The
        batch id is the general_ledger_id of its entries.

    Guarantees:
        - reversal_of_batch_id, when set, points at the batch this one
          compensates; the unique constraint allows one reversal only.
    """

    __tablename__ = "posting_batches"

    __table_args__ = (
        UniqueConstraint("reversal_of_batch_id", name="uq_batch_reversal_of"),
        Index("idx_batch_tenant_date", "tenant_id", "transaction_date"),
        Index("idx_batch_tenant_reference", "tenant_id", "reference_number"),
    )

    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)

    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(15, 6), nullable=False)

    document_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reversal_of_batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("posting_batches.id"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entries: Mapped[list[LedgerEntry]] = relationship(
        back_populates="batch",
        order_by="LedgerEntry.line_no",
    )

    def __repr__(self) -> str:
        return f"<PostingBatch {self.id} {self.reference_number}>"

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_batch_id is not None


class LedgerEntry(TenantScoped, TrackedBase):
    """
    One persisted ledger line.

    Guarantees:
        - amount is in document currency, >= 0, 2 decimal places.
        - exactly one of equivalent_debit_amount / equivalent_credit_amount
          is non-zero (or both zero for a zero line), matching nature.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_ledger_entry_amount_non_negative"),
        Index("idx_entry_tenant_reference", "tenant_id", "reference_number"),
        Index("idx_entry_tenant_account", "tenant_id", "account_id"),
        Index("idx_entry_general_ledger_id", "general_ledger_id"),
    )

    general_ledger_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("posting_batches.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    account_code: Mapped[str] = mapped_column(String(50), nullable=False)

    account_name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_nature: Mapped[Nature] = mapped_column(String(10), nullable=False)

    account_role: Mapped[str | None] = mapped_column(String(40), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(15, 6), nullable=False)

    equivalent_debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )

    equivalent_credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )

    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)

    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    batch: Mapped[PostingBatch] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.account_code} {self.account_nature} "
            f"{self.amount}>"
        )

    @property
    def is_debit(self) -> bool:
        return self.account_nature == Nature.DEBIT
