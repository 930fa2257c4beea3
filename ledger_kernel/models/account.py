"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the tenant-scoped chart of accounts and
    the tenant-level linked (default) account per role.
Architecture position: Kernel > Models.  May import from db/ and domain/values.

Invariants enforced:
    - Account.code is unique per tenant (uq_account_tenant_code), never
      globally: two tenants may use identical codes.
    - LinkedAccount has at most one account per (tenant, role).
    - parent_id forms a tree; acyclicity is checked by AccountService on
      every parent assignment.

Failure modes:
    - IntegrityError on duplicate (tenant_id, code) if the service-level
      DuplicateAccountCodeError check is bypassed.

Audit relevance:
    LedgerEntry rows denormalize code, name and nature at posting time, so
    renaming an account never alters the meaning of historical batches.
"""

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScoped, TrackedBase, UUIDString
from ledger_kernel.domain.values import AccountCategory, Nature


class Account(TenantScoped, TrackedBase):
    """
    Chart of Accounts entry.

    Contract:
        (tenant_id, code) is unique.  nature is the side that increases the
        account's balance.

    Guarantees:
        - category is one of ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE.
        - nature is DEBIT or CREDIT.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_account_tenant_code"),
        Index("idx_account_tenant_category", "tenant_id", "category"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    category: Mapped[AccountCategory] = mapped_column(String(20), nullable=False)

    nature: Mapped[Nature] = mapped_column(String(10), nullable=False)

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"


class LinkedAccount(TenantScoped, TrackedBase):
    """Tenant-level default account for an account role."""

    __tablename__ = "linked_accounts"

    __table_args__ = (
        UniqueConstraint("tenant_id", "role", name="uq_linked_account_tenant_role"),
    )

    role: Mapped[str] = mapped_column(String(40), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<LinkedAccount {self.role} -> {self.account_id}>"
