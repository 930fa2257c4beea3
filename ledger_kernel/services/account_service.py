"""
AccountService -- tenants, chart of accounts and tenant default accounts.

Responsibility:
    Creates tenants and accounts, maintains the parent/child hierarchy and
    binds the tenant-level default account for each account role (the last
    tier of Account Resolution).

Invariants enforced:
    - Account codes are unique per tenant.
    - The hierarchy is a forest: a parent assignment that would make an
      account its own ancestor is rejected before anything is written.
    - Parents and linked accounts belong to the same tenant as the child.

Failure modes:
    - DuplicateAccountCodeError, AccountNotFoundError,
      AccountHierarchyCycleError, InvalidCurrencyError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import validate_currency
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.domain.values import AccountCategory, Nature
from ledger_kernel.exceptions import (
    AccountHierarchyCycleError,
    AccountNotFoundError,
    DuplicateAccountCodeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, LinkedAccount
from ledger_kernel.models.tenant import Tenant
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")


class AccountService(BaseService[Account]):
    """Chart of accounts maintenance."""

    def create_tenant(self, name: str, base_currency: str, actor_id: UUID) -> Tenant:
        tenant = Tenant(
            name=name,
            base_currency=validate_currency(base_currency),
            created_by_id=actor_id,
        )
        self.session.add(tenant)
        self.session.flush()
        logger.info(
            "tenant_created",
            extra={"tenant_id": str(tenant.id), "base_currency": tenant.base_currency},
        )
        return tenant

    def create_account(
        self,
        tenant_id: UUID,
        code: str,
        name: str,
        category: AccountCategory,
        actor_id: UUID,
        nature: Nature | None = None,
        parent_id: UUID | None = None,
    ) -> Account:
        """
        Create an account.

        ``nature`` defaults to the category's normal side (debit for
        assets and expenses, credit otherwise).

        Raises:
            DuplicateAccountCodeError: If the code exists in the tenant.
            AccountNotFoundError: If parent_id is not an account of the tenant.
        """
        tenant_id = validate_tenant_id(tenant_id)
        category = AccountCategory(category)

        existing = self.session.execute(
            select(Account.id).where(Account.tenant_id == tenant_id, Account.code == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateAccountCodeError(code, str(tenant_id))

        if parent_id is not None:
            self.get_account(tenant_id, parent_id)

        account = Account(
            tenant_id=tenant_id,
            code=code,
            name=name,
            category=category.value,
            nature=Nature(nature or category.default_nature).value,
            parent_id=parent_id,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_created",
            extra={
                "tenant_id": str(tenant_id),
                "account_id": str(account.id),
                "code": code,
                "category": category.value,
            },
        )
        return account

    def get_account(self, tenant_id: UUID, account_id: UUID) -> Account:
        account = self.session.execute(
            select(Account).where(Account.tenant_id == tenant_id, Account.id == account_id)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id), str(tenant_id))
        return account

    def set_parent(
        self,
        tenant_id: UUID,
        account_id: UUID,
        parent_id: UUID | None,
        actor_id: UUID,
    ) -> Account:
        """
        Move ``account_id`` under ``parent_id`` (None detaches it).

        Raises:
            AccountHierarchyCycleError: If parent_id is the account itself
                or one of its descendants.
        """
        tenant_id = validate_tenant_id(tenant_id)
        account = self.get_account(tenant_id, account_id)

        if parent_id is not None:
            self.get_account(tenant_id, parent_id)
            if self._creates_cycle(tenant_id, account_id, parent_id):
                logger.warning(
                    "account_hierarchy_cycle_rejected",
                    extra={"account_id": str(account_id), "parent_id": str(parent_id)},
                )
                raise AccountHierarchyCycleError(str(account_id), str(parent_id))

        account.parent_id = parent_id
        account.updated_by_id = actor_id
        self.session.flush()
        return account

    def deactivate_account(self, tenant_id: UUID, account_id: UUID, actor_id: UUID) -> Account:
        account = self.get_account(validate_tenant_id(tenant_id), account_id)
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_id": str(account_id)})
        return account

    def bind_linked_account(
        self,
        tenant_id: UUID,
        role: AccountRole,
        account_id: UUID,
        actor_id: UUID,
    ) -> LinkedAccount:
        """Set (or replace) the tenant default account for ``role``."""
        tenant_id = validate_tenant_id(tenant_id)
        role = AccountRole(role)
        self.get_account(tenant_id, account_id)

        link = self.session.execute(
            select(LinkedAccount).where(
                LinkedAccount.tenant_id == tenant_id,
                LinkedAccount.role == role.value,
            )
        ).scalar_one_or_none()
        if link is None:
            link = LinkedAccount(
                tenant_id=tenant_id,
                role=role.value,
                account_id=account_id,
                created_by_id=actor_id,
            )
            self.session.add(link)
        else:
            link.account_id = account_id
            link.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "linked_account_bound",
            extra={"role": role.value, "account_id": str(account_id)},
        )
        return link

    def _creates_cycle(self, tenant_id: UUID, account_id: UUID, parent_id: UUID) -> bool:
        """Walk up from parent_id; reaching account_id means a cycle."""
        parents = dict(
            self.session.execute(
                select(Account.id, Account.parent_id).where(Account.tenant_id == tenant_id)
            ).all()
        )
        seen: set[UUID] = set()
        current: UUID | None = parent_id
        while current is not None:
            if current == account_id:
                return True
            if current in seen:
                # Pre-existing cycle not involving account_id
                return True
            seen.add(current)
            current = parents.get(current)
        return False
