"""
AccountSelector -- chart-of-accounts reads for one tenant.

Loads the tenant-level linked accounts that back the last Account
Resolution tier, and builds a ready AccountResolver from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.resolution import AccountResolver
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.models.account import Account, LinkedAccount
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountNode:
    """One account in the hierarchy."""

    account_id: UUID
    code: str
    name: str
    category: str
    nature: str
    parent_id: UUID | None
    is_active: bool


class AccountSelector(BaseSelector[Account]):

    def linked_accounts(self, tenant_id: UUID) -> dict[AccountRole, UUID]:
        """Tenant default account per role.  Unknown role names are ignored."""
        tenant_id = validate_tenant_id(tenant_id)
        rows = self.session.execute(
            select(LinkedAccount.role, LinkedAccount.account_id).where(
                LinkedAccount.tenant_id == tenant_id
            )
        ).all()
        known = {role.value for role in AccountRole}
        return {AccountRole(role): account_id for role, account_id in rows if role in known}

    def resolver_for(self, tenant_id: UUID) -> AccountResolver:
        return AccountResolver(self.linked_accounts(tenant_id))

    def chart(self, tenant_id: UUID) -> list[AccountNode]:
        """All accounts of the tenant ordered by code."""
        tenant_id = validate_tenant_id(tenant_id)
        rows = self.session.execute(
            select(Account).where(Account.tenant_id == tenant_id).order_by(Account.code)
        ).scalars().all()
        return [
            AccountNode(
                account_id=a.id,
                code=a.code,
                name=a.name,
                category=a.category,
                nature=a.nature,
                parent_id=a.parent_id,
                is_active=a.is_active,
            )
            for a in rows
        ]

    def children_of(self, tenant_id: UUID, parent_id: UUID) -> list[AccountNode]:
        return [node for node in self.chart(tenant_id) if node.parent_id == parent_id]
