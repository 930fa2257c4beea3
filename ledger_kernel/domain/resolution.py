"""
AccountResolver -- role + document line context -> concrete account id.

Responsibility:
    Applies the override hierarchy, first non-null wins:

        1. line-item level   (product account, or tax code account)
        2. category level    (product category default)
        3. customer level    (receivable role only)
        4. document level    (fallback field on the document)
        5. tenant level      (LinkedAccount default for the role)

Architecture position:
    Kernel > Domain -- pure functional core.  The tenant-level defaults are
    loaded by the caller (LinkedAccountSelector) and passed in.

Invariants enforced:
    - Mandatory roles (COGS, Inventory, Income, Receivable and the tender
      roles) never resolve silently to nothing: they raise
      MissingAccountConfigurationError naming the role and the line.
    - Optional roles (Discount, Tax, WHT) return None; the posting rule
      omits the line.

Failure modes:
    - MissingAccountConfigurationError for an unresolved mandatory role.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from uuid import UUID

from ledger_kernel.domain.documents import CustomerRef, ProductRef, TaxCodeRef
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import MissingAccountConfigurationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("domain.resolution")

_PRODUCT_FIELDS: dict[AccountRole, str] = {
    AccountRole.COGS: "cogs_account_id",
    AccountRole.INVENTORY: "inventory_account_id",
    AccountRole.ADJUSTMENT: "inventory_account_id",
    AccountRole.INCOME: "income_account_id",
}

_TAX_CODE_ROLES = frozenset({AccountRole.TAX_PAYABLE, AccountRole.WHT_RECEIVABLE})


@dataclass(frozen=True)
class LineContext:
    """Everything Account Resolution may consult for one line."""

    description: str
    product: ProductRef | None = None
    customer: CustomerRef | None = None
    tax_code: TaxCodeRef | None = None
    item_account_id: UUID | None = None
    document_account_id: UUID | None = None


class AccountResolver:
    """
    Resolves account roles for one tenant.

    Contract:
        ``resolve(role, context)`` returns a UUID for every mandatory role or
        raises; for optional roles it may return None.

    Non-goals:
        - Does NOT check that the account exists or is active; the entry
          writer does that against the tenant's chart of accounts.
    """

    def __init__(self, tenant_defaults: Mapping[AccountRole, UUID] | None = None):
        self._tenant_defaults = dict(tenant_defaults or {})

    def candidates(self, role: AccountRole, context: LineContext) -> list[tuple[str, UUID | None]]:
        """Return (tier, account_id) pairs in precedence order."""
        tiers: list[tuple[str, UUID | None]] = []

        if role in _TAX_CODE_ROLES:
            tiers.append(("item", context.tax_code.account_id if context.tax_code else None))
        else:
            tiers.append(("item", context.item_account_id))
            product_field = _PRODUCT_FIELDS.get(role)
            if product_field is not None and context.product is not None:
                tiers.append(("item", getattr(context.product, product_field)))
                category = context.product.category
                tiers.append(("category", getattr(category, product_field) if category else None))

        if role == AccountRole.RECEIVABLE and context.customer is not None:
            tiers.append(("customer", context.customer.receivable_account_id))

        tiers.append(("document", context.document_account_id))
        tiers.append(("tenant", self._tenant_defaults.get(role)))
        return tiers

    def resolve(self, role: AccountRole, context: LineContext) -> UUID | None:
        """
        Resolve ``role`` for ``context``.

        Returns:
            The first non-null account id in precedence order, or None for an
            unresolved optional role.

        Raises:
            MissingAccountConfigurationError: If a mandatory role is unresolved.
        """
        for tier, account_id in self.candidates(role, context):
            if account_id is not None:
                logger.debug(
                    "account_resolved",
                    extra={
                        "role": role.value,
                        "tier": tier,
                        "account_id": str(account_id),
                        "line": context.description,
                    },
                )
                return account_id

        if role.is_mandatory:
            logger.warning(
                "mandatory_role_unresolved",
                extra={"role": role.value, "line": context.description},
            )
            raise MissingAccountConfigurationError(role.value, context.description)
        return None
