"""
Account roles -- the semantic slot a posting line fills.

Posting rules speak in roles ("the receivable for this invoice"); Account
Resolution turns a role plus a document line into a concrete account id.

Mandatory roles fail loudly when unresolved.  Optional roles resolve to
None and the posting rule omits the line.
"""

from enum import Enum


class AccountRole(str, Enum):
    """Semantic account roles used by posting rules and linked accounts."""

    RECEIVABLE = "receivables"
    INCOME = "sales_revenue"
    COGS = "cost_of_goods_sold"
    INVENTORY = "inventory"
    TAX_PAYABLE = "tax_payable"
    WHT_RECEIVABLE = "withholding_tax_receivable"
    DISCOUNT_ALLOWED = "discounts_allowed"
    CASH = "cash"
    CUSTOMER_DEPOSIT = "customer_deposits"
    LOYALTY = "loyalty_cards"
    ADJUSTMENT = "stock_adjustment"
    ADJUSTMENT_OFFSET = "stock_adjustment_offset"
    MANUAL = "manual"

    @property
    def is_mandatory(self) -> bool:
        return self not in OPTIONAL_ROLES


OPTIONAL_ROLES: frozenset[AccountRole] = frozenset({
    AccountRole.DISCOUNT_ALLOWED,
    AccountRole.TAX_PAYABLE,
    AccountRole.WHT_RECEIVABLE,
})
