"""Posting rules for transforming documents into posting lines.

Importing this package registers every built-in rule in the default registry.
"""

from ledger_kernel.posting_rules.base import BasePostingRule, PostingBuilder, PostingRule
from ledger_kernel.posting_rules.journal import CustomerDepositRule, ManualJournalRule
from ledger_kernel.posting_rules.receipt import ReceiptRule
from ledger_kernel.posting_rules.registry import (
    PostingRuleRegistry,
    get_default_registry,
    register_rule,
)
from ledger_kernel.posting_rules.sales_invoice import SalesInvoiceRule
from ledger_kernel.posting_rules.stock_adjustment import PhysicalInventoryRule, StockAdjustmentRule

for _rule in (
    SalesInvoiceRule(),
    ReceiptRule(),
    StockAdjustmentRule(),
    PhysicalInventoryRule(),
    ManualJournalRule(),
    CustomerDepositRule(),
):
    register_rule(_rule)


def build_entries(document, resolver=None):
    """Build posting lines for any Document with the default registry."""
    return get_default_registry().build_entries(document, resolver)


__all__ = [
    "BasePostingRule",
    "CustomerDepositRule",
    "ManualJournalRule",
    "PhysicalInventoryRule",
    "PostingBuilder",
    "PostingRule",
    "PostingRuleRegistry",
    "ReceiptRule",
    "SalesInvoiceRule",
    "StockAdjustmentRule",
    "build_entries",
    "get_default_registry",
    "register_rule",
]
