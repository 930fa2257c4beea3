"""Read-only query selectors."""

from ledger_kernel.selectors.account_selector import AccountNode, AccountSelector
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import (
    AccountBalance,
    LedgerLine,
    LedgerSelector,
    TrialBalanceRow,
)

__all__ = [
    "AccountBalance",
    "AccountNode",
    "AccountSelector",
    "BaseSelector",
    "LedgerLine",
    "LedgerSelector",
    "TrialBalanceRow",
]
