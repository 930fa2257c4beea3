"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, LinkedAccount
from ledger_kernel.models.document import DocumentRecord, DocumentStatus
from ledger_kernel.models.exchange_rate import ExchangeRate
from ledger_kernel.models.ledger import LedgerEntry, PostingBatch
from ledger_kernel.models.tenant import Tenant

__all__ = [
    "Account",
    "DocumentRecord",
    "DocumentStatus",
    "ExchangeRate",
    "LedgerEntry",
    "LinkedAccount",
    "PostingBatch",
    "Tenant",
]
