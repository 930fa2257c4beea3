"""Write-side services.  Every service flushes and never commits."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.approval_service import (
    ApprovalResult,
    DocumentApprovalService,
    SideEffect,
)
from ledger_kernel.services.balance_verifier import (
    AuditFinding,
    BalanceVerifier,
    BatchVerification,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.entry_writer import LedgerEntryWriter, PostingContext
from ledger_kernel.services.exchange_rate_service import ExchangeRateService
from ledger_kernel.services.reversal_service import ReversalService

__all__ = [
    "AccountService",
    "ApprovalResult",
    "AuditFinding",
    "BalanceVerifier",
    "BaseService",
    "BatchVerification",
    "DocumentApprovalService",
    "ExchangeRateService",
    "LedgerEntryWriter",
    "PostingContext",
    "ReversalService",
    "SideEffect",
]
