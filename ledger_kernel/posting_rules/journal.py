"""
Manual journal and customer deposit posting rules.

Manual journals post exactly the lines the bookkeeper entered.  Customer
deposits debit the receiving asset account and credit the deposit liability.
"""

from ledger_kernel.domain.documents import CustomerDeposit, DocumentType, ManualJournal
from ledger_kernel.domain.posting import PostingResult
from ledger_kernel.domain.resolution import AccountResolver, LineContext
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import InvalidDocumentError
from ledger_kernel.posting_rules.base import BasePostingRule, PostingBuilder


class ManualJournalRule(BasePostingRule):
    """Posting rule for bookkeeper-entered journals."""

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.MANUAL_JOURNAL

    def compute_lines(self, journal: ManualJournal, resolver: AccountResolver) -> PostingResult:
        if len(journal.lines) < 2:
            raise InvalidDocumentError(
                journal.reference_number, "a journal entry needs at least two lines"
            )
        out = PostingBuilder(journal.reference_number)
        for line in journal.lines:
            out.add(
                AccountRole.MANUAL,
                line.account_id,
                line.nature,
                line.amount,
                line.memo or journal.description,
            )
        return out.result()


class CustomerDepositRule(BasePostingRule):
    """Posting rule for customer deposits received in advance."""

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.CUSTOMER_DEPOSIT

    def compute_lines(self, deposit: CustomerDeposit, resolver: AccountResolver) -> PostingResult:
        if deposit.amount <= 0:
            raise InvalidDocumentError(deposit.reference_number, "deposit amount must be positive")

        line = f"deposit {deposit.reference_number}"
        cash = resolver.resolve(
            AccountRole.CASH,
            LineContext(description=line, document_account_id=deposit.payment_account_id),
        )
        liability = resolver.resolve(
            AccountRole.CUSTOMER_DEPOSIT,
            LineContext(description=line, document_account_id=deposit.deposit_account_id),
        )
        out = PostingBuilder(deposit.reference_number)
        memo = deposit.customer.name if deposit.customer else None
        out.debit(AccountRole.CASH, cash, deposit.amount, memo)
        out.credit(AccountRole.CUSTOMER_DEPOSIT, liability, deposit.amount, memo)
        return out.result()
