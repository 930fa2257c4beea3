"""
Receipt posting rule.

    DEBIT  Customer Deposit   deposit_amount                      optional tender
    DEBIT  Loyalty            loyalty_points / redemption_rate    optional tender
    DEBIT  Cash               payment - deposit - loyalty value   payment type
    CREDIT Receivable         payment_amount
"""

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.documents import DocumentType, Receipt
from ledger_kernel.domain.money import points_to_currency
from ledger_kernel.domain.posting import PostingResult
from ledger_kernel.domain.resolution import AccountResolver, LineContext
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import InvalidDocumentError
from ledger_kernel.posting_rules.base import BasePostingRule, PostingBuilder


class ReceiptRule(BasePostingRule):
    """Posting rule for customer payments against an invoice."""

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.RECEIPT

    def compute_lines(self, receipt: Receipt, resolver: AccountResolver) -> PostingResult:
        if receipt.payment_amount <= ZERO:
            raise InvalidDocumentError(receipt.reference_number, "payment_amount must be positive")

        loyalty_value = points_to_currency(
            receipt.loyalty_points, receipt.loyalty_redemption_rate
        )
        cash_amount = receipt.payment_amount - receipt.deposit_amount - loyalty_value
        if cash_amount < ZERO:
            raise InvalidDocumentError(
                receipt.reference_number,
                f"deposit {receipt.deposit_amount} and loyalty value {loyalty_value} "
                f"exceed payment {receipt.payment_amount}",
            )

        out = PostingBuilder(receipt.reference_number)
        line = f"receipt {receipt.reference_number}"

        if receipt.deposit_amount > ZERO:
            deposit = resolver.resolve(
                AccountRole.CUSTOMER_DEPOSIT,
                LineContext(description=line, document_account_id=receipt.deposit_account_id),
            )
            out.debit(AccountRole.CUSTOMER_DEPOSIT, deposit, receipt.deposit_amount, "deposit tender")

        if loyalty_value > ZERO:
            loyalty = resolver.resolve(
                AccountRole.LOYALTY,
                LineContext(description=line, document_account_id=receipt.loyalty_account_id),
            )
            out.debit(
                AccountRole.LOYALTY,
                loyalty,
                loyalty_value,
                f"{receipt.loyalty_points} points redeemed",
            )

        if cash_amount > ZERO:
            cash = resolver.resolve(
                AccountRole.CASH,
                LineContext(description=line, document_account_id=receipt.payment_account_id),
            )
            out.debit(AccountRole.CASH, cash, cash_amount, "payment tender")

        receivable = resolver.resolve(
            AccountRole.RECEIVABLE,
            LineContext(
                description=line,
                customer=receipt.customer,
                document_account_id=receipt.receivable_account_id,
            ),
        )
        out.credit(AccountRole.RECEIVABLE, receivable, receipt.payment_amount)
        return out.result()
