"""
Sales invoice posting rule.

Line table, in emission order:

    DEBIT  COGS              qty x average_cost     per non-service item
    CREDIT Inventory         same amount            per non-service item
    DEBIT  Receivable        balance (total - paid)
    DEBIT  Cash              paid_amount            when paid > 0
    DEBIT  Discount Allowed  discount_amount        optional
    DEBIT  WHT Receivable    wht_amount             optional, grouped by account
    CREDIT Income            subtotal               grouped by account
    CREDIT Tax Payable       tax_amount             grouped by account

Revenue is the pre-tax subtotal, never the tax-inclusive total.  The
receivable is the unpaid balance, never the full total; the paid portion is
the cash debit in the same batch, so the batch balances on its own:

    receivable + cash + discount + wht == income + tax
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.documents import DocumentType, SalesInvoice
from ledger_kernel.domain.posting import PostingResult
from ledger_kernel.domain.resolution import AccountResolver, LineContext
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.values import Severity
from ledger_kernel.exceptions import InvalidDocumentError
from ledger_kernel.posting_rules.base import BasePostingRule, PostingBuilder

TAX_ACCOUNT_UNRESOLVED = "TAX_ACCOUNT_UNRESOLVED"
WHT_ACCOUNT_UNRESOLVED = "WHT_ACCOUNT_UNRESOLVED"
DISCOUNT_ACCOUNT_UNRESOLVED = "DISCOUNT_ACCOUNT_UNRESOLVED"


def allocate(total: Decimal, weights: Sequence[tuple[Hashable, Decimal]]) -> dict[Hashable, Decimal]:
    """
    Split ``total`` across keys in proportion to their weights.

    Each share is rounded to 2 places; the last key absorbs the rounding
    remainder so the shares always sum to exactly ``total``.  Keys repeat
    freely and are merged.  With zero total weight everything goes to the
    first key.
    """
    merged: dict[Hashable, Decimal] = {}
    for key, weight in weights:
        merged[key] = merged.get(key, ZERO) + weight
    if not merged:
        return {}

    keys = list(merged)
    total_weight = sum(merged.values(), ZERO)
    if total_weight == ZERO:
        return {keys[0]: round_money(total), **{k: ZERO for k in keys[1:]}}

    shares: dict[Hashable, Decimal] = {}
    allocated = ZERO
    for key in keys[:-1]:
        share = round_money(total * merged[key] / total_weight)
        shares[key] = share
        allocated += share
    shares[keys[-1]] = round_money(total) - allocated
    return shares


class SalesInvoiceRule(BasePostingRule):
    """Posting rule for approved sales invoices."""

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.SALES_INVOICE

    def compute_lines(self, invoice: SalesInvoice, resolver: AccountResolver) -> PostingResult:
        out = PostingBuilder(invoice.reference_number)
        document_line = f"invoice {invoice.reference_number}"

        if invoice.balance_amount < ZERO:
            raise InvalidDocumentError(
                invoice.reference_number,
                f"paid_amount {invoice.paid_amount} exceeds total {invoice.total_amount}",
            )

        self._cost_of_sales(invoice, resolver, out)

        if invoice.balance_amount > ZERO:
            receivable = resolver.resolve(
                AccountRole.RECEIVABLE,
                LineContext(
                    description=document_line,
                    customer=invoice.customer,
                    document_account_id=invoice.receivable_account_id,
                ),
            )
            out.debit(AccountRole.RECEIVABLE, receivable, invoice.balance_amount)

        if invoice.paid_amount > ZERO:
            cash = resolver.resolve(
                AccountRole.CASH,
                LineContext(
                    description=document_line,
                    document_account_id=invoice.payment_account_id,
                ),
            )
            out.debit(AccountRole.CASH, cash, invoice.paid_amount, "paid at posting")

        if invoice.discount_amount > ZERO:
            discount = resolver.resolve(
                AccountRole.DISCOUNT_ALLOWED,
                LineContext(
                    description=document_line,
                    document_account_id=invoice.discount_account_id,
                ),
            )
            if discount is None:
                out.skip_optional(
                    AccountRole.DISCOUNT_ALLOWED,
                    invoice.discount_amount,
                    document_line,
                    DISCOUNT_ACCOUNT_UNRESOLVED,
                )
            else:
                out.debit(AccountRole.DISCOUNT_ALLOWED, discount, invoice.discount_amount)

        if invoice.wht_amount > ZERO:
            self._grouped_tax(
                invoice,
                resolver,
                out,
                role=AccountRole.WHT_RECEIVABLE,
                header_amount=invoice.wht_amount,
                item_amounts=[(i.describe, i.wht_code, i.wht_amount) for i in invoice.items],
                fallback_account_id=invoice.wht_account_id,
                gap_code=WHT_ACCOUNT_UNRESOLVED,
                gap_severity=Severity.LOW,
            )

        self._revenue(invoice, resolver, out)

        if invoice.tax_amount > ZERO:
            self._grouped_tax(
                invoice,
                resolver,
                out,
                role=AccountRole.TAX_PAYABLE,
                header_amount=invoice.tax_amount,
                item_amounts=[(i.describe, i.tax_code, i.tax_amount) for i in invoice.items],
                fallback_account_id=invoice.tax_payable_account_id,
                gap_code=TAX_ACCOUNT_UNRESOLVED,
                gap_severity=Severity.HIGH,
            )

        return out.result()

    def _cost_of_sales(
        self, invoice: SalesInvoice, resolver: AccountResolver, out: PostingBuilder
    ) -> None:
        for item in invoice.items:
            if item.product.is_service:
                continue
            cost = item.cost_amount
            if cost == ZERO:
                continue
            context = LineContext(description=item.describe, product=item.product)
            cogs = resolver.resolve(AccountRole.COGS, context)
            inventory = resolver.resolve(AccountRole.INVENTORY, context)
            out.debit(AccountRole.COGS, cogs, cost, item.describe)
            out.credit(AccountRole.INVENTORY, inventory, cost, item.describe)

    def _revenue(
        self, invoice: SalesInvoice, resolver: AccountResolver, out: PostingBuilder
    ) -> None:
        if invoice.subtotal == ZERO:
            return

        weights: list[tuple[UUID, Decimal]] = []
        for item in invoice.items:
            account = resolver.resolve(
                AccountRole.INCOME,
                LineContext(
                    description=item.describe,
                    product=item.product,
                    document_account_id=invoice.income_account_id,
                ),
            )
            weights.append((account, item.line_subtotal))

        if not weights:
            account = resolver.resolve(
                AccountRole.INCOME,
                LineContext(
                    description=f"invoice {invoice.reference_number}",
                    document_account_id=invoice.income_account_id,
                ),
            )
            weights.append((account, invoice.subtotal))

        for account, amount in allocate(invoice.subtotal, weights).items():
            out.credit(AccountRole.INCOME, account, amount)

    def _grouped_tax(
        self,
        invoice: SalesInvoice,
        resolver: AccountResolver,
        out: PostingBuilder,
        role: AccountRole,
        header_amount: Decimal,
        item_amounts: list,
        fallback_account_id: UUID | None,
        gap_code: str,
        gap_severity: Severity,
    ) -> None:
        """Post header_amount grouped by account; item-level codes first."""
        groups: dict[UUID, Decimal] = {}
        unresolved: list[tuple[str, Decimal]] = []

        def place(description: str, tax_code, amount: Decimal) -> None:
            account = resolver.resolve(
                role,
                LineContext(
                    description=description,
                    tax_code=tax_code,
                    document_account_id=fallback_account_id,
                ),
            )
            if account is None:
                unresolved.append((description, amount))
            else:
                groups[account] = groups.get(account, ZERO) + amount

        itemized = ZERO
        for description, tax_code, amount in item_amounts:
            if amount > ZERO:
                place(description, tax_code, amount)
                itemized += amount

        remainder = header_amount - itemized
        if remainder < ZERO:
            raise InvalidDocumentError(
                invoice.reference_number,
                f"item {role.value} amounts {itemized} exceed header amount {header_amount}",
            )
        if remainder > ZERO:
            place(f"invoice {invoice.reference_number}", None, remainder)

        nature_add = out.credit if role == AccountRole.TAX_PAYABLE else out.debit
        for account, amount in groups.items():
            nature_add(role, account, amount)
        for description, amount in unresolved:
            out.skip_optional(role, amount, description, gap_code, gap_severity)
