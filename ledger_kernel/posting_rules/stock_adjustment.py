"""
Stock adjustment and physical inventory posting rules.

Stock adjustment, one direction per document:

    IN:  DEBIT adjustment account / CREDIT corresponding account
    OUT: DEBIT corresponding account / CREDIT adjustment account

Amount per item is quantity x unit_cost.

Physical inventory, direction per item from the count variance:

    gain: DEBIT inventory IN account / CREDIT IN corresponding account
    loss: DEBIT OUT corresponding account / CREDIT inventory OUT account

Amount per item is |counted - current| x unit_cost.
"""

from ledger_kernel.domain.documents import (
    AdjustmentDirection,
    DocumentType,
    PhysicalInventory,
    StockAdjustment,
)
from ledger_kernel.domain.posting import PostingResult
from ledger_kernel.domain.resolution import AccountResolver, LineContext
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import InvalidDocumentError
from ledger_kernel.posting_rules.base import BasePostingRule, PostingBuilder


class StockAdjustmentRule(BasePostingRule):
    """Posting rule for inventory count corrections."""

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.STOCK_ADJUSTMENT

    def compute_lines(self, adjustment: StockAdjustment, resolver: AccountResolver) -> PostingResult:
        if not adjustment.items:
            raise InvalidDocumentError(adjustment.reference_number, "adjustment has no items")

        out = PostingBuilder(adjustment.reference_number)
        for item in adjustment.items:
            if item.amount == 0:
                continue
            adjustment_account = resolver.resolve(
                AccountRole.ADJUSTMENT,
                LineContext(
                    description=item.describe,
                    product=item.product,
                    item_account_id=item.account_id,
                    document_account_id=adjustment.account_id,
                ),
            )
            offset_account = resolver.resolve(
                AccountRole.ADJUSTMENT_OFFSET,
                LineContext(
                    description=item.describe,
                    item_account_id=item.corresponding_account_id,
                    document_account_id=adjustment.corresponding_account_id,
                ),
            )
            if adjustment.direction == AdjustmentDirection.IN:
                out.debit(AccountRole.ADJUSTMENT, adjustment_account, item.amount, item.describe)
                out.credit(AccountRole.ADJUSTMENT_OFFSET, offset_account, item.amount, item.describe)
            else:
                out.debit(AccountRole.ADJUSTMENT_OFFSET, offset_account, item.amount, item.describe)
                out.credit(AccountRole.ADJUSTMENT, adjustment_account, item.amount, item.describe)
        return out.result()


class PhysicalInventoryRule(BasePostingRule):
    """
    Posting rule for physical stock counts.

    The IN and OUT account pairs come from the count document, with the
    tenant's linked adjustment accounts as fallback.  Product accounts are
    not consulted.  Items with no variance post nothing.
    """

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.PHYSICAL_INVENTORY

    def compute_lines(self, count: PhysicalInventory, resolver: AccountResolver) -> PostingResult:
        if not count.items:
            raise InvalidDocumentError(count.reference_number, "count has no items")

        out = PostingBuilder(count.reference_number)
        for item in count.items:
            if item.amount == 0:
                continue
            gain = item.delta_quantity > 0
            memo = f"{'gain' if gain else 'loss'} {item.describe}"
            inventory_account = resolver.resolve(
                AccountRole.ADJUSTMENT,
                LineContext(
                    description=item.describe,
                    document_account_id=(
                        count.inventory_in_account_id if gain else count.inventory_out_account_id
                    ),
                ),
            )
            corresponding_account = resolver.resolve(
                AccountRole.ADJUSTMENT_OFFSET,
                LineContext(
                    description=item.describe,
                    document_account_id=(
                        count.inventory_in_corresponding_account_id
                        if gain
                        else count.inventory_out_corresponding_account_id
                    ),
                ),
            )
            if gain:
                out.debit(AccountRole.ADJUSTMENT, inventory_account, item.amount, memo)
                out.credit(AccountRole.ADJUSTMENT_OFFSET, corresponding_account, item.amount, memo)
            else:
                out.debit(AccountRole.ADJUSTMENT_OFFSET, corresponding_account, item.amount, memo)
                out.credit(AccountRole.ADJUSTMENT, inventory_account, item.amount, memo)
        return out.result()
