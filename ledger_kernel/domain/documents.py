"""
Documents -- the source business events that produce postings.

Responsibility:
    Immutable inputs to the posting rule set.  ``Document`` is a tagged union
    over the document variants; each variant carries a ``document_type`` tag
    and the fields its rule needs.  Reference records (product, category,
    customer, tax code) carry the account ids Account Resolution reads.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Services build these
    from whatever the host application stores; the kernel never loads
    products or customers itself.

Invariants enforced:
    - Monetary fields are Decimal and non-negative (validate_document).
    - tenant_id is present on every variant.

Non-goals:
    - Does NOT persist documents.  Only status is persisted
      (models.document.DocumentRecord).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Protocol, Union
from uuid import UUID, uuid4

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.values import Nature
from ledger_kernel.exceptions import InvalidDocumentError

ZERO = Decimal("0")

# Points per currency unit when a receipt does not say otherwise
DEFAULT_LOYALTY_REDEMPTION_RATE = Decimal("100")


class DocumentType(str, Enum):
    """Tag of each Document variant."""

    SALES_INVOICE = "sales_invoice"
    RECEIPT = "receipt"
    STOCK_ADJUSTMENT = "stock_adjustment"
    PHYSICAL_INVENTORY = "physical_inventory"
    MANUAL_JOURNAL = "journal_entry"
    CUSTOMER_DEPOSIT = "customer_deposit"


# =============================================================================
# Reference records
# =============================================================================


@dataclass(frozen=True)
class CategoryRef:
    """Product category defaults."""

    name: str
    cogs_account_id: UUID | None = None
    inventory_account_id: UUID | None = None
    income_account_id: UUID | None = None


@dataclass(frozen=True)
class ProductRef:
    """Product with its own account overrides and optional category."""

    name: str
    is_service: bool = False
    cogs_account_id: UUID | None = None
    inventory_account_id: UUID | None = None
    income_account_id: UUID | None = None
    category: CategoryRef | None = None


@dataclass(frozen=True)
class CustomerRef:
    """Customer with its default receivable account."""

    name: str
    receivable_account_id: UUID | None = None


@dataclass(frozen=True)
class TaxCodeRef:
    """Tax or withholding-tax code and the account it posts to."""

    code: str
    account_id: UUID | None = None


# =============================================================================
# Shared contract
# =============================================================================


class PostingDocument(Protocol):
    """What every Document variant exposes to the posting pipeline."""

    document_type: ClassVar[DocumentType]
    tenant_id: UUID
    document_id: UUID
    reference_number: str
    transaction_date: date
    currency: str
    exchange_rate: Decimal | None


# =============================================================================
# Sales invoice
# =============================================================================


@dataclass(frozen=True)
class SalesInvoiceItem:
    """One invoice line."""

    line_ref: str
    product: ProductRef
    quantity: Decimal
    unit_price: Decimal
    average_cost: Decimal = ZERO
    tax_amount: Decimal = ZERO
    tax_code: TaxCodeRef | None = None
    wht_amount: Decimal = ZERO
    wht_code: TaxCodeRef | None = None

    @property
    def line_subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def cost_amount(self) -> Decimal:
        return round_money(self.quantity * self.average_cost)

    @property
    def describe(self) -> str:
        return f"line {self.line_ref} ({self.product.name})"


@dataclass(frozen=True)
class SalesInvoice:
    """
    Approved sales invoice.

    Guarantees:
        - total_amount = subtotal - discount + tax - wht.
        - balance_amount = total_amount - paid_amount.
    """

    document_type: ClassVar[DocumentType] = DocumentType.SALES_INVOICE

    tenant_id: UUID
    reference_number: str
    transaction_date: date
    currency: str
    subtotal: Decimal
    items: tuple[SalesInvoiceItem, ...] = ()
    customer: CustomerRef | None = None
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    wht_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    exchange_rate: Decimal | None = None
    # Document-level fallback accounts
    receivable_account_id: UUID | None = None
    income_account_id: UUID | None = None
    tax_payable_account_id: UUID | None = None
    discount_account_id: UUID | None = None
    wht_account_id: UUID | None = None
    payment_account_id: UUID | None = None
    document_id: UUID = field(default_factory=uuid4)

    @property
    def total_amount(self) -> Decimal:
        return self.subtotal - self.discount_amount + self.tax_amount - self.wht_amount

    @property
    def balance_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount


# =============================================================================
# Receipt (payment against an invoice)
# =============================================================================


@dataclass(frozen=True)
class Receipt:
    """
    Customer payment against an invoice.

    The payment is tendered from up to three sources: the customer's deposit
    balance, loyalty points, and a payment type (cash, bank, card).  The
    payment-type tender is whatever the first two do not cover.
    """

    document_type: ClassVar[DocumentType] = DocumentType.RECEIPT

    tenant_id: UUID
    reference_number: str
    transaction_date: date
    currency: str
    payment_amount: Decimal
    customer: CustomerRef | None = None
    deposit_amount: Decimal = ZERO
    loyalty_points: Decimal = ZERO
    loyalty_redemption_rate: Decimal = DEFAULT_LOYALTY_REDEMPTION_RATE
    exchange_rate: Decimal | None = None
    receivable_account_id: UUID | None = None
    payment_account_id: UUID | None = None
    deposit_account_id: UUID | None = None
    loyalty_account_id: UUID | None = None
    document_id: UUID = field(default_factory=uuid4)


# =============================================================================
# Stock adjustment
# =============================================================================


class AdjustmentDirection(str, Enum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class StockAdjustmentItem:
    line_ref: str
    product: ProductRef
    quantity: Decimal
    unit_cost: Decimal
    account_id: UUID | None = None
    corresponding_account_id: UUID | None = None

    @property
    def amount(self) -> Decimal:
        return round_money(self.quantity * self.unit_cost)

    @property
    def describe(self) -> str:
        return f"line {self.line_ref} ({self.product.name})"


@dataclass(frozen=True)
class StockAdjustment:
    """Inventory count correction.

    IN debits the adjustment (inventory) account and credits the
    corresponding account; OUT does the opposite.
    """

    document_type: ClassVar[DocumentType] = DocumentType.STOCK_ADJUSTMENT

    tenant_id: UUID
    reference_number: str
    transaction_date: date
    currency: str
    direction: AdjustmentDirection
    items: tuple[StockAdjustmentItem, ...]
    exchange_rate: Decimal | None = None
    account_id: UUID | None = None
    corresponding_account_id: UUID | None = None
    document_id: UUID = field(default_factory=uuid4)


# =============================================================================
# Physical inventory count
# =============================================================================


@dataclass(frozen=True)
class PhysicalInventoryItem:
    """Counted quantity of one product against the quantity on record."""

    line_ref: str
    product: ProductRef
    current_quantity: Decimal
    counted_quantity: Decimal
    unit_cost: Decimal

    @property
    def delta_quantity(self) -> Decimal:
        return self.counted_quantity - self.current_quantity

    @property
    def amount(self) -> Decimal:
        return round_money(abs(self.delta_quantity) * self.unit_cost)

    @property
    def describe(self) -> str:
        return f"line {self.line_ref} ({self.product.name})"


@dataclass(frozen=True)
class PhysicalInventory:
    """
    Stock count whose variances post as one batch.

    A gain (counted > current) debits the IN account and credits the IN
    corresponding account.  A loss debits the OUT corresponding account and
    credits the OUT account.  One count may carry both.
    """

    document_type: ClassVar[DocumentType] = DocumentType.PHYSICAL_INVENTORY

    tenant_id: UUID
    reference_number: str
    transaction_date: date
    currency: str
    items: tuple[PhysicalInventoryItem, ...]
    exchange_rate: Decimal | None = None
    inventory_in_account_id: UUID | None = None
    inventory_in_corresponding_account_id: UUID | None = None
    inventory_out_account_id: UUID | None = None
    inventory_out_corresponding_account_id: UUID | None = None
    document_id: UUID = field(default_factory=uuid4)


# =============================================================================
# Manual journal
# =============================================================================


@dataclass(frozen=True)
class ManualJournalLine:
    account_id: UUID
    nature: Nature
    amount: Decimal
    memo: str | None = None


@dataclass(frozen=True)
class ManualJournal:
    """Journal entry keyed in by a bookkeeper."""

    document_type: ClassVar[DocumentType] = DocumentType.MANUAL_JOURNAL

    tenant_id: UUID
    reference_number: str
    transaction_date: date
    currency: str
    lines: tuple[ManualJournalLine, ...]
    exchange_rate: Decimal | None = None
    description: str | None = None
    document_id: UUID = field(default_factory=uuid4)


# =============================================================================
# Customer deposit
# =============================================================================


@dataclass(frozen=True)
class CustomerDeposit:
    """Money received from a customer ahead of any invoice."""

    document_type: ClassVar[DocumentType] = DocumentType.CUSTOMER_DEPOSIT

    tenant_id: UUID
    reference_number: str
    transaction_date: date
    currency: str
    amount: Decimal
    customer: CustomerRef | None = None
    exchange_rate: Decimal | None = None
    payment_account_id: UUID | None = None
    deposit_account_id: UUID | None = None
    document_id: UUID = field(default_factory=uuid4)


Document = Union[
    SalesInvoice,
    Receipt,
    StockAdjustment,
    PhysicalInventory,
    ManualJournal,
    CustomerDeposit,
]


# =============================================================================
# Validation
# =============================================================================


def _check_amounts(reference: str, owner: object, prefix: str = "") -> None:
    for f in fields(owner):
        value = getattr(owner, f.name)
        if isinstance(value, float):
            raise InvalidDocumentError(reference, f"{prefix}{f.name} must be Decimal, not float")
        if isinstance(value, Decimal) and (not value.is_finite() or value < 0):
            raise InvalidDocumentError(reference, f"{prefix}{f.name} must be >= 0, got {value}")


def validate_document(document: Document) -> None:
    """
    Reject documents with negative, non-finite or float amounts.

    Raises:
        InvalidDocumentError: On the first offending field.
    """
    reference = document.reference_number
    if not reference:
        raise InvalidDocumentError("<blank>", "reference_number is required")
    _check_amounts(reference, document)
    for item in getattr(document, "items", ()):
        _check_amounts(reference, item, f"{item.line_ref}.")
    for index, line in enumerate(getattr(document, "lines", ())):
        _check_amounts(reference, line, f"line {index + 1}.")
