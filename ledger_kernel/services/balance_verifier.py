"""
BalanceVerifier -- debit = credit checks at write time and audit time.

Responsibility:
    - check_lines / assert_balanced: the write-time check on lines that
      have not been persisted yet.
    - verify: re-sum one persisted batch.
    - scan_for_imbalance: list historic batches whose rows do not balance,
      to catch drift left behind by earlier bugs or manual edits.
    - audit_sales_invoice: the receivable equation for a posted sales
      invoice,

          posted receivable = revenue - discount + tax - withholding tax

      plus, when the invoice itself is supplied, revenue-vs-subtotal and
      tax presence checks.

Architecture position:
    Kernel > Services.  Read-only against the ledger; it lives with the
    services because the writer depends on its verdict.

Invariants enforced:
    - balanced  <=>  |total_debit - total_credit| <= tolerance (0.01), on
      document-currency amounts.
    - A hard balance violation is always HIGH; equation mismatches are
      MEDIUM.  Every finding for a batch is reported, not just the first.

Failure modes:
    - BatchNotFoundError from verify / audit_sales_invoice.
    - UnbalancedBatchError from assert_balanced.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO
from ledger_kernel.domain.balance import BalanceCheck, check_balance
from ledger_kernel.domain.documents import DocumentType, SalesInvoice
from ledger_kernel.domain.posting import PostingLine
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.domain.values import Nature, Severity
from ledger_kernel.exceptions import BatchNotFoundError, UnbalancedBatchError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.ledger import LedgerEntry, PostingBatch
from ledger_kernel.selectors.ledger_selector import to_money

logger = get_logger("services.balance_verifier")

NO_LEDGER_ENTRIES = "NO_LEDGER_ENTRIES"
UNBALANCED_BATCH = "UNBALANCED_BATCH"
RECEIVABLE_MISMATCH = "RECEIVABLE_MISMATCH"
REVENUE_MISMATCH = "REVENUE_MISMATCH"
UNEXPECTED_TAX = "UNEXPECTED_TAX"
TAX_NOT_POSTED = "TAX_NOT_POSTED"


@dataclass(frozen=True)
class BatchVerification:
    """Result of re-summing one persisted batch."""

    batch_id: UUID
    balanced: bool
    total_debit: Decimal
    total_credit: Decimal
    delta: Decimal
    line_count: int


@dataclass(frozen=True)
class AuditFinding:
    """One problem found while auditing a posted batch."""

    batch_id: UUID
    reference_number: str
    code: str
    severity: Severity
    message: str
    expected: Decimal | None = None
    actual: Decimal | None = None


class BalanceVerifier:
    """
    Balance and receivable-equation checks.

    Contract:
        Never writes.  Findings are returned (and logged); the caller
        decides what to do with them.
    """

    def __init__(self, session: Session, tolerance: Decimal = BALANCE_TOLERANCE):
        self.session = session
        self._tolerance = tolerance

    # ------------------------------------------------------------------
    # Write time
    # ------------------------------------------------------------------

    def check_lines(self, lines: Sequence[PostingLine]) -> BalanceCheck:
        return check_balance(((line.nature, line.amount) for line in lines), self._tolerance)

    def assert_balanced(self, lines: Sequence[PostingLine], reference_number: str | None = None) -> BalanceCheck:
        """Raise UnbalancedBatchError unless ``lines`` balance."""
        result = self.check_lines(lines)
        if not result.balanced:
            raise UnbalancedBatchError(
                str(result.total_debit),
                str(result.total_credit),
                str(result.delta),
                reference_number,
            )
        return result

    # ------------------------------------------------------------------
    # Audit time
    # ------------------------------------------------------------------

    def verify(self, batch_id: UUID, tenant_id: UUID) -> BatchVerification:
        """Re-sum the persisted rows of one batch."""
        tenant_id = validate_tenant_id(tenant_id)
        batch = self._load_batch(batch_id, tenant_id)
        entries = self._entries(batch.id, tenant_id)
        result = check_balance(
            ((Nature(e.account_nature), e.amount) for e in entries), self._tolerance
        )
        logger.info(
            "batch_verified",
            extra={
                "batch_id": str(batch.id),
                "balanced": result.balanced,
                "total_debit": str(result.total_debit),
                "total_credit": str(result.total_credit),
            },
        )
        return BatchVerification(
            batch_id=batch.id,
            balanced=result.balanced,
            total_debit=result.total_debit,
            total_credit=result.total_credit,
            delta=result.delta,
            line_count=len(entries),
        )

    def scan_for_imbalance(self, tenant_id: UUID, since_date: date | None = None) -> list[UUID]:
        """
        Ids of batches whose rows do not balance, oldest first.

        Sums are aggregated in SQL and compared in Decimal here.
        """
        tenant_id = validate_tenant_id(tenant_id)
        debit_sum = func.sum(
            case((LedgerEntry.account_nature == Nature.DEBIT.value, LedgerEntry.amount), else_=0)
        )
        credit_sum = func.sum(
            case((LedgerEntry.account_nature == Nature.CREDIT.value, LedgerEntry.amount), else_=0)
        )
        query = (
            select(PostingBatch.id, debit_sum, credit_sum)
            .join(LedgerEntry, LedgerEntry.general_ledger_id == PostingBatch.id)
            .where(PostingBatch.tenant_id == tenant_id)
            .group_by(PostingBatch.id, PostingBatch.transaction_date)
            .order_by(PostingBatch.transaction_date, PostingBatch.id)
        )
        if since_date is not None:
            query = query.where(PostingBatch.transaction_date >= since_date)

        unbalanced = []
        scanned = 0
        for batch_id, total_debit, total_credit in self.session.execute(query).all():
            scanned += 1
            delta = to_money(total_debit) - to_money(total_credit)
            if abs(delta) > self._tolerance:
                logger.warning(
                    "historic_batch_unbalanced",
                    extra={"batch_id": str(batch_id), "delta": str(delta)},
                )
                unbalanced.append(batch_id)

        logger.info(
            "imbalance_scan_completed",
            extra={
                "tenant_id": str(tenant_id),
                "since_date": since_date.isoformat() if since_date else None,
                "scanned": scanned,
                "unbalanced": len(unbalanced),
            },
        )
        return unbalanced

    def audit_sales_invoice(
        self,
        batch_id: UUID,
        tenant_id: UUID,
        invoice: SalesInvoice | None = None,
    ) -> list[AuditFinding]:
        """
        Audit a posted sales invoice batch.

        All comparisons use document-currency amounts, the same figures the
        writer balanced.  Base-currency equivalents are rounded per line and
        may drift by a cent per line, so they are not compared.
        """
        tenant_id = validate_tenant_id(tenant_id)
        batch = self._load_batch(batch_id, tenant_id)
        entries = self._entries(batch.id, tenant_id)
        findings: list[AuditFinding] = []

        def flag(code, severity, message, expected=None, actual=None):
            finding = AuditFinding(
                batch_id=batch.id,
                reference_number=batch.reference_number,
                code=code,
                severity=severity,
                message=message,
                expected=expected,
                actual=actual,
            )
            logger.warning(
                "audit_finding",
                extra={
                    "batch_id": str(batch.id),
                    "reference_number": batch.reference_number,
                    "code": code,
                    "severity": severity.value,
                    "expected": None if expected is None else str(expected),
                    "actual": None if actual is None else str(actual),
                },
            )
            findings.append(finding)

        if not entries:
            flag(NO_LEDGER_ENTRIES, Severity.HIGH, "Invoice has no ledger entries")
            return findings

        balance = check_balance(
            ((Nature(e.account_nature), e.amount) for e in entries), self._tolerance
        )
        if not balance.balanced:
            flag(
                UNBALANCED_BATCH,
                Severity.HIGH,
                f"Debits {balance.total_debit} != credits {balance.total_credit}",
                expected=balance.total_debit,
                actual=balance.total_credit,
            )

        # Signed per role: debit-normal roles debit minus credit, and the
        # reverse for credit-normal roles.
        debits: dict[str, Decimal] = defaultdict(lambda: ZERO)
        credits: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for e in entries:
            role = e.account_role or ""
            if e.is_debit:
                debits[role] += e.amount
            else:
                credits[role] += e.amount

        def net_debit(role: AccountRole) -> Decimal:
            return debits[role.value] - credits[role.value]

        def net_credit(role: AccountRole) -> Decimal:
            return credits[role.value] - debits[role.value]

        receivable = net_debit(AccountRole.RECEIVABLE) + net_debit(AccountRole.CASH)
        revenue = net_credit(AccountRole.INCOME)
        discount = net_debit(AccountRole.DISCOUNT_ALLOWED)
        tax = net_credit(AccountRole.TAX_PAYABLE)
        wht = net_debit(AccountRole.WHT_RECEIVABLE)
        expected_receivable = revenue - discount + tax - wht

        if abs(receivable - expected_receivable) > self._tolerance:
            flag(
                RECEIVABLE_MISMATCH,
                Severity.MEDIUM,
                f"Receivable {receivable} != revenue {revenue} - discount {discount} "
                f"+ tax {tax} - wht {wht}",
                expected=expected_receivable,
                actual=receivable,
            )

        if invoice is not None:
            expected_revenue = invoice.subtotal
            if abs(revenue - expected_revenue) > self._tolerance:
                flag(
                    REVENUE_MISMATCH,
                    Severity.MEDIUM,
                    f"Posted revenue {revenue} != invoice subtotal {expected_revenue}",
                    expected=expected_revenue,
                    actual=revenue,
                )
            if tax > ZERO and invoice.tax_amount == ZERO:
                flag(
                    UNEXPECTED_TAX,
                    Severity.MEDIUM,
                    f"Tax {tax} posted for an invoice without tax",
                    expected=ZERO,
                    actual=tax,
                )
            elif invoice.tax_amount > ZERO and tax == ZERO:
                flag(
                    TAX_NOT_POSTED,
                    Severity.HIGH,
                    f"Invoice tax {invoice.tax_amount} has no ledger entry",
                    expected=invoice.tax_amount,
                    actual=ZERO,
                )

        return findings

    def audit(self, tenant_id: UUID, since_date: date | None = None) -> list[AuditFinding]:
        """
        Run the receivable audit over every original (non-reversal) sales
        invoice batch, plus the hard balance scan over every batch.
        """
        tenant_id = validate_tenant_id(tenant_id)
        findings: list[AuditFinding] = []
        audited: set[UUID] = set()

        query = select(PostingBatch.id).where(
            PostingBatch.tenant_id == tenant_id,
            PostingBatch.transaction_type == DocumentType.SALES_INVOICE.value,
            PostingBatch.reversal_of_batch_id.is_(None),
        )
        if since_date is not None:
            query = query.where(PostingBatch.transaction_date >= since_date)
        for batch_id in self.session.execute(query.order_by(PostingBatch.transaction_date)).scalars():
            findings.extend(self.audit_sales_invoice(batch_id, tenant_id))
            audited.add(batch_id)

        for batch_id in self.scan_for_imbalance(tenant_id, since_date):
            if batch_id in audited:
                continue
            batch = self._load_batch(batch_id, tenant_id)
            result = self.verify(batch_id, tenant_id)
            findings.append(
                AuditFinding(
                    batch_id=batch_id,
                    reference_number=batch.reference_number,
                    code=UNBALANCED_BATCH,
                    severity=Severity.HIGH,
                    message=f"Debits {result.total_debit} != credits {result.total_credit}",
                    expected=result.total_debit,
                    actual=result.total_credit,
                )
            )
        return findings

    def _load_batch(self, batch_id: UUID, tenant_id: UUID) -> PostingBatch:
        batch = self.session.execute(
            select(PostingBatch).where(
                PostingBatch.id == batch_id,
                PostingBatch.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(str(batch_id), str(tenant_id))
        return batch

    def _entries(self, batch_id: UUID, tenant_id: UUID) -> list[LedgerEntry]:
        return list(
            self.session.execute(
                select(LedgerEntry)
                .where(
                    LedgerEntry.general_ledger_id == batch_id,
                    LedgerEntry.tenant_id == tenant_id,
                )
                .order_by(LedgerEntry.line_no)
            ).scalars()
        )
