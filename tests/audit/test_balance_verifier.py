"""
Tests for BalanceVerifier.

Write-time checks operate on posting lines; audit-time checks re-read
persisted batches.  Rows that bypass the writer are inserted directly to
simulate corrupted history.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.documents import ProductRef, SalesInvoiceItem
from ledger_kernel.domain.posting import PostingLine
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.values import Nature, Severity
from ledger_kernel.exceptions import BatchNotFoundError, UnbalancedBatchError
from ledger_kernel.models.ledger import LedgerEntry, PostingBatch
from ledger_kernel.services.balance_verifier import (
    NO_LEDGER_ENTRIES,
    RECEIVABLE_MISMATCH,
    REVENUE_MISMATCH,
    TAX_NOT_POSTED,
    UNBALANCED_BATCH,
    UNEXPECTED_TAX,
)
from ledger_kernel.services.entry_writer import PostingContext


@pytest.fixture
def write_invoice_batch(writer, standard_accounts, tenant, test_actor_id):
    """Write a sales invoice batch from (role, account key, nature, amount) rows."""

    def _write(rows, reference_number="INV-0001", transaction_date=date(2024, 3, 15), rate="1"):
        lines = [
            PostingLine(
                role=role,
                account_id=standard_accounts[key].id,
                nature=nature,
                amount=Decimal(amount),
            )
            for role, key, nature, amount in rows
        ]
        return writer.write(
            lines,
            PostingContext(
                tenant_id=tenant.id,
                reference_number=reference_number,
                transaction_type="sales_invoice",
                transaction_date=transaction_date,
                currency="USD",
                exchange_rate=Decimal(rate),
                actor_id=test_actor_id,
            ),
        )

    return _write


@pytest.fixture
def insert_raw_batch(session, standard_accounts, tenant, test_actor_id):
    """Insert a batch without going through the writer (no balance check)."""

    def _insert(rows, transaction_type="sales_invoice", reference_number="RAW-1", transaction_date=date(2024, 3, 15)):
        batch = PostingBatch(
            id=uuid4(),
            tenant_id=tenant.id,
            reference_number=reference_number,
            transaction_type=transaction_type,
            transaction_date=transaction_date,
            currency="USD",
            exchange_rate=Decimal("1.000000"),
            created_by_id=test_actor_id,
        )
        session.add(batch)
        session.flush()
        for line_no, (role, key, nature, amount) in enumerate(rows, start=1):
            account = standard_accounts[key]
            amount = Decimal(amount)
            session.add(
                LedgerEntry(
                    tenant_id=tenant.id,
                    general_ledger_id=batch.id,
                    line_no=line_no,
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_nature=nature.value,
                    account_role=role.value,
                    amount=amount,
                    exchange_rate=Decimal("1.000000"),
                    equivalent_debit_amount=amount if nature == Nature.DEBIT else Decimal("0"),
                    equivalent_credit_amount=amount if nature == Nature.CREDIT else Decimal("0"),
                    reference_number=reference_number,
                    transaction_type=transaction_type,
                    transaction_date=transaction_date,
                    created_by_id=test_actor_id,
                )
            )
        session.flush()
        return batch.id

    return _insert


def _codes(findings):
    return sorted(f.code for f in findings)


D, C = Nature.DEBIT, Nature.CREDIT
R = AccountRole

CLEAN_INVOICE = [
    (R.RECEIVABLE, "ar", D, "118.00"),
    (R.INCOME, "revenue", C, "100.00"),
    (R.TAX_PAYABLE, "tax", C, "18.00"),
]


class TestWriteTimeChecks:

    def test_check_lines(self, verifier, account_ids):
        lines = [
            PostingLine.debit(R.CASH, account_ids["cash"], Decimal("10.00")),
            PostingLine.credit(R.INCOME, account_ids["revenue"], Decimal("9.99")),
        ]
        result = verifier.check_lines(lines)
        assert result.balanced
        assert result.delta == Decimal("0.01")

    def test_assert_balanced_raises(self, verifier, account_ids):
        lines = [
            PostingLine.debit(R.CASH, account_ids["cash"], Decimal("10.00")),
            PostingLine.credit(R.INCOME, account_ids["revenue"], Decimal("9.00")),
        ]
        with pytest.raises(UnbalancedBatchError) as exc_info:
            verifier.assert_balanced(lines, "INV-5")
        assert exc_info.value.reference_number == "INV-5"
        assert exc_info.value.delta == "1.00"


class TestVerifyBatch:

    def test_written_batch_balances(self, verifier, write_invoice_batch, tenant):
        batch_id = write_invoice_batch(CLEAN_INVOICE)
        result = verifier.verify(batch_id, tenant.id)

        assert result.balanced
        assert result.total_debit == result.total_credit == Decimal("118.00")
        assert result.line_count == 3

    def test_raw_unbalanced_batch(self, verifier, insert_raw_batch, tenant):
        batch_id = insert_raw_batch([(R.RECEIVABLE, "ar", D, "100.00"), (R.INCOME, "revenue", C, "90.00")])
        result = verifier.verify(batch_id, tenant.id)
        assert not result.balanced
        assert result.delta == Decimal("10.00")

    def test_unknown_batch(self, verifier, tenant):
        with pytest.raises(BatchNotFoundError):
            verifier.verify(uuid4(), tenant.id)

    def test_other_tenant_batch(self, verifier, write_invoice_batch, other_tenant):
        batch_id = write_invoice_batch(CLEAN_INVOICE)
        with pytest.raises(BatchNotFoundError):
            verifier.verify(batch_id, other_tenant.id)


class TestScanForImbalance:

    def test_only_unbalanced_returned(self, verifier, write_invoice_batch, insert_raw_batch, tenant, captured_logs):
        write_invoice_batch(CLEAN_INVOICE)
        bad = insert_raw_batch([(R.RECEIVABLE, "ar", D, "100.00"), (R.INCOME, "revenue", C, "90.00")])

        assert verifier.scan_for_imbalance(tenant.id) == [bad]
        assert any(r["message"] == "historic_batch_unbalanced" for r in captured_logs())

    def test_since_date(self, verifier, insert_raw_batch, tenant):
        insert_raw_batch(
            [(R.CASH, "cash", D, "5.00")], reference_number="OLD", transaction_date=date(2024, 1, 5)
        )
        recent = insert_raw_batch(
            [(R.CASH, "cash", D, "5.00")], reference_number="NEW", transaction_date=date(2024, 3, 5)
        )
        assert verifier.scan_for_imbalance(tenant.id, since_date=date(2024, 3, 1)) == [recent]


class TestAuditSalesInvoice:

    def test_clean_invoice(self, verifier, write_invoice_batch, make_invoice, tenant):
        batch_id = write_invoice_batch(CLEAN_INVOICE)
        invoice = make_invoice(tax_amount=Decimal("18.00"))
        assert verifier.audit_sales_invoice(batch_id, tenant.id, invoice) == []

    def test_tax_booked_as_revenue(self, verifier, write_invoice_batch, make_invoice, tenant, captured_logs):
        batch_id = write_invoice_batch([
            (R.RECEIVABLE, "ar", D, "118.00"),
            (R.INCOME, "revenue", C, "118.00"),
        ])
        invoice = make_invoice(tax_amount=Decimal("18.00"))

        findings = verifier.audit_sales_invoice(batch_id, tenant.id, invoice)

        assert _codes(findings) == [REVENUE_MISMATCH, TAX_NOT_POSTED]
        revenue = [f for f in findings if f.code == REVENUE_MISMATCH][0]
        assert (revenue.expected, revenue.actual) == (Decimal("100.00"), Decimal("118.00"))
        tax = [f for f in findings if f.code == TAX_NOT_POSTED][0]
        assert tax.severity == Severity.HIGH
        assert sum(1 for r in captured_logs() if r["message"] == "audit_finding") == 2

    def test_receivable_equation_broken(self, verifier, write_invoice_batch, tenant):
        batch_id = write_invoice_batch([
            (R.RECEIVABLE, "ar", D, "118.00"),
            (R.INCOME, "revenue", C, "100.00"),
            (R.MANUAL, "tax", C, "18.00"),
        ])
        findings = verifier.audit_sales_invoice(batch_id, tenant.id)

        assert _codes(findings) == [RECEIVABLE_MISMATCH]
        assert findings[0].expected == Decimal("100.00")
        assert findings[0].actual == Decimal("118.00")

    def test_cash_counts_towards_receivable(self, verifier, write_invoice_batch, make_invoice, tenant):
        batch_id = write_invoice_batch([
            (R.RECEIVABLE, "ar", D, "60.00"),
            (R.CASH, "cash", D, "40.00"),
            (R.INCOME, "revenue", C, "100.00"),
        ])
        assert verifier.audit_sales_invoice(batch_id, tenant.id, make_invoice()) == []

    def test_discount_and_withholding(self, verifier, write_invoice_batch, make_invoice, tenant):
        batch_id = write_invoice_batch([
            (R.RECEIVABLE, "ar", D, "103.00"),
            (R.DISCOUNT_ALLOWED, "discount", D, "10.00"),
            (R.WHT_RECEIVABLE, "wht", D, "5.00"),
            (R.INCOME, "revenue", C, "100.00"),
            (R.TAX_PAYABLE, "tax", C, "18.00"),
        ])
        invoice = make_invoice(
            tax_amount=Decimal("18.00"), discount_amount=Decimal("10.00"), wht_amount=Decimal("5.00")
        )
        assert verifier.audit_sales_invoice(batch_id, tenant.id, invoice) == []

    def test_unexpected_tax(self, verifier, write_invoice_batch, make_invoice, tenant):
        batch_id = write_invoice_batch(CLEAN_INVOICE)
        findings = verifier.audit_sales_invoice(batch_id, tenant.id, make_invoice())
        assert _codes(findings) == [UNEXPECTED_TAX]

    def test_foreign_currency_compared_in_document_currency(
        self, verifier, write_invoice_batch, make_invoice, tenant
    ):
        batch_id = write_invoice_batch(CLEAN_INVOICE, rate="1.1")
        invoice = make_invoice(currency="EUR", tax_amount=Decimal("18.00"), exchange_rate=Decimal("1.1"))
        assert verifier.audit_sales_invoice(batch_id, tenant.id, invoice) == []

    def test_per_line_rounding_at_awkward_rate_not_flagged(
        self, verifier, approvals, ledger_selector, make_invoice, widget, standard_accounts,
        linked_accounts, tenant, test_actor_id,
    ):
        consulting = ProductRef(
            name="Consulting", is_service=True, income_account_id=standard_accounts["service_revenue"].id
        )
        items = (
            SalesInvoiceItem(
                line_ref="1", product=widget, quantity=Decimal("1"), unit_price=Decimal("100.01"),
                average_cost=Decimal("0"),
            ),
            SalesInvoiceItem(
                line_ref="2", product=consulting, quantity=Decimal("1"), unit_price=Decimal("50.01"),
            ),
        )
        invoice = make_invoice(
            subtotal=Decimal("150.02"),
            items=items,
            currency="EUR",
            exchange_rate=Decimal("0.3"),
            tax_amount=Decimal("18.04"),
            discount_amount=Decimal("10.02"),
            wht_amount=Decimal("5.02"),
        )
        approvals.register(invoice, test_actor_id)
        batch_id = approvals.approve(invoice, test_actor_id).batch_id

        # Each equivalent rounds on its own: 153.02 x 0.3 -> 45.91, while
        # 45.00 - 3.01 + 5.41 - 1.51 = 45.89 from the other lines.
        lines = ledger_selector.entries_for_batch(batch_id, tenant.id)
        receivable = [l for l in lines if l.account_code == "1100"][0]
        assert receivable.amount == Decimal("153.02")
        assert receivable.equivalent_debit_amount == Decimal("45.91")

        assert verifier.verify(batch_id, tenant.id).balanced
        assert verifier.audit_sales_invoice(batch_id, tenant.id, invoice) == []
        assert verifier.audit(tenant.id) == []

    def test_foreign_mismatch_reported_in_document_currency(self, verifier, write_invoice_batch, tenant):
        batch_id = write_invoice_batch(
            [(R.RECEIVABLE, "ar", D, "118.00"), (R.INCOME, "revenue", C, "100.00"), (R.MANUAL, "tax", C, "18.00")],
            rate="0.3",
        )
        findings = verifier.audit_sales_invoice(batch_id, tenant.id)

        assert _codes(findings) == [RECEIVABLE_MISMATCH]
        assert (findings[0].expected, findings[0].actual) == (Decimal("100.00"), Decimal("118.00"))

    def test_no_entries(self, verifier, insert_raw_batch, tenant):
        batch_id = insert_raw_batch([])
        findings = verifier.audit_sales_invoice(batch_id, tenant.id)
        assert _codes(findings) == [NO_LEDGER_ENTRIES]
        assert findings[0].severity == Severity.HIGH

    def test_unbalanced_rows(self, verifier, insert_raw_batch, tenant):
        batch_id = insert_raw_batch([(R.RECEIVABLE, "ar", D, "100.00"), (R.INCOME, "revenue", C, "90.00")])
        findings = verifier.audit_sales_invoice(batch_id, tenant.id)
        assert UNBALANCED_BATCH in _codes(findings)
        assert RECEIVABLE_MISMATCH in _codes(findings)


class TestTenantAudit:

    def test_collects_every_finding(self, verifier, write_invoice_batch, insert_raw_batch, tenant):
        write_invoice_batch(CLEAN_INVOICE, reference_number="INV-1")
        write_invoice_batch(
            [(R.RECEIVABLE, "ar", D, "118.00"), (R.INCOME, "revenue", C, "100.00"), (R.MANUAL, "tax", C, "18.00")],
            reference_number="INV-2",
        )
        journal = insert_raw_batch(
            [(R.MANUAL, "cash", D, "5.00")], transaction_type="journal_entry", reference_number="JE-1"
        )

        findings = verifier.audit(tenant.id)

        assert [(f.reference_number, f.code) for f in findings] == [
            ("INV-2", RECEIVABLE_MISMATCH),
            ("JE-1", UNBALANCED_BATCH),
        ]
        assert findings[1].batch_id == journal

    def test_unbalanced_invoice_reported_once(self, verifier, insert_raw_batch, tenant):
        insert_raw_batch([(R.RECEIVABLE, "ar", D, "100.00"), (R.INCOME, "revenue", C, "90.00")])
        findings = verifier.audit(tenant.id)
        assert _codes(findings).count(UNBALANCED_BATCH) == 1

    def test_reversals_not_audited_as_invoices(
        self, verifier, write_invoice_batch, reversal_service, tenant, test_actor_id
    ):
        batch_id = write_invoice_batch(
            [(R.RECEIVABLE, "ar", D, "118.00"), (R.INCOME, "revenue", C, "100.00"), (R.MANUAL, "tax", C, "18.00")]
        )
        reversal_service.reverse_batch(batch_id, tenant.id, test_actor_id, "void")

        findings = verifier.audit(tenant.id)

        assert [f.batch_id for f in findings] == [batch_id]

    def test_since_date(self, verifier, write_invoice_batch, tenant):
        write_invoice_batch(
            [(R.RECEIVABLE, "ar", D, "118.00"), (R.INCOME, "revenue", C, "100.00"), (R.MANUAL, "tax", C, "18.00")],
            transaction_date=date(2024, 1, 10),
        )
        assert verifier.audit(tenant.id, since_date=date(2024, 2, 1)) == []
        assert _codes(verifier.audit(tenant.id)) == [RECEIVABLE_MISMATCH]
