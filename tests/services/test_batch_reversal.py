"""
Tests for ReversalService.

A reversal is a new batch mirroring the original with every nature flipped,
the same amounts and the same exchange rate.  A batch is reversed at most
once and a reversal is never itself reversed.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.posting import PostingLine
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    BatchAlreadyReversedError,
    BatchNotFoundError,
    BatchNotReversibleError,
)
from ledger_kernel.models.ledger import PostingBatch
from ledger_kernel.services.entry_writer import PostingContext

ORIGINAL_DATE = date(2024, 3, 15)


@pytest.fixture
def posted_batch(writer, standard_accounts, tenant, test_actor_id):
    """A EUR invoice batch at rate 1.1: AR 118 / Revenue 100 / Tax 18."""
    lines = [
        PostingLine.debit(AccountRole.RECEIVABLE, standard_accounts["ar"].id, Decimal("118.00")),
        PostingLine.credit(AccountRole.INCOME, standard_accounts["revenue"].id, Decimal("100.00")),
        PostingLine.credit(AccountRole.TAX_PAYABLE, standard_accounts["tax"].id, Decimal("18.00")),
    ]
    return writer.write(
        lines,
        PostingContext(
            tenant_id=tenant.id,
            reference_number="INV-100",
            transaction_type="sales_invoice",
            transaction_date=ORIGINAL_DATE,
            currency="EUR",
            exchange_rate=Decimal("1.1"),
            actor_id=test_actor_id,
        ),
    )


class TestReverseBatch:

    def test_mirror_lines(self, reversal_service, posted_batch, ledger_selector, tenant, test_actor_id):
        reversal_id = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "duplicate")

        original = ledger_selector.entries_for_batch(posted_batch, tenant.id)
        mirrored = ledger_selector.entries_for_batch(reversal_id, tenant.id)

        assert len(mirrored) == len(original)
        for before, after in zip(original, mirrored):
            assert after.account_id == before.account_id
            assert after.nature == before.nature.opposite
            assert after.amount == before.amount
            assert after.exchange_rate == before.exchange_rate
            assert after.account_role == before.account_role
            assert after.equivalent_debit_amount == before.equivalent_credit_amount
            assert after.equivalent_credit_amount == before.equivalent_debit_amount

    def test_header_links_to_original(self, session, reversal_service, posted_batch, tenant, test_actor_id):
        reversal_id = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "duplicate")

        reversal = session.get(PostingBatch, reversal_id)
        assert reversal.reversal_of_batch_id == posted_batch
        assert reversal.is_reversal
        assert reversal.description == "duplicate"
        assert reversal.reference_number == "INV-100"
        assert reversal.currency == "EUR"
        assert reversal.exchange_rate == Decimal("1.100000")

    def test_balances_net_to_zero(
        self, reversal_service, posted_batch, ledger_selector, standard_accounts, tenant, test_actor_id
    ):
        reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "duplicate")
        for key in ("ar", "revenue", "tax"):
            balance = ledger_selector.account_balance(tenant.id, standard_accounts[key].id)
            assert balance.balance == Decimal("0")
            assert balance.line_count == 2

    def test_date_is_original_when_clock_is_earlier(
        self, session, reversal_service, posted_batch, tenant, test_actor_id
    ):
        # Clock defaults to 2024-01-01
        reversal_id = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "x")
        assert session.get(PostingBatch, reversal_id).transaction_date == ORIGINAL_DATE

    def test_date_is_today_when_later(
        self, session, reversal_service, posted_batch, deterministic_clock, tenant, test_actor_id
    ):
        deterministic_clock.set_time(datetime(2024, 4, 10, 9, 0, tzinfo=timezone.utc))
        reversal_id = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "x")
        assert session.get(PostingBatch, reversal_id).transaction_date == date(2024, 4, 10)

    def test_explicit_date(self, session, reversal_service, posted_batch, tenant, test_actor_id):
        reversal_id = reversal_service.reverse_batch(
            posted_batch, tenant.id, test_actor_id, "x", transaction_date=date(2024, 6, 30)
        )
        assert session.get(PostingBatch, reversal_id).transaction_date == date(2024, 6, 30)

    def test_inactive_account_still_reversible(
        self, reversal_service, posted_batch, account_service, standard_accounts, tenant, test_actor_id
    ):
        account_service.deactivate_account(tenant.id, standard_accounts["tax"].id, test_actor_id)
        assert reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "x") is not None

    def test_logged(self, reversal_service, posted_batch, tenant, test_actor_id, captured_logs):
        reversal_id = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "typo")
        reversed_ = [r for r in captured_logs() if r["message"] == "batch_reversed"]
        assert reversed_[0]["original_batch_id"] == str(posted_batch)
        assert reversed_[0]["reversal_batch_id"] == str(reversal_id)
        assert reversed_[0]["reason"] == "typo"


class TestReversalRejected:

    def test_second_reversal(self, reversal_service, posted_batch, tenant, test_actor_id):
        first = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "x")
        with pytest.raises(BatchAlreadyReversedError) as exc_info:
            reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "again")
        assert exc_info.value.reversal_batch_id == str(first)

    def test_reversal_of_reversal(self, reversal_service, posted_batch, tenant, test_actor_id):
        reversal_id = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "x")
        with pytest.raises(BatchNotReversibleError, match="itself a reversal"):
            reversal_service.reverse_batch(reversal_id, tenant.id, test_actor_id, "undo")

    def test_unknown_batch(self, reversal_service, tenant, test_actor_id):
        with pytest.raises(BatchNotFoundError):
            reversal_service.reverse_batch(uuid4(), tenant.id, test_actor_id, "x")

    def test_batch_of_another_tenant(self, reversal_service, posted_batch, other_tenant, test_actor_id):
        with pytest.raises(BatchNotFoundError):
            reversal_service.reverse_batch(posted_batch, other_tenant.id, test_actor_id, "x")

    def test_concurrent_loser_reports_existing_reversal(
        self, session, reversal_service, posted_batch, tenant, test_actor_id, monkeypatch, captured_logs
    ):
        """The loser passed validation before the winner's reversal was visible."""
        winner = reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "x")
        monkeypatch.setattr(
            reversal_service,
            "_load_and_validate",
            lambda batch_id, tenant_id: session.get(PostingBatch, batch_id),
        )

        with pytest.raises(BatchAlreadyReversedError) as exc_info:
            reversal_service.reverse_batch(posted_batch, tenant.id, test_actor_id, "x")

        assert exc_info.value.reversal_batch_id == str(winner)
        assert any(r["message"] == "concurrent_reversal_conflict" for r in captured_logs())
