"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only access to posted ledger entries and balances.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - No stored balances.  Every balance is summed from LedgerEntry rows at
      query time.
    - Balances are in base currency (equivalent amounts); entry listings
      carry both the document-currency amount and the equivalents.
    - All results are Decimal, never float.

Failure modes:
    - InvalidTenantError for a missing or malformed tenant id.
    - AccountNotFoundError from account_balance for an account outside the
      tenant.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.domain.values import Nature
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account
from ledger_kernel.models.ledger import LedgerEntry
from ledger_kernel.selectors.base import BaseSelector


def to_money(value: object) -> Decimal:
    """Normalize a SQL aggregate (None, Decimal, float on some drivers) to money."""
    if value is None:
        return ZERO
    return round_money(Decimal(str(value)))


@dataclass
class LedgerLine:
    """A single posted row."""

    entry_id: UUID
    general_ledger_id: UUID
    line_no: int
    account_id: UUID
    account_code: str
    account_name: str
    account_role: str | None
    nature: Nature
    amount: Decimal
    exchange_rate: Decimal
    equivalent_debit_amount: Decimal
    equivalent_credit_amount: Decimal
    reference_number: str
    transaction_type: str
    transaction_date: date
    memo: str | None


@dataclass
class AccountBalance:
    """Base-currency balance of one account."""

    account_id: UUID
    account_code: str
    nature: Nature
    debit_total: Decimal
    credit_total: Decimal
    line_count: int

    @property
    def balance(self) -> Decimal:
        """Balance signed by the account's normal side."""
        if self.nature == Nature.DEBIT:
            return self.debit_total - self.credit_total
        return self.credit_total - self.debit_total


@dataclass
class TrialBalanceRow:
    """A single row in a trial balance report."""

    account_id: UUID
    account_code: str
    account_name: str
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


class LedgerSelector(BaseSelector[LedgerEntry]):
    """
    Selector for ledger queries.

    Non-goals:
        - Does NOT revalue foreign-currency balances; equivalents use the
          rate applied at posting time.
    """

    def entries_for_batch(self, batch_id: UUID, tenant_id: UUID) -> list[LedgerLine]:
        """Rows of one batch in line order."""
        tenant_id = validate_tenant_id(tenant_id)
        return self._lines(
            select(LedgerEntry)
            .where(
                LedgerEntry.tenant_id == tenant_id,
                LedgerEntry.general_ledger_id == batch_id,
            )
            .order_by(LedgerEntry.line_no)
        )

    def entries_for_reference(self, tenant_id: UUID, reference_number: str) -> list[LedgerLine]:
        """All rows posted under a document reference, reversals included."""
        tenant_id = validate_tenant_id(tenant_id)
        return self._lines(
            select(LedgerEntry)
            .where(
                LedgerEntry.tenant_id == tenant_id,
                LedgerEntry.reference_number == reference_number,
            )
            .order_by(LedgerEntry.created_at, LedgerEntry.general_ledger_id, LedgerEntry.line_no)
        )

    def account_balance(
        self,
        tenant_id: UUID,
        account_id: UUID,
        as_of: date | None = None,
    ) -> AccountBalance:
        """
        Base-currency balance of ``account_id``.

        Postconditions: zero totals when the account has no entries.
        """
        tenant_id = validate_tenant_id(tenant_id)
        account = self.session.execute(
            select(Account).where(Account.tenant_id == tenant_id, Account.id == account_id)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id), str(tenant_id))

        query = select(
            func.sum(LedgerEntry.equivalent_debit_amount),
            func.sum(LedgerEntry.equivalent_credit_amount),
            func.count(LedgerEntry.id),
        ).where(
            LedgerEntry.tenant_id == tenant_id,
            LedgerEntry.account_id == account_id,
        )
        if as_of is not None:
            query = query.where(LedgerEntry.transaction_date <= as_of)

        debit_total, credit_total, line_count = self.session.execute(query).one()
        return AccountBalance(
            account_id=account.id,
            account_code=account.code,
            nature=Nature(account.nature),
            debit_total=to_money(debit_total),
            credit_total=to_money(credit_total),
            line_count=line_count or 0,
        )

    def trial_balance(self, tenant_id: UUID, as_of: date | None = None) -> list[TrialBalanceRow]:
        """
        Per-account base-currency totals ordered by account code.

        Sum of debit_total over all rows equals the sum of credit_total up to
        conversion rounding, since every batch balances in document currency.
        """
        tenant_id = validate_tenant_id(tenant_id)
        query = (
            select(
                LedgerEntry.account_id,
                Account.code,
                Account.name,
                func.sum(LedgerEntry.equivalent_debit_amount),
                func.sum(LedgerEntry.equivalent_credit_amount),
            )
            .join(Account, LedgerEntry.account_id == Account.id)
            .where(LedgerEntry.tenant_id == tenant_id)
            .group_by(LedgerEntry.account_id, Account.code, Account.name)
            .order_by(Account.code)
        )
        if as_of is not None:
            query = query.where(LedgerEntry.transaction_date <= as_of)

        return [
            TrialBalanceRow(
                account_id=account_id,
                account_code=code,
                account_name=name,
                debit_total=to_money(debit_total),
                credit_total=to_money(credit_total),
            )
            for account_id, code, name, debit_total, credit_total in self.session.execute(query).all()
        ]

    def _lines(self, query) -> list[LedgerLine]:
        return [
            LedgerLine(
                entry_id=e.id,
                general_ledger_id=e.general_ledger_id,
                line_no=e.line_no,
                account_id=e.account_id,
                account_code=e.account_code,
                account_name=e.account_name,
                account_role=e.account_role,
                nature=Nature(e.account_nature),
                amount=e.amount,
                exchange_rate=e.exchange_rate,
                equivalent_debit_amount=e.equivalent_debit_amount,
                equivalent_credit_amount=e.equivalent_credit_amount,
                reference_number=e.reference_number,
                transaction_type=e.transaction_type,
                transaction_date=e.transaction_date,
                memo=e.memo,
            )
            for e in self.session.execute(query).scalars().all()
        ]
