"""
LedgerEntryWriter -- persists one balanced batch of posting lines.

Responsibility:
    Takes the lines produced by the posting rule set plus the posting
    context, checks the balance invariant, validates every referenced
    account against the tenant's chart of accounts, converts amounts to
    base-currency equivalents and writes one PostingBatch header with one
    LedgerEntry row per line.

Architecture position:
    Kernel > Services -- imperative shell.  Consumes domain/balance and
    domain/money; writes models/ledger.

Invariants enforced:
    - A batch is never persisted unbalanced: |debits - credits| <= 0.01 in
      document currency, checked before any INSERT.
    - All-or-nothing: header and rows are flushed inside one SAVEPOINT; any
      storage failure discards the whole batch.
    - Every row carries the same general_ledger_id (the batch id), the
      applied exchange rate and rule-declared line order (line_no).
    - Amounts are written exactly as computed by the rule set; nothing is
      recomputed at write time except the base-currency equivalents.

Failure modes:
    - InvalidTenantError: tenant id missing or malformed.
    - EmptyBatchError: no lines.
    - InvalidRateError: exchange rate missing, <= 0 or non-finite.
    - InvalidCurrencyError: currency is not ISO 4217.
    - UnbalancedBatchError: debits and credits differ beyond tolerance.
    - AccountNotFoundError / AccountInactiveError: line account unknown to
      the tenant, or inactive.
    - PersistenceError: the database rejected the write.

Audit relevance:
    Account code, name and nature are copied onto each row so the batch
    reads the same after later chart-of-accounts edits.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO, validate_currency
from ledger_kernel.domain.balance import BalanceCheck, check_balance
from ledger_kernel.domain.money import convert, normalize_rate
from ledger_kernel.domain.posting import PostingLine
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.domain.values import Nature
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    EmptyBatchError,
    PersistenceError,
    UnbalancedBatchError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.ledger import LedgerEntry, PostingBatch
from ledger_kernel.services.base import BaseService

logger = get_logger("services.entry_writer")


@dataclass(frozen=True)
class PostingContext:
    """Batch-level facts shared by every row of one posting."""

    tenant_id: UUID
    reference_number: str
    transaction_type: str
    transaction_date: date
    currency: str
    exchange_rate: Decimal
    actor_id: UUID
    document_id: UUID | None = None
    description: str | None = None
    reversal_of_batch_id: UUID | None = None


class LedgerEntryWriter(BaseService[PostingBatch]):
    """
    Writes posting batches.

    Contract:
        ``write(lines, context)`` returns the new batch id after flushing
        the batch inside a SAVEPOINT of the caller's transaction.

    Non-goals:
        - Does NOT commit; the caller's transaction decides visibility.
        - Does NOT retry.  A retried financial write without deduplication
          can post twice.
    """

    def __init__(self, session: Session, tolerance: Decimal = BALANCE_TOLERANCE):
        super().__init__(session)
        self._tolerance = tolerance

    def check(self, lines: Sequence[PostingLine]) -> BalanceCheck:
        """Apply the write-time balance check without touching the database."""
        return check_balance(((line.nature, line.amount) for line in lines), self._tolerance)

    def write(
        self,
        lines: Sequence[PostingLine],
        context: PostingContext,
        require_active: bool = True,
    ) -> UUID:
        """
        Persist ``lines`` as one batch.

        Args:
            lines: Posting lines in rule-declared order.
            context: Batch header facts.
            require_active: Reject lines posting to inactive accounts.
                Reversals pass False so a batch stays reversible after an
                account is retired.

        Returns:
            The batch id (general_ledger_id of every written row).
        """
        t0 = time.monotonic()
        tenant_id = validate_tenant_id(context.tenant_id)
        currency = validate_currency(context.currency)

        if not lines:
            raise EmptyBatchError(context.reference_number)

        rate = normalize_rate(context.exchange_rate)

        balance = self.check(lines)
        logger.info(
            "balance_validated",
            extra={
                "reference_number": context.reference_number,
                "total_debit": str(balance.total_debit),
                "total_credit": str(balance.total_credit),
                "balanced": balance.balanced,
            },
        )
        if not balance.balanced:
            logger.warning(
                "batch_unbalanced",
                extra={
                    "reference_number": context.reference_number,
                    "delta": str(balance.delta),
                },
            )
            raise UnbalancedBatchError(
                str(balance.total_debit),
                str(balance.total_credit),
                str(balance.delta),
                context.reference_number,
            )

        accounts = self._load_accounts(tenant_id, lines, require_active)
        batch_id = uuid4()

        with LogContext.bind(tenant_id=tenant_id, batch_id=batch_id):
            try:
                with self.session.begin_nested():
                    self.session.add(
                        PostingBatch(
                            id=batch_id,
                            tenant_id=tenant_id,
                            reference_number=context.reference_number,
                            transaction_type=context.transaction_type,
                            transaction_date=context.transaction_date,
                            currency=currency,
                            exchange_rate=rate,
                            document_id=context.document_id,
                            reversal_of_batch_id=context.reversal_of_batch_id,
                            description=context.description,
                            created_by_id=context.actor_id,
                        )
                    )
                    # Header first so the entries' foreign key resolves
                    self.session.flush()
                    for line_no, line in enumerate(lines, start=1):
                        self.session.add(
                            self._entry(batch_id, line_no, line, accounts[line.account_id], rate, context)
                        )
                    self.session.flush()
            except SQLAlchemyError as exc:
                logger.error(
                    "batch_write_failed",
                    extra={
                        "reference_number": context.reference_number,
                        "error": exc.__class__.__name__,
                    },
                )
                raise PersistenceError("write_batch", str(exc)) from exc

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                "batch_written",
                extra={
                    "reference_number": context.reference_number,
                    "transaction_type": context.transaction_type,
                    "line_count": len(lines),
                    "total_debit": str(balance.total_debit),
                    "total_credit": str(balance.total_credit),
                    "exchange_rate": str(rate),
                    "duration_ms": duration_ms,
                },
            )
        return batch_id

    def _load_accounts(
        self,
        tenant_id: UUID,
        lines: Sequence[PostingLine],
        require_active: bool,
    ) -> dict[UUID, Account]:
        """Load every referenced account, scoped to the tenant."""
        wanted = {line.account_id for line in lines}
        rows = self.session.execute(
            select(Account).where(
                Account.tenant_id == tenant_id,
                Account.id.in_(wanted),
            )
        ).scalars().all()
        accounts = {account.id: account for account in rows}

        for account_id in sorted(wanted, key=str):
            account = accounts.get(account_id)
            if account is None:
                logger.warning(
                    "account_not_found",
                    extra={"account_id": str(account_id), "tenant_id": str(tenant_id)},
                )
                raise AccountNotFoundError(str(account_id), str(tenant_id))
            if require_active and not account.is_active:
                raise AccountInactiveError(str(account_id), account.code)
        return accounts

    @staticmethod
    def _entry(
        batch_id: UUID,
        line_no: int,
        line: PostingLine,
        account: Account,
        rate: Decimal,
        context: PostingContext,
    ) -> LedgerEntry:
        equivalent = convert(line.amount, rate)
        return LedgerEntry(
            tenant_id=account.tenant_id,
            general_ledger_id=batch_id,
            line_no=line_no,
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            account_nature=line.nature.value,
            account_role=line.role.value,
            amount=line.amount,
            exchange_rate=rate,
            equivalent_debit_amount=equivalent if line.nature == Nature.DEBIT else ZERO,
            equivalent_credit_amount=equivalent if line.nature == Nature.CREDIT else ZERO,
            reference_number=context.reference_number,
            transaction_type=context.transaction_type,
            transaction_date=context.transaction_date,
            memo=line.memo,
            created_by_id=context.actor_id,
        )
