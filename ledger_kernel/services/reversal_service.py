"""
ReversalService -- compensating batches for posted ledger batches.

Responsibility:
    Validates reversal preconditions and writes a new batch whose rows are
    the original rows with nature flipped and identical amounts, exchange
    rate and therefore identical base-currency equivalents.

Architecture position:
    Kernel > Services -- imperative shell.  Delegates the write to
    LedgerEntryWriter.

Invariants enforced:
    - Posted rows never change; a correction is a new batch.
    - At most one reversal per batch (uq_batch_reversal_of).  The original
      batch row is locked first so concurrent reversals serialize.
    - A reversal batch cannot itself be reversed; re-post the document
      instead.

Failure modes:
    - BatchNotFoundError: unknown batch for the tenant.
    - BatchAlreadyReversedError: a reversal already exists (also raised for
      the loser of a concurrent race on the unique constraint).
    - BatchNotReversibleError: the batch is itself a reversal.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.posting import PostingLine
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.domain.values import Nature
from ledger_kernel.exceptions import (
    BatchAlreadyReversedError,
    BatchNotFoundError,
    BatchNotReversibleError,
    PersistenceError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.ledger import LedgerEntry, PostingBatch
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.entry_writer import LedgerEntryWriter, PostingContext

logger = get_logger("services.reversal")


class ReversalService(BaseService[PostingBatch]):
    """
    Reverses whole posting batches.

    Non-goals:
        - Does NOT reverse individual lines.
        - Does NOT touch document status; DocumentApprovalService.void does.
    """

    def __init__(
        self,
        session: Session,
        writer: LedgerEntryWriter | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._writer = writer or LedgerEntryWriter(session)
        self._clock = clock or SystemClock()

    def reverse_batch(
        self,
        batch_id: UUID,
        tenant_id: UUID,
        actor_id: UUID,
        reason: str,
        transaction_date: date | None = None,
    ) -> UUID:
        """
        Write the compensating batch for ``batch_id``.

        Args:
            batch_id: Batch to reverse.
            tenant_id: Owning tenant.
            actor_id: Who is reversing.
            reason: Stored as the reversal batch description.
            transaction_date: Date of the reversal; defaults to today,
                or the original batch date if that is later.

        Returns:
            The id of the new reversal batch.
        """
        tenant_id = validate_tenant_id(tenant_id)
        original = self._load_and_validate(batch_id, tenant_id)

        entries = self.session.execute(
            select(LedgerEntry)
            .where(
                LedgerEntry.general_ledger_id == original.id,
                LedgerEntry.tenant_id == tenant_id,
            )
            .order_by(LedgerEntry.line_no)
        ).scalars().all()

        lines = [
            PostingLine(
                role=AccountRole(entry.account_role) if entry.account_role else AccountRole.MANUAL,
                account_id=entry.account_id,
                nature=Nature(entry.account_nature).opposite,
                amount=entry.amount,
                memo=entry.memo,
            )
            for entry in entries
        ]

        context = PostingContext(
            tenant_id=tenant_id,
            reference_number=original.reference_number,
            transaction_type=original.transaction_type,
            transaction_date=transaction_date or max(original.transaction_date, self._clock.today()),
            currency=original.currency,
            exchange_rate=original.exchange_rate,
            actor_id=actor_id,
            document_id=original.document_id,
            description=reason,
            reversal_of_batch_id=original.id,
        )

        try:
            reversal_id = self._writer.write(lines, context, require_active=False)
        except PersistenceError as exc:
            existing = self._existing_reversal(original.id)
            if existing is not None:
                logger.warning(
                    "concurrent_reversal_conflict",
                    extra={"batch_id": str(original.id)},
                )
                raise BatchAlreadyReversedError(str(original.id), str(existing)) from exc
            raise

        logger.info(
            "batch_reversed",
            extra={
                "original_batch_id": str(original.id),
                "reversal_batch_id": str(reversal_id),
                "line_count": len(lines),
                "reason": reason,
            },
        )
        return reversal_id

    def _load_and_validate(self, batch_id: UUID, tenant_id: UUID) -> PostingBatch:
        # Row lock serializes concurrent reversals of the same batch
        original = self.session.execute(
            select(PostingBatch)
            .where(PostingBatch.id == batch_id, PostingBatch.tenant_id == tenant_id)
            .with_for_update()
        ).scalar_one_or_none()

        if original is None:
            raise BatchNotFoundError(str(batch_id), str(tenant_id))

        if original.is_reversal:
            raise BatchNotReversibleError(str(batch_id), "batch is itself a reversal")

        existing = self._existing_reversal(original.id)
        if existing is not None:
            raise BatchAlreadyReversedError(str(batch_id), str(existing))

        return original

    def _existing_reversal(self, batch_id: UUID) -> UUID | None:
        return self.session.execute(
            select(PostingBatch.id).where(PostingBatch.reversal_of_batch_id == batch_id)
        ).scalar_one_or_none()
