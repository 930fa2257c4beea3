"""
DocumentApprovalService -- the document action that posts to the ledger.

Responsibility:
    Approving a document moves its status to APPROVED and posts its batch;
    voiding it reverses that batch.  Each action runs inside one SAVEPOINT:

        1. Conditional status UPDATE (draft/sent/overdue -> approved).
        2. Posting rule set builds the lines (Account Resolution with the
           tenant's linked accounts as the last tier).
        3. Exchange rate: the document's own rate, else the tenant rate
           table for document currency -> base currency, rounded to the
           stored 6 dp.  ApprovalResult reports this stored rate.
        4. LedgerEntryWriter persists the batch (balance check first).
        5. Caller-supplied side effects (inventory, customer balance).
        6. posted_batch_id is recorded on the document.

    Any failure rolls the SAVEPOINT back, which restores the previous
    status and discards the batch and the side effects together.

Architecture position:
    Kernel > Services -- the outermost orchestrator of the posting path.

Invariants enforced:
    - A document is posted at most once.  Step 1 is a single UPDATE ...
      WHERE status IN (...); only one concurrent approval sees a row count
      of 1, the other gets DocumentStatusError.
    - Nothing is retried.

Failure modes:
    - DocumentNotFoundError: document never registered.
    - DocumentStatusError: status does not allow the action.
    - Anything raised by the rule set, rate lookup, writer or a side effect,
      re-raised unchanged after the rollback.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.documents import Document, ManualJournal
from ledger_kernel.domain.money import normalize_rate
from ledger_kernel.domain.posting import PostingFinding
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.exceptions import (
    DocumentNotFoundError,
    DocumentStatusError,
    InvalidTenantError,
    PersistenceError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.document import (
    APPROVABLE_STATUSES,
    VOIDABLE_STATUSES,
    DocumentRecord,
    DocumentStatus,
)
from ledger_kernel.models.tenant import Tenant
from ledger_kernel.posting_rules import PostingRuleRegistry, get_default_registry
from ledger_kernel.selectors.account_selector import AccountSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.entry_writer import LedgerEntryWriter, PostingContext
from ledger_kernel.services.exchange_rate_service import ExchangeRateService
from ledger_kernel.services.reversal_service import ReversalService

logger = get_logger("services.approval")

# Called with (session, batch_id) inside the approval SAVEPOINT
SideEffect = Callable[[Session, UUID], None]


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of a successful approval."""

    document_id: UUID
    batch_id: UUID
    exchange_rate: Decimal
    findings: tuple[PostingFinding, ...] = field(default=())


class DocumentApprovalService(BaseService[DocumentRecord]):
    """
    Approves and voids documents.

    Non-goals:
        - Does NOT commit.  The request's session_scope() does.
        - Does NOT edit posted batches; void writes a reversal.
    """

    def __init__(
        self,
        session: Session,
        registry: PostingRuleRegistry | None = None,
        writer: LedgerEntryWriter | None = None,
        clock: Clock | None = None,
        tolerance: Decimal = BALANCE_TOLERANCE,
    ):
        super().__init__(session)
        self._registry = registry or get_default_registry()
        self._writer = writer or LedgerEntryWriter(session, tolerance)
        self._reversals = ReversalService(session, self._writer, clock)
        self._rates = ExchangeRateService(session)
        self._accounts = AccountSelector(session)

    def register(
        self,
        document: Document,
        actor_id: UUID,
        status: DocumentStatus = DocumentStatus.DRAFT,
    ) -> DocumentRecord:
        """
        Record the document so it can be approved.

        Raises:
            PersistenceError: If another document of the same type already
                uses the reference number in this tenant.
        """
        tenant_id = validate_tenant_id(document.tenant_id)
        record = DocumentRecord(
            id=document.document_id,
            tenant_id=tenant_id,
            document_type=document.document_type.value,
            reference_number=document.reference_number,
            status=DocumentStatus(status).value,
            created_by_id=actor_id,
        )
        try:
            with self.session.begin_nested():
                self.session.add(record)
                self.session.flush()
        except IntegrityError as exc:
            raise PersistenceError("register_document", str(exc.orig)) from exc

        logger.info(
            "document_registered",
            extra={
                "document_type": record.document_type,
                "reference_number": record.reference_number,
                "status": record.status,
            },
        )
        return record

    def approve(
        self,
        document: Document,
        actor_id: UUID,
        side_effects: Sequence[SideEffect] = (),
    ) -> ApprovalResult:
        """
        Approve ``document`` and post its batch.

        Returns:
            ApprovalResult with the batch id and any soft findings (for
            example an optional discount line omitted for lack of an
            account).
        """
        tenant_id = validate_tenant_id(document.tenant_id)
        record = self._record(document, tenant_id)

        with LogContext.bind(
            tenant_id=tenant_id, document_id=document.document_id, actor_id=actor_id
        ):
            try:
                with self.session.begin_nested():
                    self._transition(
                        record, APPROVABLE_STATUSES, DocumentStatus.APPROVED, actor_id, "approve"
                    )
                    resolver = self._accounts.resolver_for(tenant_id)
                    posting = self._registry.build_entries(document, resolver)
                    rate = normalize_rate(self._rate_for(document, tenant_id))
                    batch_id = self._writer.write(
                        posting.lines,
                        PostingContext(
                            tenant_id=tenant_id,
                            reference_number=document.reference_number,
                            transaction_type=document.document_type.value,
                            transaction_date=document.transaction_date,
                            currency=document.currency,
                            exchange_rate=rate,
                            actor_id=actor_id,
                            document_id=document.document_id,
                            description=self._description(document),
                        ),
                    )
                    for effect in side_effects:
                        effect(self.session, batch_id)
                    self.session.execute(
                        update(DocumentRecord)
                        .where(DocumentRecord.id == record.id)
                        .values(posted_batch_id=batch_id)
                        .execution_options(synchronize_session=False)
                    )
            except Exception:
                self.session.expire(record)
                logger.warning(
                    "approval_rolled_back",
                    extra={"reference_number": document.reference_number},
                    exc_info=True,
                )
                raise

            self.session.expire(record)
            logger.info(
                "document_approved",
                extra={
                    "reference_number": document.reference_number,
                    "batch_id": str(batch_id),
                    "finding_count": len(posting.findings),
                },
            )
        return ApprovalResult(
            document_id=document.document_id,
            batch_id=batch_id,
            exchange_rate=rate,
            findings=posting.findings,
        )

    def void(self, document: Document, actor_id: UUID, reason: str) -> UUID:
        """
        Reverse the posted batch of an approved (or paid) document.

        Returns:
            The reversal batch id.
        """
        tenant_id = validate_tenant_id(document.tenant_id)
        record = self._record(document, tenant_id)

        with LogContext.bind(
            tenant_id=tenant_id, document_id=document.document_id, actor_id=actor_id
        ):
            try:
                with self.session.begin_nested():
                    batch_id = record.posted_batch_id
                    if batch_id is None:
                        raise DocumentStatusError(
                            str(document.document_id), record.status, "void"
                        )
                    self._transition(
                        record, VOIDABLE_STATUSES, DocumentStatus.REVERSED, actor_id, "void"
                    )
                    reversal_id = self._reversals.reverse_batch(
                        batch_id, tenant_id, actor_id, reason
                    )
            except Exception:
                self.session.expire(record)
                logger.warning(
                    "void_rolled_back",
                    extra={"reference_number": document.reference_number},
                    exc_info=True,
                )
                raise

            self.session.expire(record)
            logger.info(
                "document_voided",
                extra={
                    "reference_number": document.reference_number,
                    "reversal_batch_id": str(reversal_id),
                    "reason": reason,
                },
            )
        return reversal_id

    def status_of(self, document: Document) -> DocumentStatus:
        record = self._record(document, validate_tenant_id(document.tenant_id))
        self.session.refresh(record)
        return DocumentStatus(record.status)

    def _record(self, document: Document, tenant_id: UUID) -> DocumentRecord:
        record = self.session.execute(
            select(DocumentRecord).where(
                DocumentRecord.id == document.document_id,
                DocumentRecord.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()
        if record is None:
            raise DocumentNotFoundError(str(document.document_id), str(tenant_id))
        return record

    def _transition(
        self,
        record: DocumentRecord,
        allowed: frozenset[DocumentStatus],
        target: DocumentStatus,
        actor_id: UUID,
        action: str,
    ) -> None:
        """Atomic check-and-set; exactly one concurrent caller wins."""
        result = self.session.execute(
            update(DocumentRecord)
            .where(
                DocumentRecord.id == record.id,
                DocumentRecord.tenant_id == record.tenant_id,
                DocumentRecord.status.in_([s.value for s in allowed]),
            )
            .values(status=target.value, updated_by_id=actor_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self.session.execute(
                select(DocumentRecord.status).where(DocumentRecord.id == record.id)
            ).scalar_one()
            logger.warning(
                "document_transition_rejected",
                extra={"action": action, "status": current},
            )
            raise DocumentStatusError(str(record.id), current, action)

    def _rate_for(self, document: Document, tenant_id: UUID) -> Decimal:
        if document.exchange_rate is not None:
            return document.exchange_rate
        base_currency = self.session.execute(
            select(Tenant.base_currency).where(Tenant.id == tenant_id)
        ).scalar_one_or_none()
        if base_currency is None:
            raise InvalidTenantError(tenant_id)
        return self._rates.rate_for(
            tenant_id, document.currency, base_currency, document.transaction_date
        )

    @staticmethod
    def _description(document: Document) -> str | None:
        if isinstance(document, ManualJournal):
            return document.description
        customer = getattr(document, "customer", None)
        return customer.name if customer is not None else None
