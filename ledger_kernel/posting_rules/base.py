"""
Base posting rule protocol.

Posting rules transform documents into posting lines deterministically.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.documents import Document, DocumentType, validate_document
from ledger_kernel.domain.posting import PostingFinding, PostingLine, PostingResult
from ledger_kernel.domain.resolution import AccountResolver
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.values import Nature, Severity
from ledger_kernel.logging_config import get_logger

logger = get_logger("posting_rules")


@runtime_checkable
class PostingRule(Protocol):
    """
    Protocol for posting rules.

    Each rule is:
    - Deterministic: the same document always produces the same lines
    - Versioned: several versions of a rule may be registered
    - Stateless: no side effects during computation
    """

    @property
    def document_type(self) -> DocumentType:
        """Document type this rule handles."""
        ...

    @property
    def version(self) -> int:
        """Version of this rule."""
        ...

    def build_entries(
        self, document: Document, resolver: AccountResolver | None = None
    ) -> PostingResult:
        """Compute posting lines for a document."""
        ...


class PostingBuilder:
    """Accumulates lines and findings in rule-declared order."""

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        self._lines: list[PostingLine] = []
        self._findings: list[PostingFinding] = []

    def add(
        self,
        role: AccountRole,
        account_id: UUID,
        nature: Nature,
        amount: Decimal,
        memo: str | None = None,
    ) -> None:
        """Append a line; zero amounts are omitted."""
        amount = round_money(amount)
        if amount == ZERO:
            logger.debug(
                "zero_amount_skipped",
                extra={"role": role.value, "reference_number": self.reference_number},
            )
            return
        self._lines.append(PostingLine(role, account_id, nature, amount, memo))

    def debit(self, role: AccountRole, account_id: UUID, amount: Decimal, memo: str | None = None) -> None:
        self.add(role, account_id, Nature.DEBIT, amount, memo)

    def credit(self, role: AccountRole, account_id: UUID, amount: Decimal, memo: str | None = None) -> None:
        self.add(role, account_id, Nature.CREDIT, amount, memo)

    def skip_optional(
        self,
        role: AccountRole,
        amount: Decimal,
        line: str,
        code: str,
        severity: Severity = Severity.LOW,
    ) -> None:
        """Record an optional line omitted because no account resolved."""
        event = "configuration_gap" if severity == Severity.HIGH else "optional_role_skipped"
        logger.warning(
            event,
            extra={
                "role": role.value,
                "amount": str(amount),
                "line": line,
                "reference_number": self.reference_number,
            },
        )
        self._findings.append(
            PostingFinding(
                code=code,
                severity=severity,
                message=f"No {role.value} account for {line}; {amount} not posted",
                role=role,
                line=line,
            )
        )

    def result(self) -> PostingResult:
        return PostingResult(lines=tuple(self._lines), findings=tuple(self._findings))


class BasePostingRule(ABC):
    """
    Abstract base class for posting rules.

    ``build_entries`` validates the document and delegates to
    ``compute_lines``; subclasses implement only the latter.
    """

    @property
    @abstractmethod
    def document_type(self) -> DocumentType:
        """Document type this rule handles."""
        pass

    @property
    def version(self) -> int:
        return 1

    @abstractmethod
    def compute_lines(self, document: Document, resolver: AccountResolver) -> PostingResult:
        """
        Compute posting lines from a validated document.

        Raises:
            MissingAccountConfigurationError: If a mandatory role is unresolved.
            InvalidDocumentError: If the document's amounts are inconsistent.
        """
        pass

    def validate_document(self, document: Document) -> None:
        """
        Validate that the document is suitable for this rule.

        Raises:
            ValueError: If the document type does not match.
            InvalidDocumentError: If amounts are negative or not Decimal.
        """
        if document.document_type != self.document_type:
            raise ValueError(
                f"Document type mismatch: expected {self.document_type.value}, "
                f"got {document.document_type.value}"
            )
        validate_document(document)

    def build_entries(
        self, document: Document, resolver: AccountResolver | None = None
    ) -> PostingResult:
        self.validate_document(document)
        result = self.compute_lines(document, resolver or AccountResolver())
        logger.info(
            "posting_lines_built",
            extra={
                "document_type": self.document_type.value,
                "rule_version": self.version,
                "reference_number": document.reference_number,
                "line_count": len(result.lines),
                "finding_count": len(result.findings),
                "total_debit": str(result.total_debit),
                "total_credit": str(result.total_credit),
            },
        )
        return result
