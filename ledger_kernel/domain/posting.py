"""
Posting DTOs -- output of the posting rule set, input of the entry writer.

Responsibility:
    PostingLine is one (account-role, account, nature, amount) tuple.  Amounts
    are computed once by the rule set and carried unchanged to persistence,
    so verification and storage always see the same numbers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - PostingLine.amount is a non-negative Decimal rounded to 2 places.
    - PostingResult preserves rule-declared line order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import AMOUNT_DECIMAL_PLACES, ZERO, round_money
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.domain.values import Nature, Severity


@dataclass(frozen=True)
class PostingLine:
    """
    One line of a posting batch, in document currency.

    Guarantees:
        - amount >= 0 and has at most 2 decimal places (validated in
          __post_init__); nature carries the direction.
    """

    role: AccountRole
    account_id: UUID
    nature: Nature
    amount: Decimal
    memo: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValueError("PostingLine amount must be Decimal")
        if self.amount < ZERO:
            raise ValueError(f"PostingLine amount must be non-negative, got {self.amount}")
        if self.amount != round_money(self.amount, AMOUNT_DECIMAL_PLACES):
            raise ValueError(f"PostingLine amount must have 2 decimal places, got {self.amount}")

    @classmethod
    def debit(
        cls, role: AccountRole, account_id: UUID, amount: Decimal, memo: str | None = None
    ) -> PostingLine:
        return cls(role, account_id, Nature.DEBIT, round_money(amount), memo)

    @classmethod
    def credit(
        cls, role: AccountRole, account_id: UUID, amount: Decimal, memo: str | None = None
    ) -> PostingLine:
        return cls(role, account_id, Nature.CREDIT, round_money(amount), memo)

    @property
    def is_debit(self) -> bool:
        return self.nature == Nature.DEBIT

    def flipped(self) -> PostingLine:
        """Same line on the opposite side, identical amount."""
        return PostingLine(self.role, self.account_id, self.nature.opposite, self.amount, self.memo)


@dataclass(frozen=True)
class PostingFinding:
    """A non-fatal observation made while building lines."""

    code: str
    severity: Severity
    message: str
    role: AccountRole | None = None
    line: str | None = None


@dataclass(frozen=True)
class PostingResult:
    """Lines plus findings produced by a posting rule."""

    lines: tuple[PostingLine, ...]
    findings: tuple[PostingFinding, ...] = field(default=())

    @property
    def total_debit(self) -> Decimal:
        return sum((l.amount for l in self.lines if l.is_debit), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((l.amount for l in self.lines if not l.is_debit), ZERO)

    def lines_for(self, role: AccountRole) -> tuple[PostingLine, ...]:
        return tuple(l for l in self.lines if l.role == role)

    def has_finding(self, code: str) -> bool:
        return any(f.code == code for f in self.findings)
