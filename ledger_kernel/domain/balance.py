"""
Balance check -- the debit = credit invariant as a pure function.

Responsibility:
    Sums a set of (nature, amount) pairs and reports whether debits equal
    credits within the tolerance.  Shared by the entry writer (write time)
    and the BalanceVerifier (audit time) so both apply the same rule.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - balanced  <=>  |total_debit - total_credit| <= tolerance.
    - Totals are exact Decimal sums; delta is debit minus credit.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO
from ledger_kernel.domain.values import Nature


@dataclass(frozen=True)
class BalanceCheck:
    """Outcome of summing one batch."""

    balanced: bool
    total_debit: Decimal
    total_credit: Decimal
    delta: Decimal


def check_balance(
    pairs: Iterable[tuple[Nature, Decimal]],
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> BalanceCheck:
    """
    Sum ``pairs`` and compare debits with credits.

    An empty input is balanced with zero totals; rejecting empty batches is
    the writer's job.
    """
    total_debit = ZERO
    total_credit = ZERO
    for nature, amount in pairs:
        if nature == Nature.DEBIT:
            total_debit += amount
        else:
            total_credit += amount
    delta = total_debit - total_credit
    return BalanceCheck(
        balanced=abs(delta) <= tolerance,
        total_debit=total_debit,
        total_credit=total_credit,
        delta=delta,
    )
