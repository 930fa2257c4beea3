"""
Module: ledger_kernel.models.exchange_rate
Responsibility: ORM persistence for tenant exchange rates.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - rate > 0 (ck_exchange_rate_positive).
    - One rate per (tenant, from_currency, to_currency, effective_date).
    - Lookup picks the nearest effective_date on or before the transaction
      date (ExchangeRateService).

Audit relevance:
    The applied rate is copied onto each PostingBatch and LedgerEntry, so
    later rate edits never change historical equivalents.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TenantScoped, TrackedBase


class ExchangeRate(TenantScoped, TrackedBase):
    """
    Directional conversion factor: from_currency * rate = to_currency amount.

    Non-goals:
        - Does NOT derive inverse or triangulated rates.
    """

    __tablename__ = "exchange_rates"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "from_currency",
            "to_currency",
            "effective_date",
            name="uq_exchange_rate_tenant_pair_date",
        ),
        CheckConstraint("rate > 0", name="ck_exchange_rate_positive"),
        Index("idx_rate_lookup", "tenant_id", "from_currency", "to_currency", "effective_date"),
    )

    from_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    to_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(15, 6), nullable=False)

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate {self.from_currency}/{self.to_currency} "
            f"{self.rate} @ {self.effective_date}>"
        )
