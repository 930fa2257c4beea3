"""
ExchangeRateService -- tenant exchange rate table.

Rates are directional: ``amount_from * rate = amount_to``.  Lookup takes
the most recent rate effective on or before the transaction date; equal
currencies convert at exactly 1.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.types import validate_currency
from ledger_kernel.domain.money import normalize_rate
from ledger_kernel.domain.tenant import validate_tenant_id
from ledger_kernel.exceptions import ExchangeRateNotFoundError, PersistenceError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.exchange_rate import ExchangeRate
from ledger_kernel.services.base import BaseService

logger = get_logger("services.exchange_rate")

IDENTITY_RATE = Decimal("1.000000")


class ExchangeRateService(BaseService[ExchangeRate]):
    """Records and looks up exchange rates for one session."""

    def record_rate(
        self,
        tenant_id: UUID,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        effective_date: date,
        actor_id: UUID,
    ) -> ExchangeRate:
        """
        Store a rate.

        Raises:
            InvalidRateError: If rate is not finite and positive.
            InvalidCurrencyError: If either code is not ISO 4217.
            PersistenceError: If a rate already exists for the same
                pair and date.
        """
        tenant_id = validate_tenant_id(tenant_id)
        row = ExchangeRate(
            tenant_id=tenant_id,
            from_currency=validate_currency(from_currency),
            to_currency=validate_currency(to_currency),
            rate=normalize_rate(rate),
            effective_date=effective_date,
            created_by_id=actor_id,
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError as exc:
            raise PersistenceError("record_rate", str(exc.orig)) from exc

        logger.info(
            "exchange_rate_recorded",
            extra={
                "from_currency": row.from_currency,
                "to_currency": row.to_currency,
                "rate": str(row.rate),
                "effective_date": effective_date.isoformat(),
            },
        )
        return row

    def rate_for(
        self,
        tenant_id: UUID,
        from_currency: str,
        to_currency: str,
        as_of: date,
    ) -> Decimal:
        """
        Rate converting ``from_currency`` into ``to_currency`` on ``as_of``.

        Raises:
            ExchangeRateNotFoundError: If no rate is effective on or before
                ``as_of``.
        """
        tenant_id = validate_tenant_id(tenant_id)
        from_currency = validate_currency(from_currency)
        to_currency = validate_currency(to_currency)
        if from_currency == to_currency:
            return IDENTITY_RATE

        rate = self.session.execute(
            select(ExchangeRate.rate)
            .where(
                ExchangeRate.tenant_id == tenant_id,
                ExchangeRate.from_currency == from_currency,
                ExchangeRate.to_currency == to_currency,
                ExchangeRate.effective_date <= as_of,
            )
            .order_by(ExchangeRate.effective_date.desc())
            .limit(1)
        ).scalar_one_or_none()

        if rate is None:
            logger.warning(
                "exchange_rate_missing",
                extra={
                    "from_currency": from_currency,
                    "to_currency": to_currency,
                    "as_of": as_of.isoformat(),
                },
            )
            raise ExchangeRateNotFoundError(from_currency, to_currency, as_of.isoformat())
        return normalize_rate(Decimal(str(rate)))
