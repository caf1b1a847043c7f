from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Mapping, Protocol

from domain.base_types import normalize_currency
from domain.errors import UnsupportedCurrencyError

from .price_types import CurrencyQuote

# Static rates never expire.
_ALWAYS_FROM = datetime.min.replace(tzinfo=timezone.utc)
_ALWAYS_TO = datetime.max.replace(tzinfo=timezone.utc)

# Value of one unit of each currency expressed in BRL.
DEFAULT_STATIC_RATES: dict[str, Decimal] = {
    "BRL": Decimal("1"),
    "USD": Decimal("5.30"),
    "EUR": Decimal("5.70"),
    "GBP": Decimal("6.50"),
}


class PriceSnapshotSource(Protocol):
    def fetch_snapshot(self, base_currency: str, quote_currency: str, timestamp: datetime) -> CurrencyQuote: ...


class StaticRateSource(PriceSnapshotSource):
    """Fixed rates, each expressed against one shared reference currency."""

    def __init__(
        self,
        rates: Mapping[str, Decimal] | None = None,
        *,
        source_name: str = "static",
    ) -> None:
        source_rates = DEFAULT_STATIC_RATES if rates is None else rates
        normalized = {code.strip().upper(): Decimal(rate) for code, rate in source_rates.items()}
        if not normalized:
            msg = "rates must contain at least one entry"
            raise ValueError(msg)
        for code, rate in normalized.items():
            if not rate.is_finite() or rate <= 0:
                msg = f"rate for {code} must be > 0"
                raise ValueError(msg)
        self._rates = normalized
        self.source_name = source_name

    @property
    def currencies(self) -> list[str]:
        return sorted(self._rates)

    def fetch_snapshot(self, base_currency: str, quote_currency: str, timestamp: datetime) -> CurrencyQuote:
        base = normalize_currency(base_currency)
        quote = normalize_currency(quote_currency)
        rate = self._reference_value(base) / self._reference_value(quote)
        return CurrencyQuote(
            base_currency=base,
            quote_currency=quote,
            rate=rate,
            source=self.source_name,
            fetched_at=timestamp,
            valid_from=_ALWAYS_FROM,
            valid_to=_ALWAYS_TO,
        )

    def _reference_value(self, currency: str) -> Decimal:
        value = self._rates.get(currency)
        if value is None:
            raise UnsupportedCurrencyError(currency)
        return value


__all__ = [
    "DEFAULT_STATIC_RATES",
    "PriceSnapshotSource",
    "StaticRateSource",
]
