from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from domain.base_types import CurrencyCode


@dataclass(frozen=True)
class CurrencyQuote:
    """One unit of ``base_currency`` buys ``rate`` units of ``quote_currency`` inside ``[valid_from, valid_to]``."""

    base_currency: CurrencyCode
    quote_currency: CurrencyCode
    rate: Decimal
    source: str
    fetched_at: datetime
    valid_from: datetime
    valid_to: datetime

    def __post_init__(self) -> None:
        if not self.rate.is_finite() or self.rate <= 0:
            raise ValueError(f"rate for {self.base_currency}/{self.quote_currency} must be > 0, got {self.rate}")
        if self.valid_from > self.valid_to:
            raise ValueError("valid_from must not be after valid_to")

    @property
    def pair(self) -> tuple[CurrencyCode, CurrencyCode]:
        return self.base_currency, self.quote_currency

    def covers(self, timestamp: datetime) -> bool:
        return self.valid_from <= timestamp <= self.valid_to

    def inverted(self) -> CurrencyQuote:
        """Same quote seen from the other side of the pair."""
        return CurrencyQuote(
            base_currency=self.quote_currency,
            quote_currency=self.base_currency,
            rate=1 / self.rate,
            source=self.source,
            fetched_at=self.fetched_at,
            valid_from=self.valid_from,
            valid_to=self.valid_to,
        )


__all__ = ["CurrencyQuote"]
