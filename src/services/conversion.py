from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Mapping

from domain.base_types import CurrencyCode, normalize_currency
from domain.pricing import Converter, PriceProvider


class CurrencyConverter(Converter):
    """Display-time conversion on top of a price provider.

    Nothing here takes an account lock or writes to the ledger; converted amounts
    exist only in the values returned to the caller.
    """

    def __init__(
        self,
        price_provider: PriceProvider,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._price_provider = price_provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        source = normalize_currency(from_currency)
        target = normalize_currency(to_currency)
        if source == target:
            return amount
        return amount * self._price_provider.rate(source, target, self._clock())

    def convert_balances(self, balances: Mapping[str, Decimal], to_currency: str) -> Decimal:
        """Sum a currency -> amount set in ``to_currency``."""
        target = normalize_currency(to_currency)
        return sum(
            (self.convert(amount, currency, target) for currency, amount in balances.items()),
            start=Decimal(0),
        )

    def convert_each(self, balances: Mapping[str, Decimal], to_currency: str) -> dict[CurrencyCode, Decimal]:
        target = normalize_currency(to_currency)
        return {
            normalize_currency(currency): self.convert(amount, currency, target) for currency, amount in balances.items()
        }


__all__ = ["CurrencyConverter"]
