from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol


class PriceProvider(Protocol):
    """Lookup interface for currency->quote rates."""

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal: ...


class Converter(Protocol):
    """Display-time conversion; results are never written back into the ledger."""

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal: ...
