from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal

from domain.base_types import CurrencyCode, normalize_currency

from .price_sources import PriceSnapshotSource, StaticRateSource
from .price_types import CurrencyQuote

logger = logging.getLogger(__name__)


class PriceService:
    """Rate lookups that reuse the latest quote per pair while its validity window covers the timestamp.

    A fetched quote also answers the reverse pair. Safe to share between threads.
    """

    def __init__(self, source: PriceSnapshotSource) -> None:
        self.source = source
        self._quotes: dict[tuple[CurrencyCode, CurrencyCode], CurrencyQuote] = {}
        self._guard = threading.Lock()

    def rate(
        self,
        base_id: str,
        quote_id: str,
        timestamp: datetime | None = None,
    ) -> Decimal:
        base = normalize_currency(base_id)
        quote = normalize_currency(quote_id)
        if base == quote:
            return Decimal(1)

        ts = timestamp or datetime.now(timezone.utc)
        with self._guard:
            existing = self._quotes.get((base, quote))
        if existing is not None and existing.covers(ts):
            return existing.rate

        # Fetch outside the guard; a concurrent fetch of the same pair just stores an equivalent quote.
        fetched = self.source.fetch_snapshot(base, quote, ts)
        logger.debug("Fetched %s/%s rate %s from %s", base, quote, fetched.rate, fetched.source)
        with self._guard:
            self._quotes[fetched.pair] = fetched
            self._quotes.setdefault((quote, base), fetched.inverted())
        return fetched.rate


def build_default_service() -> PriceService:
    return PriceService(source=StaticRateSource())


__all__ = ["PriceService", "build_default_service"]
