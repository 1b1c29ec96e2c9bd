"""Currency conversion into a company's base currency.

Rates come from an HTTP provider (``EXCHANGE_RATE_API_URL/<base>`` returning
``{"rates": {...}}``) and are kept in an explicit TTL cache owned by the
converter instance. The clock is injected so expiry is testable without
sleeping.
"""
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import httpx

from app.core.config import settings
from app.core.exceptions import CurrencyConversionError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass
class _CacheEntry:
    rates: dict[str, Decimal]
    fetched_at: float


class ExchangeRateCache:
    """Rates per base currency, fresh for ``ttl_seconds`` after fetching."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CacheEntry] = {}

    def get_fresh(self, base: str) -> dict[str, Decimal] | None:
        entry = self._entries.get(base)
        if entry is None or self._clock() - entry.fetched_at >= self.ttl_seconds:
            return None
        return entry.rates

    def get_stale(self, base: str) -> dict[str, Decimal] | None:
        """Whatever was last fetched, regardless of age."""
        entry = self._entries.get(base)
        return entry.rates if entry else None

    def put(self, base: str, rates: dict[str, Decimal]) -> None:
        self._entries[base] = _CacheEntry(rates=rates, fetched_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()


class CurrencyConverter:
    def __init__(
        self,
        cache: ExchangeRateCache | None = None,
        client: httpx.Client | None = None,
        api_url: str | None = None,
    ):
        self.cache = cache or ExchangeRateCache(settings.EXCHANGE_RATE_CACHE_TTL_SECONDS)
        self.client = client or httpx.Client(timeout=settings.EXCHANGE_RATE_TIMEOUT_SECONDS)
        self.api_url = (api_url or settings.EXCHANGE_RATE_API_URL).rstrip("/")

    def get_rates(self, base: str) -> dict[str, Decimal]:
        base = base.upper()
        cached = self.cache.get_fresh(base)
        if cached is not None:
            return cached

        try:
            response = self.client.get(f"{self.api_url}/{base}")
            response.raise_for_status()
            rates = {
                code.upper(): Decimal(str(value))
                for code, value in response.json()["rates"].items()
            }
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            stale = self.cache.get_stale(base)
            if stale is not None:
                logger.warning("Exchange-rate fetch for %s failed (%s); using stale rates.", base, exc)
                return stale
            raise CurrencyConversionError(
                f"Unable to fetch exchange rates for {base}.", base=base
            ) from exc

        self.cache.put(base, rates)
        logger.debug("Fetched %d exchange rates for %s", len(rates), base)
        return rates

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        """Convert ``amount`` and round half-up to cents."""
        amount = Decimal(str(amount))
        if from_currency.upper() == to_currency.upper():
            return amount.quantize(CENTS, rounding=ROUND_HALF_UP)

        rate = self.get_rates(from_currency).get(to_currency.upper())
        if rate is None:
            raise CurrencyConversionError(
                f"Exchange rate not found for {from_currency.upper()}->{to_currency.upper()}.",
                from_currency=from_currency,
                to_currency=to_currency,
            )
        return (amount * rate).quantize(CENTS, rounding=ROUND_HALF_UP)

    def close(self) -> None:
        self.client.close()
