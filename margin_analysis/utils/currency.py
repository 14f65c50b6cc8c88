"""
Currency normalization: local currency amounts -> USD.

Rates are resolved through an ordered chain of lookups, each one passing to
the next when it has no answer:

1. RateCache    - in-memory rates younger than the freshness window
2. StoreLookup  - the persisted exchange_rates table
3. RefreshLookup - a refresh from the external rate API, which rewrites the
                   whole table and re-seeds the cache

If every lookup comes back empty, RateUnavailable is raised. There is no
fallback to a default or zero rate.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol

import requests
from sqlalchemy.orm import Session

from margin_analysis.core.config import settings
from margin_analysis.core.exceptions import RateUnavailable
from margin_analysis.models.rates import ExchangeRate

logger = logging.getLogger(__name__)

BASE_CURRENCY = "USD"
SUPPORTED_CURRENCIES = ["USD", "AUD", "EUR", "GBP", "SGD", "NZD"]
REFRESHED_CURRENCIES = ["AUD", "EUR", "GBP", "SGD", "NZD"]


# -------------------------
# collaborator interfaces
# -------------------------

class RateStore(Protocol):
    def get(self, currency_code: str) -> Optional[float]: ...

    def upsert(self, currency_code: str, rate_to_usd: float) -> None: ...

    def list_all(self) -> List[ExchangeRate]: ...


class RateSource(Protocol):
    def fetch_latest(self) -> Dict[str, float]: ...


class DatabaseRateStore:
    """Rate store backed by the exchange_rates table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, currency_code: str) -> Optional[float]:
        db = self.session_factory()
        try:
            row = db.query(ExchangeRate).filter(ExchangeRate.currency_code == currency_code).first()
            return row.rate_to_usd if row else None
        finally:
            db.close()

    def upsert(self, currency_code: str, rate_to_usd: float) -> None:
        self.upsert_many({currency_code: rate_to_usd})

    def upsert_many(self, rates: Dict[str, float]) -> None:
        db = self.session_factory()
        try:
            for code, rate in rates.items():
                row = db.query(ExchangeRate).filter(ExchangeRate.currency_code == code).first()
                if row:
                    row.rate_to_usd = rate
                    row.updated_at = datetime.utcnow()
                else:
                    db.add(ExchangeRate(currency_code=code, rate_to_usd=rate))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_all(self) -> List[ExchangeRate]:
        db = self.session_factory()
        try:
            return db.query(ExchangeRate).order_by(ExchangeRate.currency_code).all()
        finally:
            db.close()


class ExchangeRateApiSource:
    """
    Fetch rates from an exchangerate-api style endpoint quoted against USD.

    The API returns units of currency per 1 USD; we store the inverse
    (USD per 1 unit of currency).
    """

    def __init__(self, url: str = None, timeout: float = None, currencies: List[str] = None):
        self.url = url or settings.exchange_rate_api_url
        self.timeout = timeout if timeout is not None else settings.exchange_rate_timeout
        self.currencies = currencies or REFRESHED_CURRENCIES

    def fetch_latest(self) -> Dict[str, float]:
        response = requests.get(self.url, timeout=self.timeout)
        response.raise_for_status()
        quoted = (response.json() or {}).get("rates") or {}

        rates = {}
        for code in self.currencies:
            per_usd = quoted.get(code)
            if per_usd:
                rates[code] = 1 / per_usd
        return rates


# -------------------------
# cache + lookup chain
# -------------------------

class RateCache:
    """
    Process-wide rate snapshot with a single freshness timestamp.

    Every write goes through one lock. `generation` counts full loads
    (refresh or startup); a single-rate write taken from the store is only
    applied if no full load happened since the store was read.
    """

    def __init__(self, max_age_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_age_seconds = max_age_seconds
        self.clock = clock
        self._rates: Dict[str, float] = {}
        self._loaded_at: Optional[float] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def is_fresh(self) -> bool:
        return self._loaded_at is not None and (self.clock() - self._loaded_at) <= self.max_age_seconds

    def get(self, currency_code: str) -> Optional[float]:
        if not self.is_fresh():
            return None
        # dict reads are atomic; writers swap in a new dict
        return self._rates.get(currency_code)

    def put(self, currency_code: str, rate: float, generation: Optional[int] = None) -> bool:
        """Set one rate; skipped (returns False) if `generation` is stale."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            rates = dict(self._rates)
            rates[currency_code] = rate
            self._rates = rates
            return True

    def replace(self, rates: Dict[str, float]) -> None:
        with self._lock:
            self._rates = dict(rates)
            self._loaded_at = self.clock()
            self._generation += 1

    def merge(self, rates: Dict[str, float]) -> None:
        """Overlay `rates` on the current snapshot and mark it fresh."""
        with self._lock:
            merged = dict(self._rates)
            merged.update(rates)
            self._rates = merged
            self._loaded_at = self.clock()
            self._generation += 1

    def drop(self, currency_code: str) -> None:
        with self._lock:
            rates = dict(self._rates)
            rates.pop(currency_code, None)
            self._rates = rates

    def snapshot(self) -> Dict[str, float]:
        return dict(self._rates)

    def clear(self) -> None:
        with self._lock:
            self._rates = {}
            self._loaded_at = None
            self._generation += 1


class CacheLookup:
    def __init__(self, cache: RateCache):
        self.cache = cache

    def __call__(self, currency_code: str) -> Optional[float]:
        return self.cache.get(currency_code)


class StoreLookup:
    def __init__(self, store: RateStore, cache: RateCache):
        self.store = store
        self.cache = cache

    def __call__(self, currency_code: str) -> Optional[float]:
        generation = self.cache.generation
        try:
            rate = self.store.get(currency_code)
        except Exception as e:
            logger.error("Error fetching exchange rate for %s from store: %s", currency_code, e)
            return None
        if rate and not self.cache.put(currency_code, rate, generation):
            # a refresh landed while the store was read; keep its rates
            logger.debug("Discarding stale store rate for %s", currency_code)
            return self.cache.get(currency_code) or rate
        return rate or None


class RefreshLookup:
    def __init__(self, service: "CurrencyService"):
        self.service = service

    def __call__(self, currency_code: str) -> Optional[float]:
        try:
            rates = self.service.refresh_rates()
        except RateUnavailable:
            return None
        return rates.get(currency_code)


class CurrencyService:
    """
    Converts amounts to USD using the cache -> store -> refresh chain.

    Refreshes are serialized with a lock so two callers never rewrite the
    rate table at the same time.
    """

    def __init__(
        self,
        store: RateStore,
        source: RateSource,
        cache_hours: float = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        hours = cache_hours if cache_hours is not None else settings.currency_cache_hours
        self.store = store
        self.source = source
        self.cache = RateCache(hours * 60 * 60, clock=clock)
        self._refresh_lock = threading.Lock()
        self.lookups = [
            CacheLookup(self.cache),
            StoreLookup(self.store, self.cache),
            RefreshLookup(self),
        ]

    def get_rate(self, currency_code: str) -> float:
        if currency_code == BASE_CURRENCY:
            return 1.0

        for lookup in self.lookups:
            rate = lookup(currency_code)
            if rate:
                return rate

        raise RateUnavailable(currency_code)

    def convert_to_usd(self, amount: float, currency_code: str) -> float:
        if currency_code == BASE_CURRENCY:
            return amount
        return amount * self.get_rate(currency_code)

    def refresh_rates(self) -> Dict[str, float]:
        """
        Fetch the latest rates, persist them and re-seed the cache in one pass.

        USD is always pinned to 1.0. Raises RateUnavailable when the source
        fails or returns nothing.
        """
        with self._refresh_lock:
            logger.info("Fetching latest exchange rates from %s", getattr(self.source, "url", "source"))
            try:
                fetched = self.source.fetch_latest()
            except Exception as e:
                logger.error("Error fetching exchange rates from API: %s", e)
                raise RateUnavailable("ALL") from e

            if not fetched:
                logger.error("Exchange rate API returned no usable rates")
                raise RateUnavailable("ALL")

            rates = dict(fetched)
            rates[BASE_CURRENCY] = 1.0

            try:
                if hasattr(self.store, "upsert_many"):
                    self.store.upsert_many(rates)
                else:
                    for code, rate in rates.items():
                        self.store.upsert(code, rate)
            except Exception as e:
                logger.error("Error persisting refreshed exchange rates: %s", e)
                raise RateUnavailable("ALL") from e

            self.cache.merge(rates)
            logger.info("Exchange rates updated successfully: %s", sorted(rates))
            return rates

    def initialize_cache(self) -> None:
        """Load every persisted rate into the cache."""
        rates = {row.currency_code: row.rate_to_usd for row in self.store.list_all()}
        rates[BASE_CURRENCY] = 1.0
        self.cache.replace(rates)
        logger.info("Currency cache initialized with %d rates", len(rates))

    def invalidate(self, currency_code: str = None) -> None:
        """Drop cached rates so the next lookup goes to the store."""
        if currency_code is None:
            self.cache.clear()
        else:
            self.cache.drop(currency_code)


_currency_service: Optional[CurrencyService] = None
_service_lock = threading.Lock()


def get_currency_service() -> CurrencyService:
    """FastAPI dependency returning the process-wide currency service."""
    global _currency_service
    if _currency_service is None:
        with _service_lock:
            if _currency_service is None:
                from margin_analysis.database import SessionLocal
                _currency_service = CurrencyService(
                    store=DatabaseRateStore(SessionLocal),
                    source=ExchangeRateApiSource(),
                )
    return _currency_service
