import threading
import time

import pytest
import requests

from margin_analysis.core.exceptions import RateUnavailable
from margin_analysis.utils import currency
from margin_analysis.utils.currency import (
    CurrencyService,
    DatabaseRateStore,
    ExchangeRateApiSource,
    RateCache,
)

from tests.conftest import FakeRateSource, FakeRateStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_service(store_rates=None, source=None, clock=None):
    store = FakeRateStore(store_rates)
    service = CurrencyService(
        store,
        source or FakeRateSource(),
        cache_hours=4,
        clock=clock or FakeClock(),
    )
    return service, store


def test_usd_is_identity():
    service, store = make_service()
    assert service.get_rate("USD") == 1.0
    assert service.convert_to_usd(1234.5, "USD") == 1234.5
    assert store.get_calls == 0


def test_cache_hit_skips_store():
    service, store = make_service({"AUD": 0.65})
    service.initialize_cache()

    assert service.convert_to_usd(100000, "AUD") == pytest.approx(65000)
    assert store.get_calls == 0


def test_expired_cache_falls_through_to_store():
    clock = FakeClock()
    service, store = make_service({"EUR": 1.08}, clock=clock)
    service.initialize_cache()

    clock.now = 4 * 60 * 60 + 1
    store.rates["EUR"] = 1.10

    assert service.get_rate("EUR") == 1.10
    assert store.get_calls == 1


def test_cache_still_fresh_at_window_edge():
    clock = FakeClock()
    service, store = make_service({"EUR": 1.08}, clock=clock)
    service.initialize_cache()

    clock.now = 4 * 60 * 60
    assert service.get_rate("EUR") == 1.08
    assert store.get_calls == 0


def test_store_miss_triggers_refresh():
    source = FakeRateSource({"AUD": 0.66, "EUR": 1.09})
    service, store = make_service(source=source)

    assert service.get_rate("AUD") == 0.66
    assert source.calls == 1
    assert store.rates == {"AUD": 0.66, "EUR": 1.09, "USD": 1.0}

    # refresh re-seeded the cache
    assert service.get_rate("EUR") == 1.09
    assert store.get_calls == 1
    assert source.calls == 1


def test_refresh_pins_usd():
    source = FakeRateSource({"USD": 0.5, "GBP": 1.3})
    service, store = make_service(source=source)

    rates = service.refresh_rates()
    assert rates["USD"] == 1.0
    assert store.rates["USD"] == 1.0


def test_all_lookups_fail_raises():
    service, _ = make_service()
    with pytest.raises(RateUnavailable) as exc:
        service.convert_to_usd(100, "GBP")
    assert exc.value.currency_code == "GBP"


def test_refresh_without_requested_currency_raises():
    service, _ = make_service(source=FakeRateSource({"AUD": 0.66}))
    with pytest.raises(RateUnavailable):
        service.get_rate("NZD")


def test_refresh_with_empty_response_raises():
    service, store = make_service(source=FakeRateSource({}))
    with pytest.raises(RateUnavailable):
        service.refresh_rates()
    assert store.rates == {}


def test_refresh_source_error_raises():
    service, _ = make_service(source=FakeRateSource(error=requests.Timeout("slow")))
    with pytest.raises(RateUnavailable):
        service.refresh_rates()


def test_store_error_falls_through_to_refresh():
    class BrokenStore(FakeRateStore):
        def get(self, currency_code):
            raise RuntimeError("database is down")

    service = CurrencyService(
        BrokenStore(), FakeRateSource({"SGD": 0.74}), cache_hours=4, clock=FakeClock()
    )
    assert service.get_rate("SGD") == 0.74


def test_invalidate_drops_single_rate():
    service, store = make_service({"AUD": 0.65, "EUR": 1.08})
    service.initialize_cache()
    store.rates["AUD"] = 0.70

    service.invalidate("AUD")

    assert service.get_rate("AUD") == 0.70
    assert service.get_rate("EUR") == 1.08
    assert store.get_calls == 1


def test_rate_cache_replace_resets_age():
    clock = FakeClock()
    cache = RateCache(10, clock=clock)
    assert cache.get("AUD") is None

    cache.replace({"AUD": 0.65})
    clock.now = 11
    assert cache.get("AUD") is None

    cache.replace({"AUD": 0.66})
    assert cache.get("AUD") == 0.66


def test_refreshes_are_serialized():
    class SlowSource:
        def __init__(self):
            self.active = 0
            self.max_active = 0
            self.guard = threading.Lock()

        def fetch_latest(self):
            with self.guard:
                self.active += 1
                self.max_active = max(self.max_active, self.active)
            time.sleep(0.02)
            with self.guard:
                self.active -= 1
            return {"AUD": 0.65}

    source = SlowSource()
    service = CurrencyService(FakeRateStore(), source, cache_hours=4)

    threads = [threading.Thread(target=service.refresh_rates) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert source.max_active == 1


def test_api_source_inverts_quoted_rates(monkeypatch):
    calls = {}

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"base": "USD", "rates": {"USD": 1, "AUD": 1.6, "EUR": 0.8, "JPY": 150}}

    def fake_get(url, timeout):
        calls["url"] = url
        calls["timeout"] = timeout
        return FakeResponse()

    monkeypatch.setattr(currency.requests, "get", fake_get)

    source = ExchangeRateApiSource(url="https://rates.example/latest/USD", timeout=3)
    rates = source.fetch_latest()

    assert calls == {"url": "https://rates.example/latest/USD", "timeout": 3}
    assert rates == {"AUD": pytest.approx(0.625), "EUR": pytest.approx(1.25)}


def test_api_source_propagates_http_errors(monkeypatch):
    class FailingResponse:
        def raise_for_status(self):
            raise requests.HTTPError("500 Server Error")

    monkeypatch.setattr(currency.requests, "get", lambda url, timeout: FailingResponse())

    with pytest.raises(requests.HTTPError):
        ExchangeRateApiSource(url="https://rates.example").fetch_latest()


def test_database_store_round_trip(session_factory):
    store = DatabaseRateStore(session_factory)
    assert store.get("AUD") is None

    store.upsert("AUD", 0.65)
    store.upsert_many({"AUD": 0.66, "NZD": 0.61})

    assert store.get("AUD") == 0.66
    assert [row.currency_code for row in store.list_all()] == ["AUD", "NZD"]


def test_database_backed_service_persists_refresh(session_factory):
    service = CurrencyService(
        DatabaseRateStore(session_factory),
        FakeRateSource({"GBP": 1.3}),
        cache_hours=4,
    )
    assert service.convert_to_usd(100, "GBP") == pytest.approx(130)

    store = DatabaseRateStore(session_factory)
    assert store.get("GBP") == 1.3
    assert store.get("USD") == 1.0


def test_store_read_racing_refresh_keeps_refreshed_rate():
    class RacingStore(FakeRateStore):
        """Returns the rate it read, but lets a refresh commit first."""

        service = None

        def get(self, currency_code):
            rate = super().get(currency_code)
            if self.service is not None and self.get_calls == 1:
                self.service.refresh_rates()
            return rate

    store = RacingStore({"AUD": 0.60})
    service = CurrencyService(store, FakeRateSource({"AUD": 0.70}), cache_hours=4, clock=FakeClock())
    store.service = service

    assert service.get_rate("AUD") == 0.70
    assert service.cache.is_fresh()
    assert service.cache.get("AUD") == 0.70
    assert store.rates["AUD"] == 0.70
    assert service.get_rate("AUD") == 0.70


def test_rate_cache_rejects_put_from_before_a_reload():
    cache = RateCache(60, clock=FakeClock())
    generation = cache.generation

    cache.replace({"AUD": 0.70, "EUR": 1.10})

    assert cache.put("AUD", 0.60, generation) is False
    assert cache.put("GBP", 1.27, cache.generation) is True
    assert cache.snapshot() == {"AUD": 0.70, "EUR": 1.10, "GBP": 1.27}
