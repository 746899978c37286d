import asyncio

import httpx
import pytest

from cost_manager.core.errors import RateAcquisitionError, ValidationError
from cost_manager.models.rates import RateTable
from cost_manager.services.rates.provider import RateProvider
from cost_manager.services.rates.source import SourceMode
from tests.conftest import RATES, RATES_URL, RatesServer, rates, refuse_network, run

INLINE = rates(GBP=2.0, ILS=4.0)


def make_provider(db, handler, url=RATES_URL):
    return RateProvider(db, default_url=url, retries=0, transport=httpx.MockTransport(handler))


def test_url_mode_fetches_once_per_session(provider, server):
    async def scenario():
        first = await provider.get_active_rates()
        second = await provider.get_active_rates()
        return first, second

    first, second = run(scenario())
    assert first == RATES
    assert second is first
    assert server.calls == 1


def test_fetch_defeats_caches(provider, server):
    run(provider.get_active_rates())
    request = server.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/rates.json"
    assert request.url.params["_"].isdigit()
    assert request.headers["cache-control"] == "no-cache"
    assert request.headers["pragma"] == "no-cache"


def test_cache_buster_appends_to_existing_query(db, server):
    provider = make_provider(db, server, url=RATES_URL + "?v=2")
    run(provider.get_active_rates())
    url = server.requests[0].url
    assert url.params["v"] == "2"
    assert url.params["_"].isdigit()
    assert str(url).startswith(RATES_URL + "?v=2&_=")


def test_new_session_refetches(db, server):
    run(make_provider(db, server).get_active_rates())
    run(make_provider(db, server).get_active_rates())
    assert server.calls == 2


def test_refresh_clears_cache_and_refetches(provider, server):
    async def scenario():
        await provider.get_active_rates()
        server.body = rates(ILS=3.7)
        refreshed = await provider.refresh()
        active = await provider.get_active_rates()
        return refreshed, active

    refreshed, active = run(scenario())
    assert refreshed["ILS"] == 3.7
    assert active is refreshed
    assert server.calls == 2


def test_fetch_failure_raises_and_leaves_cache_empty(db):
    server = RatesServer(status_code=503)
    provider = make_provider(db, server)
    with pytest.raises(RateAcquisitionError) as exc:
        run(provider.get_active_rates())
    assert "503" in exc.value.message
    assert provider.cached_rates() is None


def test_transport_error_is_rate_acquisition_error(db):
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RateAcquisitionError):
        run(make_provider(db, broken).get_active_rates())


def test_non_json_body_rejected(db):
    provider = make_provider(db, RatesServer(body="<html>oops</html>"))
    with pytest.raises(RateAcquisitionError) as exc:
        run(provider.get_active_rates())
    assert "Invalid JSON" in exc.value.message


def test_schema_failure_names_currency(db):
    body = dict(RATES)
    del body["GBP"]
    provider = make_provider(db, RatesServer(body=body))
    with pytest.raises(RateAcquisitionError) as exc:
        run(provider.get_active_rates())
    assert exc.value.field == "GBP"
    assert "GBP" in exc.value.message
    assert provider.cached_rates() is None


def test_inline_after_url_never_touches_network(db):
    provider = make_provider(db, refuse_network)

    async def scenario():
        await provider.set_source("url", "https://other.example.test/r.json")
        await provider.set_source("inline", INLINE)
        return await provider.get_active_rates()

    assert run(scenario()) == INLINE


def test_inline_replaces_unexpired_url_cache(provider, server):
    async def scenario():
        await provider.get_active_rates()
        await provider.set_source(SourceMode.INLINE, INLINE)
        return await provider.get_active_rates()

    assert run(scenario()) == INLINE
    assert server.calls == 1


def test_switch_to_url_clears_cache(provider, server):
    async def scenario():
        await provider.get_active_rates()
        await provider.set_source("url", RATES_URL)
        assert provider.cached_rates() is None
        await provider.get_active_rates()

    run(scenario())
    assert server.calls == 2


def test_empty_url_falls_back_to_default(provider):
    source = run(provider.set_source("url", "  "))
    assert source.url == RATES_URL


@pytest.mark.parametrize("url", ["ftp://example.test/r.json", "not a url", 42])
def test_invalid_url_rejected(provider, url):
    with pytest.raises(ValidationError):
        run(provider.set_source("url", url))


def test_invalid_inline_table_leaves_source_unchanged(provider):
    bad = dict(INLINE)
    del bad["EURO"]
    with pytest.raises(ValidationError) as exc:
        run(provider.set_source("inline", bad))
    assert exc.value.field == "EURO"
    assert run(provider.current_source()).mode is SourceMode.URL


def test_unknown_mode_rejected(provider):
    with pytest.raises(ValidationError):
        run(provider.set_source("carrier-pigeon", None))


def test_source_choice_survives_restart(db):
    run(make_provider(db, refuse_network).set_source("inline-json", INLINE))
    restarted = make_provider(db, refuse_network)
    source = run(restarted.current_source())
    assert source.mode is SourceMode.INLINE
    assert run(restarted.get_active_rates()) == INLINE


def test_url_choice_survives_restart(db, server):
    custom = "https://mirror.example.test/rates.json"
    run(make_provider(db, server).set_source("url", custom))
    restarted = make_provider(db, server)
    run(restarted.get_active_rates())
    assert str(server.requests[-1].url).startswith(custom)


def test_refresh_in_inline_mode_keeps_inline_active(provider, server):
    async def scenario():
        await provider.set_source("inline", INLINE)
        fetched = await provider.refresh()
        active = await provider.get_active_rates()
        return fetched, active

    fetched, active = run(scenario())
    assert fetched == RATES
    assert active == INLINE
    assert server.calls == 1


def test_concurrent_callers_share_one_fetch(db):
    calls = []

    async def slow(request):
        calls.append(request)
        await asyncio.sleep(0.05)
        return httpx.Response(200, json=RATES)

    provider = make_provider(db, slow)

    async def scenario():
        return await asyncio.gather(
            provider.get_active_rates(),
            provider.get_active_rates(),
            provider.refresh(),
        )

    results = run(scenario())
    assert len(calls) == 1
    assert all(r is results[0] for r in results)


def test_concurrent_failure_seen_by_all_callers(db):
    calls = []

    async def failing(request):
        calls.append(request)
        await asyncio.sleep(0.01)
        return httpx.Response(500)

    provider = make_provider(db, failing)

    async def scenario():
        return await asyncio.gather(
            provider.get_active_rates(),
            provider.get_active_rates(),
            return_exceptions=True,
        )

    results = run(scenario())
    assert len(calls) == 1
    assert all(isinstance(r, RateAcquisitionError) for r in results)


def test_session_rates_does_not_fetch(db):
    provider = make_provider(db, refuse_network)
    assert run(provider.session_rates()) is None


def test_reset_forgets_session_cache(provider, server):
    run(provider.get_active_rates())
    provider.reset()
    assert provider.cached_rates() is None
    run(provider.get_active_rates())
    assert server.calls == 2


def test_inline_mode_without_table_is_validation_error(db):
    db.set_metadata({"rates_source": "inline"})
    provider = make_provider(db, refuse_network)
    with pytest.raises(ValidationError):
        run(provider.get_active_rates())


def test_set_source_accepts_rate_table_instance(provider):
    table = RateTable(INLINE)
    source = run(provider.set_source("inline", table))
    assert source.inline is table


def test_oversized_integer_rate_is_rate_acquisition_error(db):
    body = '{"USD": 1, "GBP": 1' + "0" * 400 + ', "EURO": 0.7, "ILS": 3.4}'
    provider = make_provider(db, RatesServer(body=body))
    with pytest.raises(RateAcquisitionError) as exc:
        run(provider.get_active_rates())
    assert exc.value.field == "GBP"
    assert provider.cached_rates() is None


def test_switch_to_url_during_fetch_forces_refetch(db):
    calls = []

    async def slow_then_fresh(request):
        calls.append(request)
        if len(calls) == 1:
            await asyncio.sleep(0.05)
            return httpx.Response(200, json=rates(ILS=1.0))
        return httpx.Response(200, json=RATES)

    provider = make_provider(db, slow_then_fresh)

    async def scenario():
        await provider.current_source()
        stale = asyncio.ensure_future(provider.get_active_rates())
        while not calls:
            await asyncio.sleep(0.001)
        await provider.set_source("url", RATES_URL)
        active = await provider.get_active_rates()
        return await stale, active

    stale, active = run(scenario())
    assert len(calls) == 2
    assert stale["ILS"] == 1.0
    assert active == RATES
    assert provider.cached_rates() == RATES


def test_reset_during_fetch_discards_late_result(db):
    calls = []

    async def slow(request):
        calls.append(request)
        await asyncio.sleep(0.02)
        return httpx.Response(200, json=RATES)

    provider = make_provider(db, slow)

    async def scenario():
        stale = asyncio.ensure_future(provider.get_active_rates())
        while not calls:
            await asyncio.sleep(0.001)
        provider.reset()
        await stale

    run(scenario())
    assert provider.cached_rates() is None
