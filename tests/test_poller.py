"""Tests for QuotePoller: immediate fetch, failure skipping, no overlap, discard on stop."""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_quote, wait_for
from quote_relay.errors import UpstreamUnavailable
from quote_relay.providers.core import MarketDataProviderABC
from quote_relay.realtime import QuotePoller


def provider_with(side_effect):
    mock = MagicMock(spec=MarketDataProviderABC)
    mock.get_quote = AsyncMock(side_effect=side_effect)
    return mock


@pytest.fixture
def handler():
    return AsyncMock()


async def test_first_fetch_is_immediate_and_marked_initial(handler):
    provider = provider_with(lambda s: make_quote(s, 10.0))
    poller = QuotePoller(provider, handler, interval=3600)

    handle = poller.start("AAPL")
    await wait_for(lambda: handler.await_count == 1)

    quote, initial = handler.await_args.args
    assert quote.symbol == "AAPL"
    assert initial is True
    assert handle.ticks == 1
    await poller.close()


async def test_later_ticks_are_not_initial(handler):
    provider = provider_with(lambda s: make_quote(s, 10.0))
    poller = QuotePoller(provider, handler, interval=0.01)

    poller.start("AAPL")
    await wait_for(lambda: handler.await_count >= 3)
    await poller.close()

    flags = [call.args[1] for call in handler.await_args_list]
    assert flags[0] is True
    assert not any(flags[1:])


async def test_failed_tick_is_skipped_and_next_tick_resumes(handler):
    provider = provider_with(
        [make_quote("MSFT", 1.0), RuntimeError("rate limited"), make_quote("MSFT", 3.0)]
        + [make_quote("MSFT", 4.0)] * 50
    )
    poller = QuotePoller(provider, handler, interval=0.01)

    handle = poller.start("MSFT")
    await wait_for(lambda: handler.await_count >= 2)
    await poller.close()

    prices = [call.args[0].price for call in handler.await_args_list]
    assert prices[:2] == [1.0, 3.0]
    assert handle.ticks >= 3


async def test_initial_fetch_failure_is_swallowed(handler, caplog):
    provider = provider_with(RuntimeError("boom"))
    poller = QuotePoller(provider, handler, interval=3600)

    handle = poller.start("AAPL")
    await wait_for(lambda: handle.ticks == 1)
    await asyncio.sleep(0)

    handler.assert_not_awaited()
    assert handle.active
    assert not handle.task.done()
    assert "Failed to fetch initial price for AAPL" in caplog.text
    await poller.close()


async def test_fetch_wraps_provider_errors():
    provider = provider_with(ValueError("Stock 'ZZZZ' not found"))
    poller = QuotePoller(provider, AsyncMock())

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await poller.fetch("ZZZZ")

    assert exc_info.value.symbol == "ZZZZ"
    assert isinstance(exc_info.value.cause, ValueError)


async def test_handler_error_does_not_stop_polling():
    provider = provider_with(lambda s: make_quote(s, 10.0))
    handler = AsyncMock(side_effect=RuntimeError("store down"))
    poller = QuotePoller(provider, handler, interval=0.01)

    handle = poller.start("AAPL")
    await wait_for(lambda: handler.await_count >= 2)

    assert handle.active
    await poller.close()


async def test_slow_fetch_never_overlaps():
    in_flight = 0
    peak = 0

    async def slow_quote(symbol):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.03)
        in_flight -= 1
        return make_quote(symbol, 1.0)

    provider = provider_with(slow_quote)
    handler = AsyncMock()
    poller = QuotePoller(provider, handler, interval=0.001)

    poller.start("AAPL")
    await wait_for(lambda: handler.await_count >= 3)
    await poller.close()

    assert peak == 1


async def test_stop_discards_in_flight_result(handler):
    release = asyncio.Event()
    started = asyncio.Event()

    async def blocked_quote(symbol):
        started.set()
        await release.wait()
        return make_quote(symbol, 1.0)

    provider = provider_with(blocked_quote)
    poller = QuotePoller(provider, handler, interval=3600)

    handle = poller.start("TSLA")
    await started.wait()
    poller.stop(handle)
    release.set()
    await asyncio.gather(handle.task, return_exceptions=True)

    handler.assert_not_awaited()
    assert not handle.active
    assert poller.active_symbols == []


async def test_stop_is_idempotent_and_close_waits_for_tasks(handler):
    provider = provider_with(lambda s: make_quote(s, 1.0))
    poller = QuotePoller(provider, handler, interval=3600)

    first = poller.start("AAPL")
    second = poller.start("MSFT")
    poller.stop(first)
    poller.stop(first)
    await poller.close()

    assert second.task.done()
    assert poller.active_symbols == []


async def test_stop_during_handler_lets_it_finish():
    entered = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def handler(quote, initial):
        entered.set()
        await release.wait()
        finished.append(quote.symbol)

    provider = provider_with(lambda s: make_quote(s, 1.0))
    poller = QuotePoller(provider, handler, interval=0.001)

    handle = poller.start("AAPL")
    await entered.wait()
    poller.stop(handle)
    assert not handle.task.cancelling()
    release.set()
    await asyncio.wait_for(handle.task, timeout=2.0)

    assert finished == ["AAPL"]
    assert handle.ticks == 1
    assert not handle.handling
    assert poller.active_symbols == []


async def test_close_waits_for_running_handler():
    entered = asyncio.Event()
    finished = []

    async def handler(quote, initial):
        entered.set()
        await asyncio.sleep(0.05)
        finished.append(quote.symbol)

    poller = QuotePoller(provider_with(lambda s: make_quote(s, 1.0)), handler, interval=3600)

    poller.start("MSFT")
    await entered.wait()
    await poller.close()

    assert finished == ["MSFT"]
