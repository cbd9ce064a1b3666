"""Per-symbol quote polling.

One asyncio task per actively subscribed symbol. The task fetches once
immediately, then every ``interval`` seconds. Fetches for one symbol never
overlap: the loop awaits each fetch before sleeping, so a slow fetch delays
the next cycle instead of running beside it.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from quote_relay.errors import UpstreamUnavailable
from quote_relay.providers.core import MarketDataProviderABC
from quote_relay.schemas import Quote

logger = logging.getLogger(__name__)

# (quote, initial) -> None; initial is True for the out-of-cycle first fetch
QuoteHandler = Callable[[Quote, bool], Awaitable[None]]

DEFAULT_POLL_INTERVAL = 30.0


@dataclass(eq=False)
class PollHandle:
    """Cancellable handle to one symbol's poll task.

    Once ``active`` is False the handle is released: any result still in
    flight is discarded and never published. ``handling`` is True while a
    fetched quote is being published and evaluated; stop() never cancels
    the task during that window.
    """

    symbol: str
    task: asyncio.Task | None = None
    active: bool = True
    handling: bool = False
    ticks: int = 0


class QuotePoller:
    """Owns the poll tasks; started and stopped by the subscription registry."""

    def __init__(
        self,
        provider: MarketDataProviderABC,
        on_quote: QuoteHandler,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._provider = provider
        self._on_quote = on_quote
        self._interval = interval
        self._handles: set[PollHandle] = set()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def active_symbols(self) -> list[str]:
        return sorted(h.symbol for h in self._handles)

    def start(self, symbol: str) -> PollHandle:
        """Start polling a symbol; the first fetch happens right away."""
        handle = PollHandle(symbol=symbol)
        handle.task = asyncio.create_task(self._run(handle), name=f"poll:{symbol}")
        self._handles.add(handle)
        logger.debug("Started price polling for %s", symbol)
        return handle

    def stop(self, handle: PollHandle) -> None:
        """Release a handle and end its task. Idempotent.

        A task sleeping or fetching is cancelled. A task running the quote
        handler finishes it (alert writes and their notifications stay paired)
        and then exits because the handle is inactive.
        """
        if not handle.active:
            return
        handle.active = False
        self._handles.discard(handle)
        if handle.task is not None and not handle.handling:
            handle.task.cancel()
        logger.debug("Stopped price polling for %s", handle.symbol)

    async def close(self) -> None:
        """Stop every poll task and wait for them to finish."""
        handles = list(self._handles)
        for handle in handles:
            self.stop(handle)
        tasks = [h.task for h in handles if h.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def fetch(self, symbol: str) -> Quote:
        """Fetch one quote; any provider failure becomes UpstreamUnavailable."""
        try:
            return await self._provider.get_quote(symbol)
        except Exception as exc:
            raise UpstreamUnavailable(symbol, exc) from exc

    async def _run(self, handle: PollHandle) -> None:
        loop = asyncio.get_running_loop()
        initial = True
        while handle.active:
            started = loop.time()
            await self._tick(handle, initial)
            initial = False
            if not handle.active:
                break
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self._interval - elapsed))

    async def _tick(self, handle: PollHandle, initial: bool) -> None:
        handle.ticks += 1
        try:
            quote = await self.fetch(handle.symbol)
        except UpstreamUnavailable as exc:
            # Skip this cycle; the next one runs on schedule.
            logger.warning(
                "Failed to fetch %sprice for %s: %s",
                "initial " if initial else "",
                handle.symbol,
                exc.cause,
            )
            return
        if not handle.active:
            logger.debug("Discarding quote for %s: polling stopped", handle.symbol)
            return
        handle.handling = True
        try:
            await self._on_quote(quote, initial)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Quote handler failed for %s", handle.symbol)
        finally:
            handle.handling = False
