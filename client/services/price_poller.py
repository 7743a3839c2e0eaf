"""
Live market prices for a fixed watch-list.

Refreshes once immediately on start and then on a fixed interval. Only one
refresh is in flight at a time; a tick that lands while the previous
refresh is still pending is skipped. A failed refresh keeps the previous
snapshot and is only logged.
"""

import asyncio
from typing import Callable, Optional

from config import settings
from models import PriceTick
from services.prism_api import AuxiliaryFetchError, PrismAPIClient, prism_api
from utils.logger import get_logger

logger = get_logger("price_poller")


def _exception_text(exc: Exception) -> str:
    text = str(exc).strip()
    return text if text else repr(exc)


class LivePricePoller:
    """Keeps ``symbol -> PriceTick`` current while the consuming view is active."""

    def __init__(
        self,
        api: Optional[PrismAPIClient] = None,
        symbols: Optional[list[str]] = None,
        interval: Optional[float] = None,
    ):
        self._api = api or prism_api
        self._symbols = list(symbols or settings.TOKEN_WATCHLIST)
        self._interval = interval if interval is not None else settings.PRICE_POLL_INTERVAL_SECONDS
        self._prices: dict[str, PriceTick] = {}
        self._callbacks: list[Callable] = []
        self._running = False
        self._busy = False
        self._task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._stats = {"refreshes": 0, "failures": 0, "skipped": 0}

    @property
    def prices(self) -> dict[str, PriceTick]:
        return dict(self._prices)

    @property
    def symbols(self) -> list[str]:
        return list(self._symbols)

    @property
    def is_running(self) -> bool:
        return self._running

    def get(self, symbol: str) -> Optional[PriceTick]:
        return self._prices.get(symbol.upper())

    def add_callback(self, callback: Callable):
        """Register a sync or async callable receiving each new snapshot."""
        self._callbacks.append(callback)

    # ==================== LIFECYCLE ====================

    async def start(self):
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "Started price poller",
            symbols=self._symbols,
            interval_seconds=self._interval,
        )

    async def stop(self):
        if not self._running and self._task is None:
            return
        self._running = False
        for task in (self._task, self._inflight):
            if task and not task.done():
                task.cancel()
        for task in (self._task, self._inflight):
            if task is None:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._inflight = None
        logger.info("Stopped price poller", stats=self._stats)

    async def _poll_loop(self):
        while self._running:
            if self._inflight is None or self._inflight.done():
                self._inflight = asyncio.create_task(self.refresh())
            else:
                self._stats["skipped"] += 1
                logger.debug("Price refresh still in flight, skipping tick")
            await asyncio.sleep(self._interval)

    # ==================== REFRESH ====================

    async def refresh(self) -> bool:
        """Fetch the watch-list once. Returns ``True`` when the snapshot changed hands."""
        if self._busy:
            self._stats["skipped"] += 1
            return False

        self._busy = True
        try:
            ticks = await self._api.get_token_prices(self._symbols)
        except AuxiliaryFetchError as exc:
            self._stats["failures"] += 1
            logger.warning(
                "Price refresh failed, keeping previous prices",
                error=exc.message,
                cached_symbols=len(self._prices),
            )
            return False
        finally:
            self._busy = False

        self._prices = {tick.symbol: tick for tick in ticks}
        self._stats["refreshes"] += 1
        logger.debug("Prices refreshed", symbols=list(self._prices))
        await self._notify(self.prices)
        return True

    async def _notify(self, snapshot: dict[str, PriceTick]):
        for callback in self._callbacks:
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "Price callback error",
                    error_type=type(e).__name__,
                    error=_exception_text(e),
                    callback=getattr(callback, "__name__", str(callback)),
                )
