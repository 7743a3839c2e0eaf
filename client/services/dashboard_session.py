"""
Dashboard session: wires selection, acquisition, prices and the live feed.

Lifecycle rules:

- At most one address is active. Selecting a new one cancels a pending
  acquisition and awaits teardown of the previous feed (push connection
  closed, poll timer cancelled) before anything starts for the new one.
- The feed attaches only after acquisition for that address succeeded.
- The price poller runs while the session is active, independent of the
  selected address.
- Disconnecting the wallet clears all derived state when the displayed
  profile came from the wallet; a searched profile stays on screen.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

from models import ActivityItem, PriceTick
from services.feed_reconciler import FeedReconciler
from services.identity_resolver import IdentityResolver, ResolvedSelection, SelectionSource
from services.insights_loader import InsightsLoader, InsightsSnapshot
from services.price_poller import LivePricePoller
from services.prism_api import PrismAPIClient, prism_api
from services.profile_acquisition import (
    AcquiredProfile,
    AcquisitionError,
    ProfileAcquisitionEngine,
)
from services.selection_store import SelectionStore
from utils.logger import get_logger
from utils.validation import Identity, InvalidIdentity

logger = get_logger("dashboard_session")


def _exception_text(exc: Exception) -> str:
    text = str(exc).strip()
    return text if text else repr(exc)


@dataclass
class DashboardState:
    selection: Optional[ResolvedSelection] = None
    current: Optional[AcquiredProfile] = None
    loading: bool = False
    error: Optional[str] = None
    feed: list[ActivityItem] = field(default_factory=list)
    prices: dict[str, PriceTick] = field(default_factory=dict)
    connected_wallet: Optional[str] = None


class DashboardSession:
    def __init__(
        self,
        store: SelectionStore,
        api: Optional[PrismAPIClient] = None,
        engine: Optional[ProfileAcquisitionEngine] = None,
        price_poller: Optional[LivePricePoller] = None,
        insights_loader: Optional[InsightsLoader] = None,
        reconciler_factory: Optional[Callable[[str], FeedReconciler]] = None,
        attach_feed: bool = True,
    ):
        self._api = api or prism_api
        self._resolver = IdentityResolver(store)
        self._engine = engine or ProfileAcquisitionEngine(store, api=self._api)
        self._price_poller = price_poller or LivePricePoller(api=self._api)
        self._insights_loader = insights_loader or InsightsLoader(api=self._api)
        self._reconciler_factory = reconciler_factory or (
            lambda address: FeedReconciler(address, api=self._api)
        )
        self._attach_feed_enabled = attach_feed
        self._price_poller.add_callback(self._on_prices)

        self.state = DashboardState()
        self._callbacks: list[Callable] = []
        self._acquire_task: Optional[asyncio.Task] = None
        self._reconciler: Optional[FeedReconciler] = None
        self._active = False
        # Bumped on every selection; stale acquisitions compare against it.
        self._generation = 0

    @property
    def reconciler(self) -> Optional[FeedReconciler]:
        return self._reconciler

    @property
    def is_active(self) -> bool:
        return self._active

    def add_callback(self, callback: Callable):
        """Register a sync or async callable receiving the state after each change."""
        self._callbacks.append(callback)

    # ==================== LIFECYCLE ====================

    async def activate(self):
        if self._active:
            return
        self._active = True
        await self._price_poller.start()

    async def deactivate(self):
        """Stop prices, cancel pending work and tear the feed down."""
        self._active = False
        self._generation += 1
        await self._price_poller.stop()
        await self._cancel_acquisition()
        await self._detach_feed()

    # ==================== SELECTION ====================

    async def load(self, url_address: Optional[str] = None) -> Optional[AcquiredProfile]:
        """Resolve the address to show on entry and acquire it."""
        selection = await self._resolver.resolve(url_address, self.state.connected_wallet)
        if selection is None:
            logger.info("No address to load")
            return None
        return await self._select(selection)

    async def search(self, address: str) -> Optional[AcquiredProfile]:
        selection = ResolvedSelection(
            address=(address or "").strip(), source=SelectionSource.MANUAL_SEARCH
        )
        return await self._select(selection)

    async def on_wallet_connected(self, public_key: str) -> Optional[AcquiredProfile]:
        self.state.connected_wallet = public_key
        logger.info("Wallet connected", address=public_key)
        return await self._select(
            ResolvedSelection(address=public_key, source=SelectionSource.CONNECTED_WALLET)
        )

    async def on_wallet_disconnected(self) -> bool:
        """Returns ``True`` when wallet-derived state was cleared.

        A wallet selection still being acquired counts as wallet-derived: it
        is cancelled before the wallet key is erased, so it can neither reach
        the display nor persist the key again.
        """
        self.state.connected_wallet = None
        current = self.state.current
        selection = self.state.selection
        pending_wallet = (
            self.state.loading and selection is not None and selection.is_wallet_source
        )
        wallet_derived = pending_wallet or (current.is_wallet_profile if current else False)
        if wallet_derived:
            self._generation += 1
            await self._cancel_acquisition()

        cleared = await self._resolver.on_wallet_disconnected(wallet_derived)
        if cleared:
            await self._detach_feed()
            self.state.current = None
            self.state.selection = None
            self.state.feed = []
            self.state.error = None
            self.state.loading = False
            await self._notify()
        return cleared

    async def _select(self, selection: ResolvedSelection) -> Optional[AcquiredProfile]:
        try:
            identity = Identity.parse(selection.address)
        except InvalidIdentity as exc:
            logger.info("Rejected invalid address", source=selection.source.value)
            self.state.error = str(exc)
            await self._notify()
            return None

        self._generation += 1
        generation = self._generation
        await self._cancel_acquisition()
        await self._detach_feed()
        if generation != self._generation:
            return None

        self.state.selection = selection
        self.state.loading = True
        self.state.error = None
        await self._notify()
        if generation != self._generation:
            return None

        task = asyncio.create_task(self._engine.acquire(identity, selection.is_wallet_source))
        self._acquire_task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("Acquisition superseded", address=identity.address)
                return None
            raise
        except AcquisitionError as exc:
            if generation != self._generation:
                return None
            self.state.loading = False
            self.state.error = exc.message
            await self._notify()
            return None
        finally:
            if self._acquire_task is task:
                self._acquire_task = None

        if generation != self._generation:
            return None
        self.state.current = result
        self.state.loading = False
        if self._attach_feed_enabled:
            await self._attach_feed(result.address)
        await self._notify()
        return result

    async def _cancel_acquisition(self):
        task = self._acquire_task
        if task is None or task.done():
            return
        self._acquire_task = None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug("Cancelled acquisition ended with error", error=_exception_text(e))

    # ==================== INSIGHTS ====================

    async def load_insights(self, address: Optional[str] = None) -> InsightsSnapshot:
        """Load the insights view for ``address`` (default: the displayed profile).

        The initial feed seeds the live feed when it belongs to the same address.
        """
        target = address or (self.state.current.address if self.state.current else None)
        if not target:
            raise InvalidIdentity(target)
        snapshot = await self._insights_loader.load(target)
        if self._reconciler is not None and self._reconciler.address == snapshot.address:
            await self._reconciler.seed(snapshot.feed)
        return snapshot

    # ==================== FEED / PRICES ====================

    async def _attach_feed(self, address: str):
        reconciler = self._reconciler_factory(address)
        reconciler.add_callback(self._on_feed)
        self._reconciler = reconciler
        await reconciler.start(initial_poll=True)

    async def _detach_feed(self):
        reconciler = self._reconciler
        self._reconciler = None
        self.state.feed = []
        if reconciler is not None:
            await reconciler.stop()

    async def _on_feed(self, items: list[ActivityItem]):
        self.state.feed = items
        await self._notify()

    async def _on_prices(self, prices: dict[str, PriceTick]):
        self.state.prices = prices
        await self._notify()

    async def _notify(self):
        for callback in self._callbacks:
            try:
                result = callback(self.state)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "Session callback error",
                    error_type=type(e).__name__,
                    error=_exception_text(e),
                    callback=getattr(callback, "__name__", str(callback)),
                )
