"""
Live activity feed for one address.

Two unreliable sources feed one bounded buffer:

- push: each ``activity`` event is prepended (an existing entry with the
  same id/hash moves to the front) and the buffer is truncated to the cap.
- poll: every interval the feed endpoint is read and the buffer is
  replaced wholesale with the server ordering.

Poll is authoritative; push only lowers latency between polls. There is
no element-level merge. A reconciler serves exactly one address and is
discarded when the selection changes.
"""

import asyncio
from typing import Callable, Optional

from config import settings
from models import ActivityItem
from services.prism_api import AuxiliaryFetchError, PrismAPIClient, prism_api
from services.push_channel import ActivityPushChannel
from utils.logger import get_logger

logger = get_logger("feed_reconciler")


def _exception_text(exc: Exception) -> str:
    text = str(exc).strip()
    return text if text else repr(exc)


class FeedBuffer:
    """Newest-first activity list, capped, unique by stable key.

    Items without ``id`` or ``hash`` get a positional key. Positional keys
    cannot identify the same event across sources, so such items are never
    collapsed; the next poll replaces them anyway.
    """

    def __init__(self, cap: Optional[int] = None):
        self.cap = cap if cap is not None else settings.FEED_CAP
        self._items: list[ActivityItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    @property
    def items(self) -> list[ActivityItem]:
        return list(self._items)

    def keys(self) -> list[str]:
        return [item.dedup_key or f"#{index}" for index, item in enumerate(self._items)]

    def push(self, item: ActivityItem):
        key = item.dedup_key
        if key is None:
            logger.debug("Activity has no id or hash, keeping by position")
            remaining = self._items
        else:
            remaining = [existing for existing in self._items if existing.dedup_key != key]
        self._items = [item, *remaining][: self.cap]

    def replace(self, items: list[ActivityItem]):
        seen: set[str] = set()
        kept: list[ActivityItem] = []
        for item in items:
            key = item.dedup_key
            if key is not None:
                if key in seen:
                    continue
                seen.add(key)
            kept.append(item)
            if len(kept) >= self.cap:
                break
        self._items = kept

    def clear(self):
        self._items = []


class FeedReconciler:
    """Owns the push channel and the poll timer for one address."""

    def __init__(
        self,
        address: str,
        api: Optional[PrismAPIClient] = None,
        poll_interval: Optional[float] = None,
        cap: Optional[int] = None,
        push_enabled: Optional[bool] = None,
        channel_factory: Optional[Callable] = None,
    ):
        self.address = address
        self._api = api or prism_api
        self._poll_interval = (
            poll_interval if poll_interval is not None else settings.FEED_POLL_INTERVAL_SECONDS
        )
        self._push_enabled = settings.PUSH_ENABLED if push_enabled is None else push_enabled
        self._channel_factory = channel_factory or ActivityPushChannel
        self.buffer = FeedBuffer(cap)
        self._callbacks: list[Callable] = []
        self._channel = None
        self._poll_task: Optional[asyncio.Task] = None
        self._running = False
        self._closed = False

    @property
    def items(self) -> list[ActivityItem]:
        return self.buffer.items

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def channel(self):
        return self._channel

    def add_callback(self, callback: Callable):
        """Register a sync or async callable receiving the feed after each change."""
        self._callbacks.append(callback)

    # ==================== LIFECYCLE ====================

    async def start(self, initial_poll: bool = False):
        if self._running or self._closed:
            return
        self._running = True
        if self._push_enabled:
            self._channel = self._channel_factory(self.address, self._on_push)
            await self._channel.start()
        self._poll_task = asyncio.create_task(self._poll_loop(initial_poll))
        logger.info(
            "Feed attached",
            address=self.address,
            push_enabled=self._push_enabled,
            poll_interval_seconds=self._poll_interval,
        )

    async def stop(self):
        """Close the push connection, cancel the poll timer and drop all items."""
        if self._closed:
            return
        self._closed = True
        self._running = False

        task = self._poll_task
        if task and not task.done():
            task.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._poll_task = None

        if self._channel is not None:
            await self._channel.stop()
            self._channel = None

        self.buffer.clear()
        logger.info("Feed detached", address=self.address)

    async def _poll_loop(self, initial_poll: bool):
        if initial_poll:
            await self.poll_once()
        while self._running:
            await asyncio.sleep(self._poll_interval)
            await self.poll_once()

    # ==================== SOURCES ====================

    async def seed(self, items: list[ActivityItem]):
        """Install an initially loaded feed using the poll replacement rule."""
        if self._closed:
            return
        self.buffer.replace(items)
        await self._notify()

    async def poll_once(self) -> bool:
        try:
            items = await self._api.get_feed(self.address, limit=self.buffer.cap)
        except AuxiliaryFetchError as exc:
            logger.warning(
                "Feed poll failed, keeping current feed",
                address=self.address,
                error=exc.message,
            )
            return False
        if self._closed:
            return False
        self.buffer.replace(items)
        await self._notify()
        return True

    async def _on_push(self, item: ActivityItem):
        if self._closed:
            return
        self.buffer.push(item)
        await self._notify()

    async def _notify(self):
        snapshot = self.buffer.items
        for callback in self._callbacks:
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "Feed callback error",
                    error_type=type(e).__name__,
                    error=_exception_text(e),
                    callback=getattr(callback, "__name__", str(callback)),
                )
