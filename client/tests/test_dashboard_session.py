import asyncio
import sys
from pathlib import Path

import pytest

CLIENT_ROOT = Path(__file__).resolve().parents[1]
if str(CLIENT_ROOT) not in sys.path:
    sys.path.insert(0, str(CLIENT_ROOT))

from conftest import (
    ETH_ADDRESS,
    OTHER_ETH_ADDRESS,
    FakePrismAPI,
    activity,
    complete_profile_payload,
)
from models import PriceTick
from services.dashboard_session import DashboardSession
from services.feed_reconciler import FeedReconciler
from services.price_poller import LivePricePoller
from services.selection_store import SEARCH_KEY, WALLET_KEY, MemorySelectionStore


def _session(api, store, attach_feed=True):
    return DashboardSession(
        store,
        api=api,
        price_poller=LivePricePoller(api=api, symbols=["ETH"], interval=3600),
        reconciler_factory=lambda address: FeedReconciler(
            address, api=api, poll_interval=3600, push_enabled=False
        ),
        attach_feed=attach_feed,
    )


@pytest.mark.asyncio
async def test_invalid_search_sets_error_without_requests(fake_api, store):
    session = _session(fake_api, store)

    assert await session.search("0x123") is None

    assert session.state.error is not None
    assert session.state.current is None
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_search_loads_profile_then_attaches_feed(fake_api, store):
    fake_api.queue_profiles(ETH_ADDRESS, complete_profile_payload())
    fake_api.feed = [activity("a")]
    session = _session(fake_api, store)
    snapshots = []
    session.add_callback(lambda state: snapshots.append((state.loading, state.current)))

    result = await session.search(f" {ETH_ADDRESS} ")
    await asyncio.sleep(0)

    assert result is session.state.current
    assert session.state.loading is False
    assert snapshots[0] == (True, None)
    assert session.reconciler.address == ETH_ADDRESS
    assert fake_api.call_names().index("get_wallet_nfts") < fake_api.call_names().index("get_feed")
    assert [item.id for item in session.state.feed] == ["a"]
    assert await store.get(SEARCH_KEY) == ETH_ADDRESS
    await session.deactivate()


@pytest.mark.asyncio
async def test_new_selection_tears_down_previous_feed(fake_api, store):
    fake_api.queue_profiles(ETH_ADDRESS, complete_profile_payload())
    fake_api.queue_profiles(OTHER_ETH_ADDRESS, complete_profile_payload(OTHER_ETH_ADDRESS))
    session = _session(fake_api, store)

    await session.search(ETH_ADDRESS)
    first = session.reconciler
    await session.search(OTHER_ETH_ADDRESS)

    assert first.is_running is False
    assert first.items == []
    assert session.reconciler is not first
    assert session.reconciler.address == OTHER_ETH_ADDRESS
    assert session.state.current.address == OTHER_ETH_ADDRESS
    await session.deactivate()


@pytest.mark.asyncio
async def test_acquisition_failure_is_reported(fake_api, store):
    fake_api.queue_profiles(ETH_ADDRESS, None)
    fake_api.onboard_response = {"success": False, "message": "No on-chain history"}
    session = _session(fake_api, store)

    assert await session.search(ETH_ADDRESS) is None

    assert session.state.error == "No on-chain history"
    assert session.state.loading is False
    assert session.reconciler is None


@pytest.mark.asyncio
async def test_superseded_acquisition_is_discarded(store):
    gate = asyncio.Event()

    class SlowFirstAPI(FakePrismAPI):
        async def get_profile(self, address):
            if address == ETH_ADDRESS:
                await gate.wait()
            return await super().get_profile(address)

    api = SlowFirstAPI()
    api.queue_profiles(ETH_ADDRESS, complete_profile_payload())
    api.queue_profiles(OTHER_ETH_ADDRESS, complete_profile_payload(OTHER_ETH_ADDRESS))
    session = _session(api, store, attach_feed=False)

    first = asyncio.create_task(session.search(ETH_ADDRESS))
    await asyncio.sleep(0)
    second = await session.search(OTHER_ETH_ADDRESS)
    gate.set()

    assert await first is None
    assert second.address == OTHER_ETH_ADDRESS
    assert session.state.current.address == OTHER_ETH_ADDRESS
    assert await store.get(SEARCH_KEY) == OTHER_ETH_ADDRESS


@pytest.mark.asyncio
async def test_wallet_disconnect_clears_wallet_profile(fake_api, store):
    fake_api.queue_profiles(ETH_ADDRESS, complete_profile_payload())
    session = _session(fake_api, store)

    await session.on_wallet_connected(ETH_ADDRESS)
    assert session.state.current.is_wallet_profile is True
    assert await store.get(WALLET_KEY) == ETH_ADDRESS

    assert await session.on_wallet_disconnected() is True

    assert session.state.current is None
    assert session.state.feed == []
    assert session.state.connected_wallet is None
    assert session.reconciler is None
    assert await store.get(WALLET_KEY) is None


@pytest.mark.asyncio
async def test_wallet_disconnect_keeps_searched_profile(fake_api):
    store = MemorySelectionStore({WALLET_KEY: OTHER_ETH_ADDRESS})
    fake_api.queue_profiles(ETH_ADDRESS, complete_profile_payload())
    session = _session(fake_api, store)
    session.state.connected_wallet = OTHER_ETH_ADDRESS

    await session.search(ETH_ADDRESS)
    assert await session.on_wallet_disconnected() is False

    assert session.state.current.address == ETH_ADDRESS
    assert session.reconciler is not None
    await session.deactivate()


@pytest.mark.asyncio
async def test_load_prefers_url_then_persisted_search(fake_api):
    store = MemorySelectionStore({SEARCH_KEY: OTHER_ETH_ADDRESS})
    fake_api.queue_profiles(OTHER_ETH_ADDRESS, complete_profile_payload(OTHER_ETH_ADDRESS))
    session = _session(fake_api, store, attach_feed=False)

    result = await session.load()

    assert result.address == OTHER_ETH_ADDRESS
    assert session.state.selection.address == OTHER_ETH_ADDRESS


@pytest.mark.asyncio
async def test_load_without_any_source_returns_none(fake_api, store):
    session = _session(fake_api, store)

    assert await session.load() is None
    assert fake_api.calls == []


@pytest.mark.asyncio
async def test_insights_seed_live_feed_for_same_address(fake_api, store):
    fake_api.queue_profiles(ETH_ADDRESS, complete_profile_payload())
    session = _session(fake_api, store)
    await session.search(ETH_ADDRESS)

    fake_api.feed = [activity("i1"), activity("i2")]
    snapshot = await session.load_insights()

    assert snapshot.address == ETH_ADDRESS
    assert [item.id for item in session.state.feed] == ["i1", "i2"]
    await session.deactivate()


@pytest.mark.asyncio
async def test_activate_streams_prices_until_deactivated(fake_api, store):
    fake_api.prices = [PriceTick.model_validate({"symbol": "ETH", "price": 3000})]
    session = _session(fake_api, store)

    await session.activate()
    for _ in range(10):
        if session.state.prices:
            break
        await asyncio.sleep(0)
    await session.deactivate()

    assert session.state.prices["ETH"].price == 3000
    assert session.is_active is False


@pytest.mark.asyncio
async def test_disconnect_during_pending_wallet_load_discards_it():
    gate = asyncio.Event()

    class SlowAPI(FakePrismAPI):
        async def get_profile(self, address):
            await gate.wait()
            return await super().get_profile(address)

    api = SlowAPI()
    api.queue_profiles(ETH_ADDRESS, complete_profile_payload())
    store = MemorySelectionStore({WALLET_KEY: ETH_ADDRESS})
    session = _session(api, store)

    pending = asyncio.create_task(session.on_wallet_connected(ETH_ADDRESS))
    for _ in range(20):
        if session._acquire_task is not None:
            break
        await asyncio.sleep(0)
    assert session.state.loading is True

    cleared = await session.on_wallet_disconnected()
    gate.set()

    assert cleared is True
    assert await pending is None
    for _ in range(5):
        await asyncio.sleep(0)
    assert session.state.current is None
    assert session.state.loading is False
    assert session.reconciler is None
    assert await store.get(WALLET_KEY) is None
    assert "get_wallet_nfts" not in api.call_names()
