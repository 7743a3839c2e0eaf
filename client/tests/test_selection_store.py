import sys
from pathlib import Path

import pytest

CLIENT_ROOT = Path(__file__).resolve().parents[1]
if str(CLIENT_ROOT) not in sys.path:
    sys.path.insert(0, str(CLIENT_ROOT))

from conftest import ETH_ADDRESS, SOL_ADDRESS
from models.database import build_engine, build_session_factory, init_database
from services.selection_store import (
    SEARCH_KEY,
    WALLET_KEY,
    MemorySelectionStore,
    SqlSelectionStore,
)


async def _sql_store(db_path):
    engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
    await init_database(engine)
    return engine, SqlSelectionStore(build_session_factory(engine))


@pytest.mark.asyncio
async def test_sql_store_round_trips_and_overwrites(tmp_path):
    engine, sql_store = await _sql_store(tmp_path / "state" / "prism_state.db")
    assert await sql_store.get(SEARCH_KEY) is None

    await sql_store.set(SEARCH_KEY, ETH_ADDRESS)
    await sql_store.set(SEARCH_KEY, SOL_ADDRESS)

    assert await sql_store.last_search() == SOL_ADDRESS
    await engine.dispose()


@pytest.mark.asyncio
async def test_sql_store_remove_missing_key_is_noop(tmp_path):
    engine, sql_store = await _sql_store(tmp_path / "prism_state.db")
    await sql_store.remove(WALLET_KEY)
    await sql_store.set(SEARCH_KEY, ETH_ADDRESS)
    await sql_store.remove(SEARCH_KEY)
    assert await sql_store.get(WALLET_KEY) is None
    assert await sql_store.get(SEARCH_KEY) is None
    await engine.dispose()


@pytest.mark.asyncio
async def test_sql_store_persists_across_sessions(tmp_path):
    db_path = tmp_path / "prism_state.db"
    engine, store = await _sql_store(db_path)
    await store.remember(ETH_ADDRESS, True)
    await engine.dispose()

    engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
    store = SqlSelectionStore(build_session_factory(engine))
    try:
        assert await store.last_wallet() == ETH_ADDRESS
        assert await store.last_search() is None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_remember_routes_by_source():
    store = MemorySelectionStore()

    await store.remember(ETH_ADDRESS, is_wallet_source=True)
    await store.remember(SOL_ADDRESS, is_wallet_source=False)

    assert await store.last_wallet() == ETH_ADDRESS
    assert await store.last_search() == SOL_ADDRESS


@pytest.mark.asyncio
async def test_forget_wallet_keeps_search():
    store = MemorySelectionStore({WALLET_KEY: ETH_ADDRESS, SEARCH_KEY: SOL_ADDRESS})

    await store.forget_wallet()

    assert await store.last_wallet() is None
    assert await store.last_search() == SOL_ADDRESS
