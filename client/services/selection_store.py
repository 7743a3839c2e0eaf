"""Persisted identity selection.

Two independent string keys survive restarts: the last wallet-connected
address and the last manually searched address. They are written only at
the end of a successful profile acquisition and read back only when no
higher-priority identity source is available. Writes are last-writer-wins.

Components receive a store instance instead of touching storage directly.
"""

from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import delete, select

from models.database import LocalSelection
from utils.logger import get_logger

logger = get_logger("selection_store")

WALLET_KEY = "prism_connected_wallet"
SEARCH_KEY = "prism_last_search"


class SelectionStore(ABC):
    """Key-value contract for the persisted selection.

    ``get`` returns ``None`` for a missing key, ``set`` overwrites, and
    ``remove`` is a no-op for a missing key.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def remove(self, key: str) -> None: ...

    async def last_wallet(self) -> Optional[str]:
        return await self.get(WALLET_KEY)

    async def last_search(self) -> Optional[str]:
        return await self.get(SEARCH_KEY)

    async def remember(self, address: str, is_wallet_source: bool) -> None:
        """Record a successfully loaded identity under the matching key."""
        await self.set(WALLET_KEY if is_wallet_source else SEARCH_KEY, address)

    async def forget_wallet(self) -> None:
        """Erase the wallet key. The search key is never touched here."""
        await self.remove(WALLET_KEY)


class MemorySelectionStore(SelectionStore):
    """Process-local store for tests and one-shot runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def remove(self, key: str) -> None:
        self._values.pop(key, None)


class SqlSelectionStore(SelectionStore):
    """SQLite-backed store using the ``local_selection`` table."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(LocalSelection.value).where(LocalSelection.key == key)
            )
            value = result.scalar_one_or_none()
        return value or None

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            row = await session.get(LocalSelection, key)
            if row is None:
                session.add(LocalSelection(key=key, value=value))
            else:
                row.value = value
            await session.commit()
        logger.debug("Persisted selection", key=key, value=value)

    async def remove(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(LocalSelection).where(LocalSelection.key == key))
            await session.commit()
        logger.debug("Removed persisted selection", key=key)
