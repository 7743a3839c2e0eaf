"""Select the one wallet address the dashboard acts on.

Sources, strictly in priority order, first present wins:

1. explicit address parameter (``--address`` / a deep link)
2. currently connected wallet
3. last connected wallet (persisted)
4. last manual search (persisted)

There is no default address. Selection has no side effects; the caller
passes ``is_wallet_source`` on to acquisition, which decides which
persisted key is written back.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from services.selection_store import SelectionStore
from utils.logger import get_logger

logger = get_logger("identity_resolver")


class SelectionSource(str, Enum):
    URL = "url"
    CONNECTED_WALLET = "connected_wallet"
    PERSISTED_WALLET = "persisted_wallet"
    PERSISTED_SEARCH = "persisted_search"
    MANUAL_SEARCH = "manual_search"


_WALLET_SOURCES = frozenset(
    {SelectionSource.CONNECTED_WALLET, SelectionSource.PERSISTED_WALLET}
)


@dataclass(frozen=True)
class ResolvedSelection:
    address: str
    source: SelectionSource

    @property
    def is_wallet_source(self) -> bool:
        return self.source in _WALLET_SOURCES


def _present(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


def resolve(
    url_address: Optional[str] = None,
    connected_wallet: Optional[str] = None,
    persisted_wallet: Optional[str] = None,
    persisted_search: Optional[str] = None,
) -> Optional[ResolvedSelection]:
    """Pick the highest-priority present source, or ``None``.

    ``connected_wallet`` must only be passed while a wallet is connected.
    Validity is not checked here; acquisition rejects invalid addresses
    before any request is made.
    """
    candidates = (
        (url_address, SelectionSource.URL),
        (connected_wallet, SelectionSource.CONNECTED_WALLET),
        (persisted_wallet, SelectionSource.PERSISTED_WALLET),
        (persisted_search, SelectionSource.PERSISTED_SEARCH),
    )
    for value, source in candidates:
        address = _present(value)
        if address:
            return ResolvedSelection(address=address, source=source)
    return None


class IdentityResolver:
    """Resolver bound to a persisted selection store."""

    def __init__(self, store: SelectionStore):
        self._store = store

    async def resolve(
        self,
        url_address: Optional[str] = None,
        connected_wallet: Optional[str] = None,
    ) -> Optional[ResolvedSelection]:
        # Persisted keys are only read when nothing live is available.
        if _present(url_address) or _present(connected_wallet):
            return resolve(url_address, connected_wallet)

        selection = resolve(
            persisted_wallet=await self._store.last_wallet(),
            persisted_search=await self._store.last_search(),
        )
        if selection is not None:
            logger.info(
                "Restored saved selection",
                address=selection.address,
                source=selection.source.value,
            )
        return selection

    async def on_wallet_disconnected(self, displayed_is_wallet: bool) -> bool:
        """Erase the wallet key if the displayed profile came from the wallet.

        Returns ``True`` when the caller must clear its derived display state.
        The search key is never erased.
        """
        if not displayed_is_wallet:
            return False
        await self._store.forget_wallet()
        logger.info("Wallet disconnected, cleared wallet selection")
        return True
