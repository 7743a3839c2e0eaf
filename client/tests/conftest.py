"""Shared fixtures for the Prism client tests."""

import sys
from pathlib import Path

CLIENT_ROOT = Path(__file__).resolve().parents[1]
if str(CLIENT_ROOT) not in sys.path:
    sys.path.insert(0, str(CLIENT_ROOT))

import pytest

from models import ActivityItem, PriceTick, Profile
from services.prism_api import AuxiliaryFetchError, PrismAPIError
from services.selection_store import MemorySelectionStore

ETH_ADDRESS = "0x1111111111111111111111111111111111111111"
OTHER_ETH_ADDRESS = "0x2222222222222222222222222222222222222222"
SOL_ADDRESS = "So11111111111111111111111111111111111111112"


# ---------------------------------------------------------------------------
# Raw API payload fixtures (mimicking the backend's camelCase envelopes)
# ---------------------------------------------------------------------------


def complete_profile_payload(address: str = ETH_ADDRESS) -> dict:
    return {
        "address": address,
        "ensName": "whale.eth",
        "portfolioValue": 12500.5,
        "bioData": {
            "tagline": "Patient **DeFi** farmer",
            "ai": {"aiStory": "Here's a bio for you:\n**Bold** moves"},
            "stats": {"totalTransactions": 420, "portfolioAgeMonths": 18},
            "badges": [{"name": "Early Adopter"}],
            "timeline": [],
        },
        "portfolioData": {
            "positions": [
                {
                    "id": f"pos-{i}",
                    "attributes": {
                        "fungible_info": {"name": f"Token {i}", "symbol": f"T{i}"},
                        "value": 1000 - i,
                        "quantity": {"float": i + 0.5},
                    },
                }
                for i in range(12)
            ]
        },
        "analysisData": {
            "riskScore": 42,
            "personalityType": "Diamond Hands",
            "metrics": {"concentration": 0.65, "chains": ["ethereum"]},
        },
        "similarWallets": [
            {"address": OTHER_ETH_ADDRESS, "similarity": 0.87, "personality": "Degen"}
        ],
    }


def incomplete_profile_payload(address: str = ETH_ADDRESS) -> dict:
    payload = complete_profile_payload(address)
    payload.pop("bioData")
    return payload


def activity(item_id=None, **extra) -> ActivityItem:
    data = {"type": "swap", "address": ETH_ADDRESS, **extra}
    if item_id is not None:
        data["id"] = item_id
    return ActivityItem.model_validate(data)


# ---------------------------------------------------------------------------
# Fake backend client
# ---------------------------------------------------------------------------


class FakePrismAPI:
    """In-memory stand-in for PrismAPIClient that records every call."""

    def __init__(self):
        self.profiles: dict[str, list] = {}
        self.onboard_response: dict = {"success": True}
        self.onboard_error: Exception | None = None
        self.onboard_creates_profile = True
        self.profile_error: Exception | None = None
        self.nfts: list[dict] = []
        self.nfts_error: Exception | None = None
        self.prices: list[PriceTick] = []
        self.prices_error: Exception | None = None
        self.feed: list[ActivityItem] = []
        self.feed_error: Exception | None = None
        self.comparison = None
        self.comparison_error: Exception | None = None
        self.recommendations = None
        self.subscriptions: list = []
        self.calls: list[tuple] = []

    def queue_profiles(self, address: str, *payloads):
        """Successive get_profile results for ``address`` (last one repeats)."""
        self.profiles[address] = list(payloads)

    def call_names(self) -> list[str]:
        return [name for name, *_ in self.calls]

    async def get_profile(self, address):
        self.calls.append(("get_profile", address))
        if self.profile_error is not None:
            raise self.profile_error
        queue = self.profiles.get(address) or [None]
        payload = queue.pop(0) if len(queue) > 1 else queue[0]
        return Profile.from_api(payload)

    async def onboard_profile(self, address, use_ai=True):
        self.calls.append(("onboard_profile", address, use_ai))
        if self.onboard_error is not None:
            raise self.onboard_error
        if self.onboard_response.get("success") and self.onboard_creates_profile:
            queue = self.profiles.get(address)
            if queue is not None and len(queue) == 1 and queue[0] is None:
                self.profiles[address] = [complete_profile_payload(address)]
        return dict(self.onboard_response)

    async def get_wallet_nfts(self, address, limit=12):
        self.calls.append(("get_wallet_nfts", address, limit))
        if self.nfts_error is not None:
            raise self.nfts_error
        return list(self.nfts)

    async def get_token_prices(self, symbols):
        self.calls.append(("get_token_prices", tuple(symbols)))
        if self.prices_error is not None:
            raise self.prices_error
        return list(self.prices)

    async def get_feed(self, address, limit=20):
        self.calls.append(("get_feed", address, limit))
        if self.feed_error is not None:
            raise self.feed_error
        return list(self.feed)

    async def get_comparison(self, address):
        self.calls.append(("get_comparison", address))
        if self.comparison_error is not None:
            raise self.comparison_error
        return self.comparison

    async def get_recommendations(self, address):
        self.calls.append(("get_recommendations", address))
        return self.recommendations

    async def list_subscriptions(self):
        self.calls.append(("list_subscriptions",))
        return list(self.subscriptions)

    async def delete_subscription(self, subscription_id):
        self.calls.append(("delete_subscription", subscription_id))
        before = len(self.subscriptions)
        self.subscriptions = [s for s in self.subscriptions if s.webhook_id != subscription_id]
        return len(self.subscriptions) < before


@pytest.fixture
def fake_api():
    return FakePrismAPI()


@pytest.fixture
def store():
    return MemorySelectionStore()


@pytest.fixture
def network_error():
    return PrismAPIError("Network error: connection refused")


@pytest.fixture
def aux_error():
    return AuxiliaryFetchError("Network error: connection refused")
