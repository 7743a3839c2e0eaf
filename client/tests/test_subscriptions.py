import sys
from pathlib import Path

import pytest

CLIENT_ROOT = Path(__file__).resolve().parents[1]
if str(CLIENT_ROOT) not in sys.path:
    sys.path.insert(0, str(CLIENT_ROOT))

from conftest import ETH_ADDRESS, OTHER_ETH_ADDRESS
from models import TrackedWallet
from services.subscriptions import SubscriptionError, SubscriptionManager


def _wallet(address, webhook_id, trackers=1):
    return TrackedWallet.model_validate(
        {"address": address, "webhookId": webhook_id, "trackedByCount": trackers}
    )


@pytest.mark.asyncio
async def test_refresh_lists_subscriptions(fake_api):
    fake_api.subscriptions = [_wallet(ETH_ADDRESS, "wh_1"), _wallet(OTHER_ETH_ADDRESS, "wh_2", 3)]
    manager = SubscriptionManager(api=fake_api)

    wallets = await manager.refresh()

    assert [w.webhook_id for w in wallets] == ["wh_1", "wh_2"]
    assert wallets[1].tracker_label == "3 trackers"


@pytest.mark.asyncio
async def test_delete_reloads_list(fake_api):
    fake_api.subscriptions = [_wallet(ETH_ADDRESS, "wh_1"), _wallet(OTHER_ETH_ADDRESS, "wh_2")]
    manager = SubscriptionManager(api=fake_api)
    await manager.refresh()

    wallets = await manager.delete("wh_1")

    assert [w.webhook_id for w in wallets] == ["wh_2"]
    assert fake_api.call_names()[-2:] == ["delete_subscription", "list_subscriptions"]


@pytest.mark.asyncio
async def test_rejected_delete_raises(fake_api):
    manager = SubscriptionManager(api=fake_api)

    with pytest.raises(SubscriptionError) as exc_info:
        await manager.delete("wh_missing")

    assert exc_info.value.message == "Failed to delete subscription"


@pytest.mark.asyncio
async def test_list_failure_raises_subscription_error(fake_api, network_error, monkeypatch):
    async def failing():
        raise network_error

    monkeypatch.setattr(fake_api, "list_subscriptions", failing)

    with pytest.raises(SubscriptionError) as exc_info:
        await SubscriptionManager(api=fake_api).refresh()

    assert "Network error" in exc_info.value.message
