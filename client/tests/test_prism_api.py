import json
import sys
from pathlib import Path

import httpx
import pytest

CLIENT_ROOT = Path(__file__).resolve().parents[1]
if str(CLIENT_ROOT) not in sys.path:
    sys.path.insert(0, str(CLIENT_ROOT))

from conftest import ETH_ADDRESS, complete_profile_payload
from services.prism_api import AuxiliaryFetchError, PrismAPIClient, PrismAPIError
from utils.retry import RetryConfig


def _client(handler, attempts: int = 1) -> PrismAPIClient:
    return PrismAPIClient(
        base_url="http://prism.test/",
        retry_config=RetryConfig(max_attempts=attempts, base_delay=0, jitter=False),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_get_profile_parses_envelope():
    def handler(request):
        assert request.url.path == f"/api/profile/{ETH_ADDRESS}"
        return httpx.Response(200, json={"success": True, "data": complete_profile_payload()})

    api = _client(handler)
    profile = await api.get_profile(ETH_ADDRESS)
    await api.close()

    assert profile.is_complete
    assert profile.ens_name == "whale.eth"
    assert profile.summary.risk_score == 42


@pytest.mark.asyncio
async def test_get_profile_without_data_is_none():
    api = _client(lambda request: httpx.Response(200, json={"success": True, "data": None}))
    assert await api.get_profile(ETH_ADDRESS) is None
    await api.close()


@pytest.mark.asyncio
async def test_error_status_with_envelope_is_returned():
    api = _client(
        lambda request: httpx.Response(404, json={"success": False, "message": "Profile not found"})
    )
    assert await api.get_profile(ETH_ADDRESS) is None
    await api.close()


@pytest.mark.asyncio
async def test_non_json_body_raises_api_error():
    api = _client(lambda request: httpx.Response(502, text="<html>Bad gateway</html>"))

    with pytest.raises(PrismAPIError) as exc_info:
        await api.get_profile(ETH_ADDRESS)
    await api.close()

    assert exc_info.value.status_code == 502
    assert not isinstance(exc_info.value, AuxiliaryFetchError)


@pytest.mark.asyncio
async def test_transport_failure_raises_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = _client(handler)
    with pytest.raises(PrismAPIError) as exc_info:
        await api.get_profile(ETH_ADDRESS)
    await api.close()

    assert exc_info.value.message.startswith("Network error")


@pytest.mark.asyncio
async def test_reads_are_retried_on_server_errors():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503, json={"success": False})
        return httpx.Response(200, json={"success": True, "data": complete_profile_payload()})

    api = _client(handler, attempts=3)
    profile = await api.get_profile(ETH_ADDRESS)
    await api.close()

    assert len(attempts) == 3
    assert profile is not None


@pytest.mark.asyncio
async def test_onboard_posts_address_and_is_never_retried():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(503, json={"success": False, "message": "Generator busy"})

    api = _client(handler, attempts=3)
    payload = await api.onboard_profile(ETH_ADDRESS, use_ai=True)
    await api.close()

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert requests[0].url.path == "/api/profile/onboard"
    assert json.loads(requests[0].content) == {"address": ETH_ADDRESS, "useAI": True}
    assert payload == {"success": False, "message": "Generator busy"}


@pytest.mark.asyncio
async def test_auxiliary_endpoints_raise_auxiliary_errors():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    api = _client(handler)
    with pytest.raises(AuxiliaryFetchError):
        await api.get_wallet_nfts(ETH_ADDRESS)
    with pytest.raises(AuxiliaryFetchError):
        await api.get_token_prices(["BTC"])
    with pytest.raises(AuxiliaryFetchError):
        await api.get_feed(ETH_ADDRESS)
    with pytest.raises(AuxiliaryFetchError):
        await api.get_comparison(ETH_ADDRESS)
    await api.close()


@pytest.mark.asyncio
async def test_get_wallet_nfts_sends_limit():
    def handler(request):
        assert request.url.params["limit"] == "12"
        return httpx.Response(
            200, json={"success": True, "data": {"nfts": [{"name": "a"}, "junk", {"name": "b"}]}}
        )

    api = _client(handler)
    nfts = await api.get_wallet_nfts(ETH_ADDRESS, limit=12)
    await api.close()

    assert nfts == [{"name": "a"}, {"name": "b"}]


@pytest.mark.asyncio
async def test_get_token_prices_skips_malformed_entries():
    def handler(request):
        assert json.loads(request.content) == {"symbols": ["BTC", "ETH"]}
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {"prices": [{"symbol": "btc", "price": 1.5}, {"price": 2}, "junk"]},
            },
        )

    api = _client(handler)
    ticks = await api.get_token_prices(["BTC", "ETH"])
    await api.close()

    assert [(t.symbol, t.price) for t in ticks] == [("BTC", 1.5)]


@pytest.mark.asyncio
async def test_get_feed_keeps_server_order():
    def handler(request):
        assert request.url.params["limit"] == "20"
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "activities": [
                        {"id": "b", "type": "swap", "timestamp": 1_700_000_000_000},
                        {"hash": "0xa", "activityType": "transfer"},
                    ]
                },
            },
        )

    api = _client(handler)
    items = await api.get_feed(ETH_ADDRESS)
    await api.close()

    assert [item.dedup_key for item in items] == ["b", "0xa"]
    assert items[0].timestamp.year == 2023
    assert items[1].label == "transfer"


@pytest.mark.asyncio
async def test_get_feed_unsuccessful_envelope_raises():
    api = _client(lambda request: httpx.Response(200, json={"success": False, "message": "down"}))
    with pytest.raises(AuxiliaryFetchError) as exc_info:
        await api.get_feed(ETH_ADDRESS)
    await api.close()

    assert exc_info.value.message == "down"


@pytest.mark.asyncio
async def test_insights_sections_without_data_are_none():
    api = _client(lambda request: httpx.Response(200, json={"success": False}))
    assert await api.get_comparison(ETH_ADDRESS) is None
    assert await api.get_recommendations(ETH_ADDRESS) is None
    await api.close()


@pytest.mark.asyncio
async def test_subscriptions_list_and_delete():
    def handler(request):
        if request.method == "DELETE":
            assert request.url.path == "/api/subscriptions/wh_1"
            return httpx.Response(200, json={"success": True})
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "databaseSubscriptions": [
                        {"address": ETH_ADDRESS, "webhookId": "wh_1", "trackedByCount": 1},
                        {"address": "missing-webhook"},
                    ]
                },
            },
        )

    api = _client(handler)
    wallets = await api.list_subscriptions()
    deleted = await api.delete_subscription("wh_1")
    await api.close()

    assert [w.webhook_id for w in wallets] == ["wh_1"]
    assert wallets[0].tracker_label == "1 tracker"
    assert deleted is True


@pytest.mark.asyncio
async def test_get_token_prices_rejects_non_list_prices():
    api = _client(
        lambda request: httpx.Response(200, json={"success": True, "data": {"prices": 42}})
    )
    with pytest.raises(AuxiliaryFetchError):
        await api.get_token_prices(["BTC"])
    await api.close()
