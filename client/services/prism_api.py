"""Async client for the Prism backend REST API.

Every endpoint answers with a JSON envelope (``{success, data, message}``).
The client validates envelopes into typed models at this boundary and
raises :class:`PrismAPIError` for transport failures and malformed bodies.
Non-2xx responses that still carry a JSON envelope are returned as-is, so
callers decide from ``success``/``data`` exactly as they would for a 200.
"""

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from config import settings
from models import (
    ActivityItem,
    Comparison,
    PriceTick,
    Profile,
    RecommendationSet,
    TrackedWallet,
)
from utils.logger import get_logger
from utils.retry import NO_RETRY, RetryConfig, RetryableClient

logger = get_logger("prism_api")


class PrismAPIError(Exception):
    """A backend call failed: network error, malformed JSON or bad envelope."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuxiliaryFetchError(PrismAPIError):
    """A non-essential fetch (holdings, prices, feed, insights) failed."""


def _exception_text(exc: Exception) -> str:
    """Return a non-empty exception string for structured logging."""
    text = str(exc).strip()
    return text if text else repr(exc)


class PrismAPIClient:
    """Client for the Prism profile/portfolio backend"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.PRISM_API_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS
        self._retry_config = retry_config or RetryConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._http: Optional[RetryableClient] = None

    async def _get_client(self) -> RetryableClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
            self._http = RetryableClient(self._client, self._retry_config)
        return self._http

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        retry: bool = True,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
        error_cls: type = PrismAPIError,
    ) -> dict:
        http = await self._get_client()
        url = f"{self.base_url}{path}"
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if json_body is not None:
            kwargs["json"] = json_body

        try:
            response = await http.request(
                method, url, config=None if retry else NO_RETRY, **kwargs
            )
        except httpx.HTTPStatusError as exc:
            # Error statuses usually still carry an envelope with a message.
            response = exc.response
        except httpx.HTTPError as exc:
            logger.warning(
                "Backend request failed",
                method=method,
                path=path,
                error_type=type(exc).__name__,
                error=_exception_text(exc),
            )
            raise error_cls(f"Network error: {_exception_text(exc)}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise error_cls(
                f"Malformed response from server (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from exc

        if not isinstance(payload, dict):
            raise error_cls(
                "Unexpected response from server",
                status_code=response.status_code,
            )
        return payload

    # ==================== PROFILE ====================

    async def get_profile(self, address: str) -> Optional[Profile]:
        """Fetch a stored profile; ``None`` when the backend has none."""
        payload = await self._request_json("GET", f"/api/profile/{address}")
        try:
            return Profile.from_api(payload.get("data"))
        except ValidationError as exc:
            raise PrismAPIError(f"Malformed profile for {address}") from exc

    async def onboard_profile(self, address: str, use_ai: bool = True) -> dict:
        """Ask the backend to generate (onboard) a profile.

        Generation mutates server state and is never retried here.
        """
        return await self._request_json(
            "POST",
            "/api/profile/onboard",
            retry=False,
            json_body={"address": address, "useAI": use_ai},
        )

    # ==================== HOLDINGS / PRICES ====================

    async def get_wallet_nfts(self, address: str, limit: int = 12) -> list[dict]:
        payload = await self._request_json(
            "GET",
            f"/api/nfts/wallet/{address}",
            params={"limit": limit},
            error_cls=AuxiliaryFetchError,
        )
        data = payload.get("data") or {}
        nfts = data.get("nfts") if isinstance(data, dict) else None
        return [n for n in nfts if isinstance(n, dict)] if isinstance(nfts, list) else []

    async def get_token_prices(self, symbols: list[str]) -> list[PriceTick]:
        payload = await self._request_json(
            "POST",
            "/api/tokens/prices",
            json_body={"symbols": list(symbols)},
            error_cls=AuxiliaryFetchError,
        )
        data = payload.get("data") or {}
        raw_prices = data.get("prices") if isinstance(data, dict) else None
        if not payload.get("success") or not isinstance(raw_prices, list):
            raise AuxiliaryFetchError(payload.get("message") or "Price request failed")
        ticks: list[PriceTick] = []
        for raw in raw_prices:
            try:
                tick = PriceTick.from_api(raw)
            except ValidationError:
                logger.debug("Skipping malformed price entry", entry=raw)
                continue
            if tick is not None:
                ticks.append(tick)
        return ticks

    # ==================== FEED ====================

    async def get_feed(self, address: str, limit: int = 20) -> list[ActivityItem]:
        """Latest activity for an address, newest first, in server order."""
        payload = await self._request_json(
            "GET",
            f"/api/feed/{address}",
            params={"limit": limit},
            error_cls=AuxiliaryFetchError,
        )
        data = payload.get("data") or {}
        activities = data.get("activities") if isinstance(data, dict) else None
        if not payload.get("success") or not isinstance(activities, list):
            raise AuxiliaryFetchError(payload.get("message") or "Feed request failed")
        items: list[ActivityItem] = []
        for raw in activities:
            try:
                item = ActivityItem.from_api(raw)
            except ValidationError:
                logger.debug("Skipping malformed activity entry", address=address)
                continue
            if item is not None:
                items.append(item)
        return items

    # ==================== INSIGHTS ====================

    async def get_comparison(self, address: str) -> Optional[Comparison]:
        payload = await self._request_json(
            "GET", f"/api/comparison/{address}", error_cls=AuxiliaryFetchError
        )
        if not payload.get("success") or not isinstance(payload.get("data"), dict):
            return None
        try:
            return Comparison.model_validate(payload["data"])
        except ValidationError as exc:
            raise AuxiliaryFetchError(f"Malformed comparison for {address}") from exc

    async def get_recommendations(self, address: str) -> Optional[RecommendationSet]:
        payload = await self._request_json(
            "GET", f"/api/recommendations/{address}", error_cls=AuxiliaryFetchError
        )
        if not payload.get("success") or not isinstance(payload.get("data"), dict):
            return None
        try:
            return RecommendationSet.model_validate(payload["data"])
        except ValidationError as exc:
            raise AuxiliaryFetchError(f"Malformed recommendations for {address}") from exc

    # ==================== SUBSCRIPTIONS ====================

    async def list_subscriptions(self) -> list[TrackedWallet]:
        payload = await self._request_json("GET", "/api/subscriptions")
        if not payload.get("success"):
            raise PrismAPIError(payload.get("message") or "Failed to load subscriptions")
        data = payload.get("data") or {}
        rows = data.get("databaseSubscriptions") if isinstance(data, dict) else None
        wallets: list[TrackedWallet] = []
        for row in rows or []:
            try:
                wallets.append(TrackedWallet.model_validate(row))
            except ValidationError:
                logger.debug("Skipping malformed subscription row", row=row)
        return wallets

    async def delete_subscription(self, subscription_id: str) -> bool:
        payload = await self._request_json(
            "DELETE", f"/api/subscriptions/{subscription_id}", retry=False
        )
        return bool(payload.get("success"))


prism_api = PrismAPIClient()
