"""Webhook subscriptions that drive push activity for tracked wallets."""

from typing import Optional

from models import TrackedWallet
from services.prism_api import PrismAPIClient, PrismAPIError, prism_api
from utils.logger import get_logger

logger = get_logger("subscriptions")


class SubscriptionError(Exception):
    """Listing or deleting subscriptions failed; ``message`` is user-facing."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SubscriptionManager:
    def __init__(self, api: Optional[PrismAPIClient] = None):
        self._api = api or prism_api
        self._wallets: list[TrackedWallet] = []

    @property
    def wallets(self) -> list[TrackedWallet]:
        return list(self._wallets)

    async def refresh(self) -> list[TrackedWallet]:
        try:
            self._wallets = await self._api.list_subscriptions()
        except PrismAPIError as exc:
            logger.warning("Failed to load subscriptions", error=exc.message)
            raise SubscriptionError(exc.message) from exc
        logger.info("Loaded subscriptions", count=len(self._wallets))
        return self.wallets

    async def delete(self, webhook_id: str) -> list[TrackedWallet]:
        """Delete one subscription and return the reloaded list."""
        try:
            deleted = await self._api.delete_subscription(webhook_id)
        except PrismAPIError as exc:
            logger.warning("Subscription delete failed", webhook_id=webhook_id, error=exc.message)
            raise SubscriptionError(exc.message) from exc
        if not deleted:
            raise SubscriptionError("Failed to delete subscription")
        logger.info("Deleted subscription", webhook_id=webhook_id)
        return await self.refresh()
