"""
Insights view loader.

Loads the stored profile, peer comparison, recommendations and the first
page of the activity feed for one address concurrently. Only the profile
read is essential; every other part degrades to empty on failure. The
loader never triggers profile generation.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Union

from config import settings
from models import (
    ActivityItem,
    Analysis,
    Comparison,
    Profile,
    RecommendationSet,
    SimilarWallet,
)
from services.prism_api import AuxiliaryFetchError, PrismAPIClient, PrismAPIError, prism_api
from services.profile_acquisition import AcquisitionError
from utils.logger import get_logger
from utils.validation import Identity

logger = get_logger("insights_loader")


@dataclass
class InsightsSnapshot:
    identity: Identity
    profile: Optional[Profile] = None
    comparison: Optional[Comparison] = None
    recommendations: Optional[RecommendationSet] = None
    feed: list[ActivityItem] = field(default_factory=list)

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def summary(self) -> Optional[Analysis]:
        return self.profile.summary if self.profile else None

    @property
    def similar_wallets(self) -> list[SimilarWallet]:
        return self.profile.similar_wallets if self.profile else []


class InsightsLoader:
    def __init__(self, api: Optional[PrismAPIClient] = None, feed_limit: Optional[int] = None):
        self._api = api or prism_api
        self._feed_limit = feed_limit or settings.FEED_CAP

    async def load(self, address: Union[str, Identity]) -> InsightsSnapshot:
        """Load every insights section for ``address``.

        Raises:
            InvalidIdentity: before any request for an invalid address.
            AcquisitionError: the profile read itself failed.
        """
        identity = address if isinstance(address, Identity) else Identity.parse(address)
        target = identity.address

        profile, comparison, recommendations, feed = await asyncio.gather(
            self._read_profile(target),
            self._optional("comparison", self._api.get_comparison(target), None, target),
            self._optional("recommendations", self._api.get_recommendations(target), None, target),
            self._optional("feed", self._api.get_feed(target, limit=self._feed_limit), [], target),
        )

        snapshot = InsightsSnapshot(
            identity=identity,
            profile=profile,
            comparison=comparison,
            recommendations=recommendations,
            feed=feed,
        )
        logger.info(
            "Insights loaded",
            address=target,
            has_profile=profile is not None,
            has_comparison=comparison is not None,
            has_recommendations=recommendations is not None,
            feed_items=len(feed),
            similar_wallets=len(snapshot.similar_wallets),
        )
        return snapshot

    async def _read_profile(self, target: str) -> Optional[Profile]:
        try:
            return await self._api.get_profile(target)
        except PrismAPIError as exc:
            logger.error("Insights profile read failed", address=target, error=exc.message)
            raise AcquisitionError(exc.message, target) from exc

    async def _optional(self, section: str, call, default, target: str):
        try:
            return await call
        except AuxiliaryFetchError as exc:
            logger.warning(
                "Insights section unavailable",
                section=section,
                address=target,
                error=exc.message,
            )
            return default
