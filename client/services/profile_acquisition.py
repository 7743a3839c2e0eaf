"""Fetch-or-generate workflow that guarantees a complete profile.

A profile is complete once the backend has produced its ``bioData``.
When the stored profile is missing or incomplete the engine asks the
backend to onboard the address (with AI enrichment) exactly once, then
re-reads the stored profile, because generation mutates server state
instead of returning the profile inline.

Callers must not start a second acquisition for the same address while
one is pending; the dashboard session cancels the previous task first.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from config import settings
from models import Analysis, Position, Profile
from services.prism_api import (
    AuxiliaryFetchError,
    PrismAPIClient,
    PrismAPIError,
    prism_api,
)
from services.selection_store import SelectionStore
from utils.logger import get_logger
from utils.validation import Identity

logger = get_logger("profile_acquisition")

GENERIC_FAILURE_MESSAGE = "Failed to load"
ONBOARDING_FAILURE_MESSAGE = "Onboarding failed"


class AcquisitionError(Exception):
    """Profile resolution or generation failed; ``message`` is user-facing."""

    def __init__(self, message: Optional[str] = None, address: Optional[str] = None):
        self.message = message or GENERIC_FAILURE_MESSAGE
        self.address = address
        super().__init__(self.message)


@dataclass
class AcquiredProfile:
    """Display state derived from one successful acquisition."""

    identity: Identity
    profile: Profile
    summary: Optional[Analysis]
    tokens: list[Position] = field(default_factory=list)
    nfts: list[dict] = field(default_factory=list)
    is_wallet_profile: bool = False
    generated: bool = False

    @property
    def address(self) -> str:
        return self.identity.address


class ProfileAcquisitionEngine:
    def __init__(
        self,
        store: SelectionStore,
        api: Optional[PrismAPIClient] = None,
        holdings_fetch_limit: Optional[int] = None,
        holdings_display_limit: Optional[int] = None,
        use_ai: Optional[bool] = None,
    ):
        self._store = store
        self._api = api or prism_api
        self._holdings_fetch_limit = holdings_fetch_limit or settings.HOLDINGS_FETCH_LIMIT
        self._holdings_display_limit = holdings_display_limit or settings.HOLDINGS_DISPLAY_LIMIT
        self._use_ai = settings.ONBOARD_USE_AI if use_ai is None else use_ai

    async def acquire(
        self,
        address: Union[str, Identity],
        is_wallet_source: bool = False,
    ) -> AcquiredProfile:
        """Ensure a complete profile exists for ``address`` and load it.

        Raises:
            InvalidIdentity: the address is not a valid ETH/SOL address; no
                request is made.
            AcquisitionError: reading, generating or re-reading the profile
                failed.
        """
        identity = address if isinstance(address, Identity) else Identity.parse(address)
        target = identity.address
        log = logger.with_context(address=target, chain=identity.chain.value)

        log.info("Checking for existing profile")
        profile = await self._read_profile(target)

        generated = False
        if profile is None or not profile.is_complete:
            log.info(
                "Profile missing or incomplete, running onboard",
                profile_found=profile is not None,
            )
            await self._generate(target)
            generated = True
            profile = await self._read_profile(target)
            if profile is None:
                raise AcquisitionError("Profile not available after onboarding", target)

        nfts = await self._read_holdings(target)

        result = AcquiredProfile(
            identity=identity,
            profile=profile,
            summary=profile.summary,
            tokens=profile.positions[: self._holdings_display_limit],
            nfts=nfts,
            is_wallet_profile=is_wallet_source,
            generated=generated,
        )

        try:
            await self._store.remember(target, is_wallet_source)
        except Exception as exc:
            log.warning("Failed to persist selection", error=str(exc))

        log.info(
            "Profile loaded",
            generated=generated,
            positions=len(result.tokens),
            nfts=len(nfts),
            wallet_source=is_wallet_source,
        )
        return result

    async def _read_profile(self, target: str) -> Optional[Profile]:
        try:
            return await self._api.get_profile(target)
        except PrismAPIError as exc:
            logger.error("Profile read failed", address=target, error=exc.message)
            raise AcquisitionError(exc.message, target) from exc

    async def _generate(self, target: str) -> None:
        try:
            payload = await self._api.onboard_profile(target, use_ai=self._use_ai)
        except PrismAPIError as exc:
            logger.error("Onboarding request failed", address=target, error=exc.message)
            raise AcquisitionError(exc.message, target) from exc

        if not payload.get("success"):
            message = payload.get("message") or ONBOARDING_FAILURE_MESSAGE
            logger.error("Onboarding rejected", address=target, error=message)
            raise AcquisitionError(str(message), target)
        logger.info("Onboarding complete, fetching saved profile", address=target)

    async def _read_holdings(self, target: str) -> list[dict]:
        """Top holdings; failures degrade to an empty list."""
        try:
            return await self._api.get_wallet_nfts(target, limit=self._holdings_fetch_limit)
        except AuxiliaryFetchError as exc:
            logger.warning(
                "Holdings fetch failed, continuing without holdings",
                address=target,
                error=exc.message,
            )
            return []
