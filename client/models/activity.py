from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from models.profile import WireModel


class ActivityItem(WireModel):
    """One wallet activity event from the feed endpoint or the push channel."""

    id: Optional[str] = None
    hash: Optional[str] = None
    type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("type", "activityType")
    )
    address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("address", "walletAddress")
    )
    chain: Optional[str] = None
    timestamp: Optional[datetime] = None
    tx_hash: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("txHash", "tx_hash")
    )

    @field_validator("id", "hash", "type", "address", "chain", "tx_hash", mode="before")
    @classmethod
    def _text(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            # Feed timestamps arrive in epoch milliseconds.
            seconds = v / 1000.0 if v > 10_000_000_000 else float(v)
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        return v

    @property
    def dedup_key(self) -> Optional[str]:
        """Stable identity across sources: ``id`` then ``hash``.

        ``None`` means the item carries no stable identity; the feed buffer
        falls back to its position, which cannot identify the same event
        across sources.
        """
        return self.id or self.hash

    @property
    def label(self) -> str:
        return self.type or "Transaction"

    @classmethod
    def from_api(cls, data: Any) -> Optional["ActivityItem"]:
        if not isinstance(data, dict):
            return None
        return cls.model_validate(data)
