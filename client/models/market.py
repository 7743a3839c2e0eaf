from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from models.profile import WireModel


class PriceTick(WireModel):
    """Latest market price for one watch-list symbol."""

    symbol: str = Field(validation_alias=AliasChoices("symbol", "id"))
    price: Optional[float] = None
    change_24h: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("change24h", "change_24h")
    )

    @field_validator("symbol", mode="before")
    @classmethod
    def _upper(cls, v):
        text = str(v or "").strip().upper()
        if not text:
            raise ValueError("price entry has no symbol")
        return text

    @property
    def direction(self) -> str:
        if not self.change_24h:
            return "flat"
        return "up" if self.change_24h > 0 else "down"

    @classmethod
    def from_api(cls, data: Any) -> Optional["PriceTick"]:
        if not isinstance(data, dict):
            return None
        return cls.model_validate(data)
