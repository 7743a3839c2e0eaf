"""Profile payloads returned by the Prism backend.

The backend speaks camelCase JSON with loosely-typed, frequently missing
fields. Every model here accepts the wire names through aliases, defaults
every field, and ignores unknown keys so UI code never has to probe dict
shapes itself. A badly typed leaf falls back to its default instead of
rejecting the whole profile.
"""

import math
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return []


def _as_number(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Parse a float from a number or numeric string; ``default`` otherwise."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _as_count(value: Any) -> int:
    return int(_as_number(value, 0.0))


def _as_object(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


class WireModel(BaseModel):
    """Base for backend payload models: alias-aware, tolerant of extra keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ==================== BIO ====================


class BioStats(WireModel):
    first_tx_date: Optional[str] = Field(default=None, alias="firstTxDate")
    last_tx_date: Optional[str] = Field(default=None, alias="lastTxDate")
    total_transactions: int = Field(default=0, alias="totalTransactions")
    portfolio_age_months: float = Field(default=0, alias="portfolioAgeMonths")

    @field_validator("first_tx_date", "last_tx_date", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("total_transactions", mode="before")
    @classmethod
    def _count(cls, v):
        return _as_count(v)

    @field_validator("portfolio_age_months", mode="before")
    @classmethod
    def _zero_if_missing(cls, v):
        return _as_number(v, 0.0)


class Badge(WireModel):
    name: str = ""
    description: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return _as_text(v) or ""

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        return _as_text(v)


class Milestone(WireModel):
    label: str = ""
    description: str = ""
    date: Optional[str] = None

    @field_validator("label", "description", mode="before")
    @classmethod
    def _blank_if_missing(cls, v):
        return "" if v is None else str(v)

    @field_validator("date", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)


class BioAI(WireModel):
    ai_story: Optional[str] = Field(default=None, alias="aiStory")

    @field_validator("ai_story", mode="before")
    @classmethod
    def _text(cls, v):
        return None if v is None else str(v)


class BioData(WireModel):
    ai: Optional[BioAI] = None
    stats: Optional[BioStats] = None
    badges: list[Badge] = []
    timeline: list[Milestone] = []
    tagline: Optional[str] = None

    @field_validator("ai", "stats", mode="before")
    @classmethod
    def _object(cls, v):
        return _as_object(v)

    @field_validator("badges", mode="before")
    @classmethod
    def _badges(cls, v):
        # Some generators send bare badge names.
        badges = []
        for badge in _as_list(v):
            if isinstance(badge, dict):
                badges.append(badge)
            elif isinstance(badge, str) and badge.strip():
                badges.append({"name": badge})
        return badges

    @field_validator("timeline", mode="before")
    @classmethod
    def _timeline(cls, v):
        return [m for m in _as_list(v) if isinstance(m, dict)]

    @field_validator("tagline", mode="before")
    @classmethod
    def _text(cls, v):
        return None if v is None else str(v)


# ==================== ANALYSIS ====================


class AnalysisMetrics(WireModel):
    chains: list[str] = []
    protocol_count: int = Field(default=0, alias="protocolCount")
    avg_tx_per_month: float = Field(default=0, alias="avgTxPerMonth")
    concentration: float = 0.0
    allocations: dict[str, float] = {}
    total_value: float = Field(default=0, alias="totalValue")

    @field_validator("chains", mode="before")
    @classmethod
    def _chains(cls, v):
        return [str(c) for c in _as_list(v) if c is not None]

    @field_validator("protocol_count", mode="before")
    @classmethod
    def _count(cls, v):
        return _as_count(v)

    @field_validator("avg_tx_per_month", "concentration", "total_value", mode="before")
    @classmethod
    def _zero_if_missing(cls, v):
        return _as_number(v, 0.0)

    @field_validator("allocations", mode="before")
    @classmethod
    def _allocations(cls, v):
        if not isinstance(v, dict):
            return {}
        shares = {}
        for bucket, share in v.items():
            number = _as_number(share)
            if number is not None:
                shares[str(bucket)] = number
        return shares

    @property
    def concentration_level(self) -> str:
        if self.concentration > 0.8:
            return "High"
        if self.concentration > 0.5:
            return "Medium"
        return "Low"

    def visible_allocations(self) -> dict[str, float]:
        """Allocation buckets with a positive share, in payload order."""
        return {k: v for k, v in self.allocations.items() if v and v > 0}


class AnalysisAI(WireModel):
    contextual_insight: Optional[str] = Field(default=None, alias="contextualInsight")
    ai_strengths: list[str] = Field(default=[], alias="aiStrengths")
    ai_weaknesses: list[str] = Field(default=[], alias="aiWeaknesses")
    ai_recommendations: list[str] = Field(default=[], alias="aiRecommendations")
    raw: Optional[str] = None

    @field_validator("ai_strengths", "ai_weaknesses", "ai_recommendations", mode="before")
    @classmethod
    def _list(cls, v):
        return [str(item) for item in _as_list(v) if item is not None]

    @field_validator("contextual_insight", "raw", mode="before")
    @classmethod
    def _text(cls, v):
        return None if v is None else str(v)


class Analysis(WireModel):
    """AI/heuristic wallet analysis (``analysisData`` or legacy ``analysis``)."""

    risk_score: Optional[float] = Field(default=None, alias="riskScore")
    personality: Optional[str] = None
    personality_type: Optional[str] = Field(default=None, alias="personalityType")
    metrics: Optional[AnalysisMetrics] = None
    ai: Optional[AnalysisAI] = None
    strengths: list[str] = []
    weaknesses: list[str] = []
    recommendations: list[str] = []

    @field_validator("risk_score", mode="before")
    @classmethod
    def _score(cls, v):
        return _as_number(v)

    @field_validator("personality", "personality_type", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("metrics", "ai", mode="before")
    @classmethod
    def _object(cls, v):
        return _as_object(v)

    @field_validator("strengths", "weaknesses", "recommendations", mode="before")
    @classmethod
    def _list(cls, v):
        return [str(item) for item in _as_list(v) if item is not None]

    @property
    def personality_label(self) -> Optional[str]:
        return self.personality or self.personality_type

    # AI lists take precedence over the heuristic ones when non-empty.

    @property
    def display_strengths(self) -> list[str]:
        return (self.ai.ai_strengths if self.ai else []) or self.strengths

    @property
    def display_weaknesses(self) -> list[str]:
        return (self.ai.ai_weaknesses if self.ai else []) or self.weaknesses

    @property
    def display_recommendations(self) -> list[str]:
        return (self.ai.ai_recommendations if self.ai else []) or self.recommendations


# ==================== PORTFOLIO ====================


class FungibleInfo(WireModel):
    name: Optional[str] = None
    symbol: Optional[str] = None

    @field_validator("name", "symbol", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)


class Quantity(WireModel):
    amount: float = Field(default=0.0, alias="float")

    @field_validator("amount", mode="before")
    @classmethod
    def _zero_if_missing(cls, v):
        return _as_number(v, 0.0)


class PositionAttributes(WireModel):
    fungible_info: Optional[FungibleInfo] = None
    value: float = 0.0
    quantity: Optional[Quantity] = None

    @field_validator("fungible_info", "quantity", mode="before")
    @classmethod
    def _object(cls, v):
        return _as_object(v)

    @field_validator("value", mode="before")
    @classmethod
    def _zero_if_missing(cls, v):
        return _as_number(v, 0.0)


class Position(WireModel):
    """One token holding, as ordered by the server."""

    id: Optional[str] = None
    attributes: PositionAttributes = Field(default_factory=PositionAttributes)

    @field_validator("id", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("attributes", mode="before")
    @classmethod
    def _object(cls, v):
        return _as_object(v) or {}

    @property
    def name(self) -> str:
        info = self.attributes.fungible_info
        return (info.name if info else None) or "Unknown Token"

    @property
    def symbol(self) -> str:
        info = self.attributes.fungible_info
        return (info.symbol if info else None) or "--"

    @property
    def value(self) -> float:
        return self.attributes.value

    @property
    def quantity(self) -> float:
        return self.attributes.quantity.amount if self.attributes.quantity else 0.0


class PortfolioData(WireModel):
    positions: list[Position] = []

    @field_validator("positions", mode="before")
    @classmethod
    def _list(cls, v):
        return [p for p in _as_list(v) if isinstance(p, dict)]


# ==================== SIMILAR WALLETS ====================


class SimilarWallet(WireModel):
    address: str = ""
    similarity: float = 0.0
    personality: Optional[str] = None
    personality_type: Optional[str] = Field(default=None, alias="personalityType")
    risk_score: Optional[float] = Field(default=None, alias="riskScore")
    portfolio_value: Optional[float] = Field(default=None, alias="portfolioValue")

    @field_validator("address", mode="before")
    @classmethod
    def _address(cls, v):
        return _as_text(v) or ""

    @field_validator("personality", "personality_type", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("similarity", mode="before")
    @classmethod
    def _zero_if_missing(cls, v):
        return _as_number(v, 0.0)

    @field_validator("risk_score", "portfolio_value", mode="before")
    @classmethod
    def _optional_number(cls, v):
        return _as_number(v)

    @property
    def similarity_percent(self) -> int:
        return round(self.similarity * 100)

    @property
    def personality_label(self) -> str:
        return self.personality_type or self.personality or "Unknown"


# ==================== PROFILE ====================


class Profile(WireModel):
    """A wallet profile. Complete iff ``bio_data`` is present."""

    address: str = ""
    ens_name: Optional[str] = Field(default=None, alias="ensName")
    bio_data: Optional[BioData] = Field(default=None, alias="bioData")
    portfolio_data: Optional[PortfolioData] = Field(default=None, alias="portfolioData")
    analysis_data: Optional[Analysis] = Field(default=None, alias="analysisData")
    analysis: Optional[Analysis] = None
    portfolio_value: Optional[float] = Field(default=None, alias="portfolioValue")
    similar_wallets: list[SimilarWallet] = Field(
        default=[], validation_alias=AliasChoices("similarWallets", "similar_wallets")
    )

    @field_validator("address", mode="before")
    @classmethod
    def _address(cls, v):
        return _as_text(v) or ""

    @field_validator("ens_name", mode="before")
    @classmethod
    def _text(cls, v):
        return _as_text(v)

    @field_validator("portfolio_data", "analysis_data", "analysis", mode="before")
    @classmethod
    def _object(cls, v):
        return _as_object(v)

    @field_validator("portfolio_value", mode="before")
    @classmethod
    def _number(cls, v):
        return _as_number(v)

    @field_validator("similar_wallets", mode="before")
    @classmethod
    def _list(cls, v):
        return [w for w in _as_list(v) if isinstance(w, dict)]

    @property
    def is_complete(self) -> bool:
        return self.bio_data is not None

    @property
    def summary(self) -> Optional[Analysis]:
        """``analysisData`` falling back to the legacy ``analysis`` key."""
        if self.analysis_data is not None:
            return self.analysis_data
        return self.analysis

    @property
    def positions(self) -> list[Position]:
        return self.portfolio_data.positions if self.portfolio_data else []

    @classmethod
    def from_api(cls, data: Any) -> Optional["Profile"]:
        """Parse the ``data`` member of a profile response; ``None`` when absent."""
        if not isinstance(data, dict):
            return None
        return cls.model_validate(data)
