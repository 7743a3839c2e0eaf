from typing import Any, Optional

from pydantic import Field, field_validator

from models.profile import WireModel


def _list_of_dicts(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _list_of_text(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


# ==================== COMPARISON ====================


class MetricComparison(WireModel):
    """User value against the similar-wallet average for one metric."""

    user: float = 0.0
    average: float = 0.0
    diff: Optional[float] = None
    diff_percent: Optional[float] = Field(default=None, alias="diffPercent")
    position: Optional[str] = None

    @field_validator("user", "average", mode="before")
    @classmethod
    def _zero_if_missing(cls, v):
        return 0.0 if v is None else v

    @property
    def position_label(self) -> Optional[str]:
        return self.position.replace("_", " ") if self.position else None

    @property
    def tone(self) -> str:
        """``good``/``bad``/``neutral`` for the position relative to peers."""
        if not self.position:
            return "neutral"
        if "above" in self.position:
            return "good"
        if "below" in self.position:
            return "bad"
        return "neutral"


class DiversityComparison(WireModel):
    chains: Optional[MetricComparison] = None
    positions: Optional[MetricComparison] = None


class ActivityComparison(WireModel):
    transactions: Optional[MetricComparison] = None


class ComparisonMetrics(WireModel):
    portfolio_value: Optional[MetricComparison] = Field(default=None, alias="portfolioValue")
    risk_score: Optional[MetricComparison] = Field(default=None, alias="riskScore")
    diversity: Optional[DiversityComparison] = None
    activity: Optional[ActivityComparison] = None


class ComparisonInsight(WireModel):
    type: str = "info"
    category: str = ""
    message: str = ""
    icon: Optional[str] = None


class Comparison(WireModel):
    """Portfolio comparison against similar traders."""

    comparison: Optional[ComparisonMetrics] = None
    insights: list[ComparisonInsight] = []
    similar_count: int = Field(default=0, alias="similarCount")

    @field_validator("insights", mode="before")
    @classmethod
    def _insights(cls, v):
        return _list_of_dicts(v)

    @field_validator("similar_count", mode="before")
    @classmethod
    def _zero_if_missing(cls, v):
        return 0 if v is None else v


# ==================== RECOMMENDATIONS ====================


class Recommendation(WireModel):
    title: str = ""
    description: str = ""
    category: str = ""


class RecommendationSet(WireModel):
    recommendations: list[Recommendation] = []
    strategies: list[str] = []
    warnings: list[str] = []
    opportunities: list[str] = []
    generated_at: Optional[str] = Field(default=None, alias="generatedAt")

    @field_validator("recommendations", mode="before")
    @classmethod
    def _recommendations(cls, v):
        return _list_of_dicts(v)

    @field_validator("strategies", "warnings", "opportunities", mode="before")
    @classmethod
    def _text_lists(cls, v):
        return _list_of_text(v)


# ==================== SUBSCRIPTIONS ====================


class TrackedWallet(WireModel):
    """A webhook subscription that drives push activity for one wallet."""

    address: str
    webhook_id: str = Field(alias="webhookId")
    tracked_by_count: int = Field(default=0, alias="trackedByCount")
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @property
    def tracker_label(self) -> str:
        noun = "tracker" if self.tracked_by_count == 1 else "trackers"
        return f"{self.tracked_by_count} {noun}"
