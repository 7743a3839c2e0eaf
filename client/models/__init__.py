from .profile import (
    Analysis,
    BioData,
    Position,
    Profile,
    SimilarWallet,
)
from .activity import ActivityItem
from .market import PriceTick
from .insights import (
    Comparison,
    RecommendationSet,
    TrackedWallet,
)

__all__ = [
    "Analysis",
    "BioData",
    "Position",
    "Profile",
    "SimilarWallet",
    "ActivityItem",
    "PriceTick",
    "Comparison",
    "RecommendationSet",
    "TrackedWallet",
]
