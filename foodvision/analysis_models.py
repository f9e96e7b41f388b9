from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

RATING_NAMES: dict[int, str] = {
    1: "Premium",
    2: "High Standard",
    3: "Standard",
    4: "Improvement Needed",
    5: "Poor",
}
MIN_RATING = 1
MAX_RATING = 5
MIN_HEALTH_SCORE = 0
MAX_HEALTH_SCORE = 100

NO_FOOD_MESSAGE = (
    "No food detected. Please take a photo showing actual food items like "
    "prepared dishes, meals, or food ready to eat."
)
UNABLE_TO_ANALYZE_MESSAGE = "Unable to analyze image. Please take a clear photo of food items."
UNABLE_TO_DETERMINE_MESSAGE = (
    "Unable to determine if food is present. Please take a clear photo of food items."
)


class FallbackReason(str, Enum):
    UNCONFIGURED = "unconfigured"
    PROVIDER_ERROR = "provider_error"


def rating_name(rating: int | None) -> str | None:
    if rating is None:
        return None
    return RATING_NAMES.get(rating)


@dataclass
class AnalysisResult:
    """Provider-independent rating payload handed to the UI.

    ``rating`` and ``health_score`` are ``None`` when absent. ``fallback_reason``
    is set only for results produced by the mock provider.
    """

    food_detected: bool
    food_name: str = ""
    rating: int | None = None
    health_score: int | None = None
    analysis: str = ""
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    product_details: dict[str, str] = field(default_factory=dict)
    message: str = ""
    provider: str | None = None
    fallback_reason: FallbackReason | None = None

    @classmethod
    def not_detected(cls, message: str = NO_FOOD_MESSAGE) -> "AnalysisResult":
        return cls(food_detected=False, message=message)

    @property
    def rating_name(self) -> str | None:
        return rating_name(self.rating)

    @property
    def demo_mode(self) -> bool:
        return self.fallback_reason is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "foodDetected": self.food_detected,
            "foodName": self.food_name,
            "rating": self.rating,
            "ratingName": self.rating_name,
            "healthScore": self.health_score,
            "analysis": self.analysis,
            "pros": list(self.pros),
            "cons": list(self.cons),
            "recommendations": list(self.recommendations),
            "productDetails": dict(self.product_details),
            "message": self.message,
            "provider": self.provider,
            "demoMode": self.demo_mode,
            "fallbackReason": self.fallback_reason.value if self.fallback_reason else None,
        }
