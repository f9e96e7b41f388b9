from __future__ import annotations

import copy
import random
from typing import Sequence

from .analysis_models import AnalysisResult, FallbackReason
from .settings import DEFAULT_MOCK_FOOD_PROBABILITY

MOCK_NO_FOOD_MESSAGE = (
    "No food detected in this image. Please take a photo showing actual food items "
    "like prepared dishes, meals, or food ready to eat."
)

DEFAULT_CATALOG: tuple[AnalysisResult, ...] = (
    AnalysisResult(
        food_detected=True,
        food_name="Grilled Salmon with Quinoa",
        rating=1,
        health_score=92,
        analysis="Lean grilled fish over whole grains with fresh vegetables.",
        pros=[
            "Perfectly grilled salmon",
            "Nutrient-rich quinoa",
            "Beautiful presentation",
            "Balanced macronutrients",
            "Fresh vegetables",
        ],
        cons=["Could use more seasoning", "Portion slightly small"],
        recommendations=["Add lemon for extra flavor", "Consider larger portion for active individuals"],
        product_details={
            "category": "Healthy Seafood",
            "estimatedCalories": "420 kcal",
            "protein": "28g",
            "carbs": "35g",
            "fat": "18g",
            "fiber": "8g",
            "sodium": "580mg",
        },
    ),
    AnalysisResult(
        food_detected=True,
        food_name="Mediterranean Chicken Bowl",
        rating=2,
        health_score=88,
        analysis="Grilled chicken with grains and fresh Mediterranean vegetables.",
        pros=[
            "Fresh ingredients",
            "Good protein content",
            "Healthy vegetables",
            "Nice seasoning",
            "Balanced nutrition",
        ],
        cons=["Could use more sauce", "Portion slightly small"],
        recommendations=["Add tahini sauce", "Include more vegetables for fiber"],
        product_details={
            "category": "Mediterranean",
            "estimatedCalories": "380 kcal",
            "protein": "32g",
            "carbs": "28g",
            "fat": "14g",
            "fiber": "12g",
            "sodium": "620mg",
        },
    ),
    AnalysisResult(
        food_detected=True,
        food_name="Homemade Pasta with Vegetables",
        rating=3,
        health_score=75,
        analysis="Fresh pasta with mixed vegetables in a light sauce.",
        pros=["Fresh pasta", "Good portion size", "Contains vegetables", "Homemade taste"],
        cons=["Could use more protein", "Sauce needs improvement", "Slightly overcooked"],
        recommendations=["Add lean meat or cheese", "Improve sauce consistency", "Cook pasta al dente"],
        product_details={
            "category": "Italian Home Cooking",
            "estimatedCalories": "450 kcal",
            "protein": "18g",
            "carbs": "65g",
            "fat": "12g",
            "fiber": "8g",
            "sodium": "580mg",
        },
    ),
)


class MockAnalysisProvider:
    """Demo results used whenever a real provider cannot answer.

    One random draw decides between a catalog dish (``food_probability``) and
    the no-food result; a second draw picks the dish uniformly.
    """

    def __init__(
        self,
        *,
        food_probability: float = DEFAULT_MOCK_FOOD_PROBABILITY,
        catalog: Sequence[AnalysisResult] = DEFAULT_CATALOG,
        rng: random.Random | None = None,
    ) -> None:
        if not 0.0 <= food_probability <= 1.0:
            raise ValueError("food_probability must be between 0 and 1.")
        if not catalog:
            raise ValueError("Mock catalog must contain at least one dish.")
        self.food_probability = food_probability
        self.catalog = tuple(catalog)
        self._rng = rng or random.Random()

    def generate(
        self,
        *,
        provider: str | None = None,
        fallback_reason: FallbackReason | None = None,
    ) -> AnalysisResult:
        if self._rng.random() < self.food_probability:
            result = copy.deepcopy(self._rng.choice(self.catalog))
        else:
            result = AnalysisResult.not_detected(MOCK_NO_FOOD_MESSAGE)
        result.provider = provider
        result.fallback_reason = fallback_reason
        return result
