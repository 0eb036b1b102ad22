"""Estimators - Pure functions for calorie and nutrient estimates.

All functions are pure: same input always produces same output, no side effects.
Unknown names never raise; they resolve to the table's default.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .models import Exercise, ExerciseEstimate, FoodItem, NutritionEstimate
from .tables import (
    DEFAULT_FOOD_TABLE,
    DEFAULT_MET_TABLE,
    DEFAULT_WEIGHT_KG,
    LookupTable,
    NutrientProfile,
)


ESTIMATED_SOURCE = "estimated"

# Decimal places kept when scaling a per-100g baseline. Calories are whole numbers.
MACRO_PRECISION = {
    "protein": 1,
    "carbs": 1,
    "fat": 2,
    "fiber": 1,
    "sugar": 1,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (0.5 -> 1, 2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def round_places(value: float, places: int = 1) -> float:
    """Round to `places` decimals with halves going up (2.25 -> 2.3)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def resolve_met(exercise_name: Optional[str], table: LookupTable[float] = DEFAULT_MET_TABLE) -> float:
    """Look up the MET value for an exercise name."""
    return table.resolve(exercise_name).value


def estimate_exercise(
    exercise_name: Optional[str],
    duration_minutes: float,
    weight_kg: Optional[float] = None,
    table: LookupTable[float] = DEFAULT_MET_TABLE,
) -> ExerciseEstimate:
    """Estimate calories burned with the MET formula.

    calories = MET x weight(kg) x duration(hours)

    Args:
        exercise_name: Free-text exercise name
        duration_minutes: Duration in minutes
        weight_kg: Body weight; defaults to 70kg when not given
        table: MET table to resolve the name against

    Returns:
        ExerciseEstimate with rounded calories and the MET value used
    """
    match = table.resolve(exercise_name)
    weight = weight_kg if weight_kg else DEFAULT_WEIGHT_KG
    hours = max(0.0, float(duration_minutes or 0)) / 60
    calories = round_half_up(match.value * weight * hours)
    return ExerciseEstimate(calories=calories, met=match.value, matched=match.key)


def scale_profile(profile: NutrientProfile, quantity: float, source: str = ESTIMATED_SOURCE) -> NutritionEstimate:
    """Scale a per-100g profile linearly to `quantity`."""
    factor = max(0.0, float(quantity or 0)) / 100
    scaled = {
        field: round_places(getattr(profile, field) * factor, places)
        for field, places in MACRO_PRECISION.items()
    }
    return NutritionEstimate(
        calories=round_half_up(profile.calories * factor),
        source=source,
        **scaled,
    )


def estimate_food(
    food_name: Optional[str],
    quantity: float = 100,
    unit: str = "g",
    table: LookupTable[NutrientProfile] = DEFAULT_FOOD_TABLE,
) -> NutritionEstimate:
    """Estimate macros for a food from the local per-100g table.

    The unit is not converted: quantity is treated as grams, as in the
    per-100g baseline.

    Args:
        food_name: Free-text food name
        quantity: Amount eaten
        unit: Unit of `quantity` (informational)
        table: Food table to resolve the name against

    Returns:
        NutritionEstimate tagged with source "estimated"
    """
    profile = table.resolve(food_name).value
    return scale_profile(profile, quantity)


def needs_nutrition(item: FoodItem) -> bool:
    """True when the caller supplied no calories and the item can be looked up."""
    return not item.calories and bool(item.name)


def apply_nutrition(item: FoodItem, estimate: NutritionEstimate) -> FoodItem:
    """Return a copy of `item` carrying the estimated macros."""
    return item.model_copy(update={
        "calories": estimate.calories,
        "protein": estimate.protein,
        "carbs": estimate.carbs,
        "fat": estimate.fat,
        "fiber": estimate.fiber,
        "sugar": estimate.sugar,
        "is_auto_estimated": True,
        "source": estimate.source,
    })


def enrich_exercise(
    exercise: Exercise,
    weight_kg: Optional[float] = None,
    table: LookupTable[float] = DEFAULT_MET_TABLE,
) -> Exercise:
    """Fill in calories burned when the caller did not supply them.

    Only exercises with a name and a duration are estimated; anything else is
    returned unchanged.
    """
    if exercise.calories_burned or not exercise.name or not exercise.duration:
        return exercise

    estimate = estimate_exercise(exercise.name, exercise.duration, weight_kg, table)
    return exercise.model_copy(update={
        "calories_burned": estimate.calories,
        "met": estimate.met,
        "is_auto_calculated": True,
    })
