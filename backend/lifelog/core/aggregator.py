"""Aggregator - Recompute derived totals on day entries.

Every function rebuilds the derived fields from the sub-records alone, so running
it twice gives the same result. The entry is mutated in place and returned.
"""

from typing import Iterable

from .estimators import round_half_up
from .models import (
    MEAL_SLOTS,
    DayEntry,
    FoodDay,
    FoodItem,
    Meal,
    StudyDay,
    StudySession,
    WorkoutDay,
)


# A session counts as completed from this percentage of its planned time.
COMPLETION_THRESHOLD = 80


def calculate_item_totals(items: Iterable[FoodItem]) -> tuple[float, float, float, float]:
    """Calculate total macros from a list of food items.

    Args:
        items: Food items of one meal (or a whole day)

    Returns:
        Tuple of (calories, protein, carbs, fat)
    """
    items = list(items)
    total_calories = sum(i.calories for i in items)
    total_protein = sum(i.protein for i in items)
    total_carbs = sum(i.carbs for i in items)
    total_fat = sum(i.fat for i in items)

    return total_calories, total_protein, total_carbs, total_fat


def recompute_meal(meal: Meal) -> Meal:
    meal.total_calories, meal.total_protein, meal.total_carbs, meal.total_fat = (
        calculate_item_totals(meal.items)
    )
    return meal


def recompute_food_day(day: FoodDay) -> FoodDay:
    """Recompute per-slot totals, then day totals as the sum of the slots."""
    meals = [recompute_meal(day.meal(slot)) for slot in MEAL_SLOTS]

    day.total_day_calories = sum(m.total_calories for m in meals)
    day.total_day_protein = sum(m.total_protein for m in meals)
    day.total_day_carbs = sum(m.total_carbs for m in meals)
    day.total_day_fat = sum(m.total_fat for m in meals)
    return day


def recompute_workout_day(day: WorkoutDay) -> WorkoutDay:
    day.total_calories_burned = sum(e.calories_burned for e in day.exercises)
    day.total_duration = sum(e.duration for e in day.exercises)
    return day


def completion_percentage(planned_minutes: float, actual_minutes: float) -> int:
    """Share of planned time actually studied, capped at 100. Zero when nothing was planned."""
    if planned_minutes <= 0:
        return 0
    return min(100, round_half_up(actual_minutes / planned_minutes * 100))


def recompute_session(session: StudySession) -> StudySession:
    """Overwrite the session's completion fields from its durations."""
    session.completion_percentage = completion_percentage(
        session.planned_duration, session.actual_duration
    )
    session.completed = session.completion_percentage >= COMPLETION_THRESHOLD
    return session


def recompute_study_day(day: StudyDay) -> StudyDay:
    planned_total = 0.0
    actual_total = 0.0
    completed_count = 0
    for session in day.sessions:
        recompute_session(session)
        planned_total += session.planned_duration
        actual_total += session.actual_duration
        if session.completed:
            completed_count += 1

    day.total_planned_hours = planned_total / 60
    day.total_actual_hours = actual_total / 60
    day.total_completed_sessions = completed_count
    day.productivity_score = completion_percentage(planned_total, actual_total)
    return day


def recompute(entry: DayEntry) -> DayEntry:
    """Recompute every derived field of a day entry.

    Raises:
        TypeError: If the entry type is not a known domain
    """
    if isinstance(entry, FoodDay):
        return recompute_food_day(entry)
    if isinstance(entry, WorkoutDay):
        return recompute_workout_day(entry)
    if isinstance(entry, StudyDay):
        return recompute_study_day(entry)
    raise TypeError(f"Unsupported day entry type: {type(entry).__name__}")
