"""MCP Server - Tool definitions for Claude integration.

Defines the MCP tools for logging meals, workouts and study sessions.
The auth middleware resolves the API key and sets `current_user_id`.
"""

import logging
from datetime import date

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from pydantic import ValidationError

from ..core.errors import LifeLogError
from ..core.models import Domain, Exercise, ExerciseCategory, FoodItem, FoodUnit, MealSlot, StudySession
from .auth import get_user_id
from .tracker import get_tracker


logger = logging.getLogger(__name__)

# Configure transport security for Cloud Run deployment
transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=[
        "localhost:*",
        "127.0.0.1:*",
        "testserver",
        "*.run.app:*",
        "*.run.app",
    ],
)

# Initialize FastMCP server with stateless HTTP for cloud deployments
mcp = FastMCP(
    "lifelog",
    instructions="""LifeLog - Personal food, workout and study tracker.

Use these tools to log meals, exercises and study sessions, and to review
days and weeks. Calories and macros are estimated automatically when omitted.
After logging, show the updated day totals.""",
    stateless_http=True,
    transport_security=transport_security,
)


def _failure(action: str, e: Exception) -> dict:
    logger.warning("%s failed: %s", action, str(e))
    return {"error": f"{action} failed: {e}"}


def _today(date_str: str | None) -> str:
    return date_str or date.today().isoformat()


# ==================== Logging Tools ====================


@mcp.tool()
async def log_food(
    name: str,
    meal_type: str,
    quantity: float = 100,
    unit: str = "g",
    calories: float | None = None,
    protein: float | None = None,
    carbs: float | None = None,
    fat: float | None = None,
    date_str: str | None = None,
) -> dict:
    """Add a food item to one meal of a day.

    Leave calories empty to have nutrition estimated from the food name.

    Args:
        name: Name of the food (e.g., "Brown Rice", "Banana")
        meal_type: breakfast, lunch, dinner or snacks
        quantity: Amount in `unit` (default 100)
        unit: g, ml, oz, serving, cup, tbsp, tsp or piece
        calories: Total calories for this amount (optional)
        protein: Protein in grams (optional)
        carbs: Carbohydrates in grams (optional)
        fat: Fat in grams (optional)
        date_str: Date in YYYY-MM-DD format (defaults to today)

    Returns:
        The logged item and the updated day totals
    """
    user_id = get_user_id()
    try:
        item = FoodItem(
            name=name,
            quantity=quantity,
            unit=FoodUnit(unit),
            calories=calories or 0,
            protein=protein or 0,
            carbs=carbs or 0,
            fat=fat or 0,
        )
        day = await get_tracker().log_food(user_id, _today(date_str), MealSlot(meal_type), [item])
    except (ValueError, ValidationError, LifeLogError) as e:
        return _failure("Logging food", e)

    meal = day.meal(MealSlot(meal_type))
    return {
        "item": meal.items[-1].model_dump(mode="json"),
        "meal_total_calories": meal.total_calories,
        "day_totals": {
            "calories": day.total_day_calories,
            "protein": day.total_day_protein,
            "carbs": day.total_day_carbs,
            "fat": day.total_day_fat,
        },
    }


@mcp.tool()
async def log_exercise(
    name: str,
    duration: float,
    category: str = "other",
    sets: int = 0,
    reps: int = 0,
    weight: float = 0,
    calories_burned: float | None = None,
    date_str: str | None = None,
) -> dict:
    """Add an exercise to a day's workout.

    Calories burned are estimated from MET values when not given.

    Args:
        name: Exercise name (e.g., "Running (moderate, 6mph)", "Bench press")
        duration: Minutes
        category: strength, cardio, flexibility, sports or other
        sets: Number of sets (strength work)
        reps: Reps per set
        weight: Load in kg
        calories_burned: Known calories burned (optional)
        date_str: Date in YYYY-MM-DD format (defaults to today)

    Returns:
        The logged exercise and the updated workout totals
    """
    user_id = get_user_id()
    try:
        exercise = Exercise(
            name=name,
            duration=duration,
            category=ExerciseCategory(category),
            sets=sets,
            reps=reps,
            weight=weight,
            calories_burned=calories_burned or 0,
        )
        day = await get_tracker().log_exercise(user_id, _today(date_str), exercise)
    except (ValueError, ValidationError, LifeLogError) as e:
        return _failure("Logging exercise", e)

    return {
        "exercise": day.exercises[-1].model_dump(mode="json"),
        "total_calories_burned": day.total_calories_burned,
        "total_duration": day.total_duration,
    }


@mcp.tool()
async def log_study_session(
    subject: str,
    topic: str,
    planned_duration: float,
    actual_duration: float = 0,
    difficulty: str = "medium",
    notes: str | None = None,
    date_str: str | None = None,
) -> dict:
    """Add a study session to a day.

    Args:
        subject: Subject studied (e.g., "Math")
        topic: Topic within the subject
        planned_duration: Planned minutes
        actual_duration: Minutes actually studied
        difficulty: easy, medium or hard
        notes: Optional notes
        date_str: Date in YYYY-MM-DD format (defaults to today)

    Returns:
        The session with its completion and the day's productivity score
    """
    user_id = get_user_id()
    try:
        session = StudySession(
            subject=subject,
            topic=topic,
            planned_duration=planned_duration,
            actual_duration=actual_duration,
            difficulty=difficulty,
            notes=notes,
        )
        day = await get_tracker().add_study_session(user_id, _today(date_str), session)
    except (ValueError, ValidationError, LifeLogError) as e:
        return _failure("Logging study session", e)

    return {
        "session": day.sessions[-1].model_dump(mode="json"),
        "total_actual_hours": day.total_actual_hours,
        "productivity_score": day.productivity_score,
    }


# ==================== Query Tools ====================


@mcp.tool()
async def get_day(domain: str, date_str: str | None = None) -> dict:
    """Get one day's food, workout or study log.

    Args:
        domain: food, workout or study
        date_str: Date in YYYY-MM-DD format (defaults to today)

    Returns:
        The full day entry, or a note that nothing was logged
    """
    user_id = get_user_id()
    try:
        entry = await get_tracker().get_day(Domain(domain), user_id, _today(date_str))
    except (ValueError, LifeLogError) as e:
        return _failure("Fetching day", e)

    if entry is None:
        return {"date": _today(date_str), "entry": None, "message": f"No {domain} logged for this day."}
    return {"date": entry.log_date.isoformat(), "entry": entry.model_dump(mode="json")}


@mcp.tool()
async def get_weekly_report(date_str: str | None = None) -> dict:
    """Generate the Monday-to-Sunday report across food, workouts and study.

    Args:
        date_str: Any day of the week to report (defaults to this week)

    Returns:
        Week dates plus food, workout and study summaries
    """
    user_id = get_user_id()
    try:
        report = await get_tracker().weekly_report(user_id, _today(date_str))
    except LifeLogError as e:
        return _failure("Generating report", e)
    return report.model_dump(mode="json")


# ==================== Estimate Tools ====================


@mcp.tool()
async def lookup_nutrition(food_name: str, quantity: float = 100, unit: str = "g") -> dict:
    """Look up calories and macros for an amount of food.

    Args:
        food_name: Name of the food
        quantity: Amount in `unit`
        unit: Unit of the amount

    Returns:
        Calories, protein, carbs, fat, fiber, sugar and the source used
    """
    get_user_id()
    estimate = await get_tracker().lookup_nutrition(food_name, quantity, unit)
    return estimate.model_dump()


@mcp.tool()
async def estimate_exercise_calories(
    exercise_name: str, duration: float, weight_kg: float | None = None
) -> dict:
    """Estimate calories burned from MET values.

    Args:
        exercise_name: Name of the exercise
        duration: Minutes
        weight_kg: Body weight (defaults to your profile weight, then 70kg)

    Returns:
        Calories, the MET value used and the matched table entry
    """
    user_id = get_user_id()
    if duration < 0:
        return {"error": "duration must not be negative"}
    estimate = await get_tracker().estimate_exercise(exercise_name, duration, weight_kg, user_id)
    return estimate.model_dump()
