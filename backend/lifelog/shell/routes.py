"""HTTP Routes - JSON API for the web frontend.

Every handler returns `{"success": true, "data": ...}` or `{"error": ...}`.
Domain errors map onto HTTP status codes in one place (`handle_errors`).
The authenticated user id is set on `request.state` by the auth middleware.
"""

import functools
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..core.errors import (
    EntryValidationError,
    LifeLogError,
    RecordNotFoundError,
    StorageUnavailableError,
    WriteConflictError,
)
from ..core.models import Domain, Exercise, FoodItem, MealSlot, StudySession, UserGoals
from ..core.upsert import MergeMode, normalize_date
from .tracker import get_auth_client, get_tracker


logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[JSONResponse]]

ERROR_STATUS: dict[type[LifeLogError], int] = {
    EntryValidationError: 400,
    RecordNotFoundError: 404,
    WriteConflictError: 409,
    StorageUnavailableError: 503,
}


# ==================== Request Bodies ====================


class RegisterRequest(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = Field(default=None, max_length=50)
    weight_kg: Optional[float] = Field(default=None, gt=0)
    goals: Optional[UserGoals] = None


class ProfileRequest(BaseModel):
    goals: Optional[UserGoals] = None
    weight_kg: Optional[float] = Field(default=None, gt=0)


class FoodEntryRequest(BaseModel):
    date: str
    meal_type: Optional[MealSlot] = None
    items: list[FoodItem] = Field(default_factory=list)
    water_intake: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)
    mode: MergeMode = MergeMode.APPEND


class NutritionLookupRequest(BaseModel):
    food_name: str = Field(min_length=1)
    quantity: float = Field(default=100, ge=0)
    unit: str = "g"


class WorkoutEntryRequest(BaseModel):
    date: str
    exercise: Exercise
    user_weight: Optional[float] = Field(default=None, gt=0)
    workout_type: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class StudyEntryRequest(BaseModel):
    date: str
    sessions: Optional[list[StudySession]] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    mode: MergeMode = MergeMode.REPLACE


class StudySessionRequest(BaseModel):
    date: str
    session: StudySession
    notes: Optional[str] = Field(default=None, max_length=500)


# ==================== Helpers ====================


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return JSONResponse({"success": True, "data": data}, status_code=status_code)


def error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def handle_errors(handler: Handler) -> Handler:
    """Translate validation and domain errors into JSON error responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> JSONResponse:
        try:
            return await handler(request)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
            )
            return error(f"Invalid request: {problems}", 400)
        except LifeLogError as e:
            status = next((s for cls, s in ERROR_STATUS.items() if isinstance(e, cls)), 500)
            if status >= 500:
                logger.error("%s %s failed: %s", request.method, request.url.path, str(e))
            return error(str(e), status)

    return wrapper


async def _body(request: Request, model: type[BaseModel]) -> Any:
    try:
        payload = await request.json()
    except ValueError:
        raise EntryValidationError("Request body must be JSON") from None
    return model.model_validate(payload)


def _user_id(request: Request) -> str:
    return request.state.user_id


def _query_date(request: Request) -> date:
    raw = request.query_params.get("date")
    return normalize_date(raw) if raw else date.today()


def _query_days(request: Request, default: int = 30) -> int:
    try:
        days = int(request.query_params.get("days", default))
    except ValueError:
        raise EntryValidationError("days must be an integer") from None
    if days < 1:
        raise EntryValidationError("days must be at least 1")
    return days


def _path_date(request: Request) -> date:
    return normalize_date(request.path_params["date"])


def _day_or_404(entry, domain: Domain, log_date: date) -> JSONResponse:
    if entry is None:
        return error(f"No {domain.value} entry for {log_date.isoformat()}", 404)
    return ok(entry)


async def _week(request: Request, domain: Domain) -> JSONResponse:
    monday, sunday, entries = await get_tracker().get_week(domain, _user_id(request), _query_date(request))
    return ok({
        "week_start": monday.isoformat(),
        "week_end": sunday.isoformat(),
        "entries": [e.model_dump(mode="json") for e in entries],
    })


async def _get_day(request: Request, domain: Domain) -> JSONResponse:
    log_date = _path_date(request)
    entry = await get_tracker().get_day(domain, _user_id(request), log_date)
    return _day_or_404(entry, domain, log_date)


async def _delete_day(request: Request, domain: Domain) -> JSONResponse:
    log_date = _path_date(request)
    if not await get_tracker().delete_day(domain, _user_id(request), log_date):
        return error(f"No {domain.value} entry for {log_date.isoformat()}", 404)
    return ok({"deleted": log_date.isoformat()})


# ==================== Auth & Profile ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Cloud Run."""
    return JSONResponse({"status": "healthy", "service": "lifelog"})


@handle_errors
async def register_user(request: Request) -> JSONResponse:
    """Register a new user and return their API key."""
    body = await _body(request, RegisterRequest)
    api_key, user_id = await get_auth_client().register_user(
        body.email, body.name, body.weight_kg, body.goals
    )
    return ok({
        "api_key": api_key,
        "message": "Registration successful! Save your API key - it won't be shown again.",
    })


async def validate_key(request: Request) -> JSONResponse:
    """Validate an API key."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"valid": False, "error": "API key required"})

    api_key = body.get("api_key") if isinstance(body, dict) else None
    if not api_key:
        return JSONResponse({"valid": False, "error": "API key required"})

    user_id = await get_auth_client().validate_api_key(api_key)
    return JSONResponse({"valid": user_id is not None})


@handle_errors
async def get_goals(request: Request) -> JSONResponse:
    user = await get_auth_client().get_user(_user_id(request))
    if user is None:
        return error("User not found", 404)
    return ok({"goals": user.goals.model_dump(), "weight_kg": user.weight_kg})


@handle_errors
async def update_goals(request: Request) -> JSONResponse:
    body = await _body(request, ProfileRequest)
    user = await get_auth_client().update_profile(_user_id(request), body.goals, body.weight_kg)
    if user is None:
        return error("User not found", 404)
    return ok({"goals": user.goals.model_dump(), "weight_kg": user.weight_kg})


# ==================== Food ====================


@handle_errors
async def log_food(request: Request) -> JSONResponse:
    body = await _body(request, FoodEntryRequest)
    entry = await get_tracker().log_food(
        _user_id(request),
        body.date,
        slot=body.meal_type,
        items=body.items,
        mode=body.mode,
        water_intake=body.water_intake,
        notes=body.notes,
    )
    return ok(entry)


@handle_errors
async def get_food_day(request: Request) -> JSONResponse:
    return await _get_day(request, Domain.FOOD)


@handle_errors
async def get_food_week(request: Request) -> JSONResponse:
    return await _week(request, Domain.FOOD)


@handle_errors
async def delete_food_item(request: Request) -> JSONResponse:
    try:
        slot = MealSlot(request.path_params["slot"])
    except ValueError:
        raise EntryValidationError(f"Invalid meal type: {request.path_params['slot']}") from None
    entry = await get_tracker().remove_food_item(
        _user_id(request), _path_date(request), slot, request.path_params["item_id"]
    )
    return ok(entry)


@handle_errors
async def delete_food_day(request: Request) -> JSONResponse:
    return await _delete_day(request, Domain.FOOD)


@handle_errors
async def nutrition_lookup(request: Request) -> JSONResponse:
    body = await _body(request, NutritionLookupRequest)
    estimate = await get_tracker().lookup_nutrition(body.food_name, body.quantity, body.unit)
    return ok(estimate)


# ==================== Workout ====================


@handle_errors
async def log_workout(request: Request) -> JSONResponse:
    body = await _body(request, WorkoutEntryRequest)
    fields = {}
    if body.workout_type:
        fields["workout_type"] = body.workout_type
    if body.notes:
        fields["notes"] = body.notes
    entry = await get_tracker().log_exercise(
        _user_id(request), body.date, body.exercise, weight_kg=body.user_weight, **fields
    )
    return ok(entry)


@handle_errors
async def get_workout_day(request: Request) -> JSONResponse:
    return await _get_day(request, Domain.WORKOUT)


@handle_errors
async def get_workout_week(request: Request) -> JSONResponse:
    return await _week(request, Domain.WORKOUT)


@handle_errors
async def workout_stats(request: Request) -> JSONResponse:
    stats = await get_tracker().workout_stats(_user_id(request), _query_date(request))
    return ok(stats)


@handle_errors
async def met_lookup(request: Request) -> JSONResponse:
    name = request.query_params.get("exercise")
    if not name:
        raise EntryValidationError("exercise is required")
    try:
        duration = float(request.query_params.get("duration", 30))
        weight = request.query_params.get("weight")
        weight_kg = float(weight) if weight else None
    except ValueError:
        raise EntryValidationError("duration and weight must be numbers") from None
    if duration < 0:
        raise EntryValidationError("duration must not be negative")
    return ok(await get_tracker().estimate_exercise(name, duration, weight_kg, _user_id(request)))


@handle_errors
async def delete_exercise(request: Request) -> JSONResponse:
    entry = await get_tracker().remove_exercise(
        _user_id(request), _path_date(request), request.path_params["exercise_id"]
    )
    return ok(entry)


@handle_errors
async def delete_workout_day(request: Request) -> JSONResponse:
    return await _delete_day(request, Domain.WORKOUT)


# ==================== Study ====================


@handle_errors
async def save_study_day(request: Request) -> JSONResponse:
    body = await _body(request, StudyEntryRequest)
    entry = await get_tracker().save_study_day(
        _user_id(request), body.date, body.sessions, body.notes, mode=body.mode
    )
    return ok(entry)


@handle_errors
async def add_study_session(request: Request) -> JSONResponse:
    body = await _body(request, StudySessionRequest)
    entry = await get_tracker().add_study_session(_user_id(request), body.date, body.session, body.notes)
    return ok(entry)


@handle_errors
async def get_study_day(request: Request) -> JSONResponse:
    return await _get_day(request, Domain.STUDY)


@handle_errors
async def get_study_week(request: Request) -> JSONResponse:
    return await _week(request, Domain.STUDY)


@handle_errors
async def study_stats(request: Request) -> JSONResponse:
    stats = await get_tracker().study_stats(_user_id(request), _query_date(request), _query_days(request))
    return ok(stats)


@handle_errors
async def delete_study_day(request: Request) -> JSONResponse:
    return await _delete_day(request, Domain.STUDY)


# ==================== Dashboard & Reports ====================


@handle_errors
async def dashboard_overview(request: Request) -> JSONResponse:
    overview = await get_tracker().dashboard(_user_id(request), _query_date(request))
    return ok(overview)


@handle_errors
async def dashboard_trends(request: Request) -> JSONResponse:
    trends = await get_tracker().trends(_user_id(request), _query_date(request), _query_days(request))
    return ok(trends)


@handle_errors
async def weekly_report(request: Request) -> JSONResponse:
    report = await get_tracker().weekly_report(_user_id(request), _query_date(request))
    return ok(report)


@handle_errors
async def cleanup(request: Request) -> JSONResponse:
    counts = await get_tracker().cleanup(_user_id(request), date.today())
    return ok({"deleted": {domain.value: n for domain, n in counts.items()}})


# Paths that skip the auth middleware
PUBLIC_PATHS = frozenset({"/health", "/auth/register", "/auth/validate"})

routes = [
    Route("/health", health_check, methods=["GET"]),
    Route("/auth/register", register_user, methods=["POST"]),
    Route("/auth/validate", validate_key, methods=["POST"]),
    Route("/me/goals", get_goals, methods=["GET"]),
    Route("/me/goals", update_goals, methods=["PUT"]),
    # Food
    Route("/food/entry", log_food, methods=["POST"]),
    Route("/food/day/{date}", get_food_day, methods=["GET"]),
    Route("/food/day/{date}", delete_food_day, methods=["DELETE"]),
    Route("/food/day/{date}/meal/{slot}/item/{item_id}", delete_food_item, methods=["DELETE"]),
    Route("/food/week", get_food_week, methods=["GET"]),
    Route("/food/nutrition-lookup", nutrition_lookup, methods=["POST"]),
    # Workout
    Route("/workout/entry", log_workout, methods=["POST"]),
    Route("/workout/day/{date}", get_workout_day, methods=["GET"]),
    Route("/workout/day/{date}", delete_workout_day, methods=["DELETE"]),
    Route("/workout/day/{date}/exercise/{exercise_id}", delete_exercise, methods=["DELETE"]),
    Route("/workout/week", get_workout_week, methods=["GET"]),
    Route("/workout/stats", workout_stats, methods=["GET"]),
    Route("/workout/met-lookup", met_lookup, methods=["GET"]),
    # Study
    Route("/study/entry", save_study_day, methods=["POST"]),
    Route("/study/session", add_study_session, methods=["POST"]),
    Route("/study/day/{date}", get_study_day, methods=["GET"]),
    Route("/study/day/{date}", delete_study_day, methods=["DELETE"]),
    Route("/study/week", get_study_week, methods=["GET"]),
    Route("/study/stats", study_stats, methods=["GET"]),
    # Dashboard & reports
    Route("/dashboard/overview", dashboard_overview, methods=["GET"]),
    Route("/dashboard/trends", dashboard_trends, methods=["GET"]),
    Route("/report/weekly", weekly_report, methods=["GET"]),
    Route("/report/cleanup", cleanup, methods=["DELETE"]),
]
