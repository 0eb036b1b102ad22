"""Tracker Service - Use cases shared by the HTTP routes and the MCP tools.

Enriches incoming sub-records with estimates, hands them to the upsert
coordinator, and feeds stored days into the report functions.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from ..core.errors import EntryValidationError
from ..core.estimators import apply_nutrition, enrich_exercise, estimate_exercise, needs_nutrition
from ..core.models import (
    DashboardOverview,
    DayEntry,
    Domain,
    Exercise,
    ExerciseEstimate,
    FoodDay,
    FoodItem,
    MealSlot,
    NutritionEstimate,
    StudyDay,
    StudyPeriodSummary,
    StudySession,
    Trends,
    UserGoals,
    WeeklyReport,
    WorkoutDay,
    WorkoutPeriodSummary,
)
from ..core.reports import (
    generate_dashboard,
    generate_trends,
    generate_weekly_report,
    summarize_study,
    summarize_workouts,
    week_range,
)
from ..core.tables import DEFAULT_MET_TABLE, DEFAULT_WEIGHT_KG, LookupTable
from ..core.upsert import DateInput, DayUpdate, MergeMode, UpsertCoordinator, normalize_date
from .auth import AuthClient, UserRepository
from .config import AppConfig
from .firestore_client import LifeLogFirestoreClient
from .memory_store import InMemoryStore
from .nutrition import NutritionLookup, build_providers


logger = logging.getLogger(__name__)

# Days kept by the cleanup operation
RETENTION_DAYS = 30


class Tracker:
    """Food, workout and study logging for authenticated users."""

    def __init__(
        self,
        coordinator: UpsertCoordinator,
        lookup: NutritionLookup,
        users: UserRepository | None = None,
        met_table: LookupTable[float] = DEFAULT_MET_TABLE,
        default_weight_kg: float = DEFAULT_WEIGHT_KG,
    ) -> None:
        self.coordinator = coordinator
        self.lookup = lookup
        self.users = users
        self.met_table = met_table
        self.default_weight_kg = default_weight_kg

    async def _resolve_weight(self, user_id: Optional[str]) -> float:
        if user_id and self.users is not None:
            user = await self.users.get_user(user_id)
            if user is not None and user.weight_kg:
                return user.weight_kg
        return self.default_weight_kg

    async def user_goals(self, user_id: str) -> UserGoals:
        if self.users is not None:
            user = await self.users.get_user(user_id)
            if user is not None:
                return user.goals
        return UserGoals()

    # ==================== Food ====================

    async def lookup_nutrition(self, food_name: str, quantity: float = 100, unit: str = "g") -> NutritionEstimate:
        return await self.lookup.lookup(food_name, quantity, unit)

    async def _with_nutrition(self, item: FoodItem) -> FoodItem:
        if not needs_nutrition(item):
            return item
        estimate = await self.lookup.lookup(item.name, item.quantity, item.unit.value)
        return apply_nutrition(item, estimate)

    async def log_food(
        self,
        user_id: str,
        log_date: DateInput,
        slot: Optional[MealSlot] = None,
        items: Sequence[FoodItem] = (),
        mode: MergeMode = MergeMode.APPEND,
        water_intake: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> FoodDay:
        """Add (or replace) food items in one meal slot of a day.

        Items without calories get their macros from the nutrition lookup.
        Water intake and notes are set when given.
        """
        normalize_date(log_date)
        if items and slot is None:
            raise EntryValidationError("meal slot is required when logging food items")
        processed = list(await asyncio.gather(*(self._with_nutrition(i) for i in items)))

        fields: dict = {}
        if water_intake is not None:
            fields["water_intake"] = water_intake
        if notes:
            fields["notes"] = notes

        records = processed if processed or (mode is MergeMode.REPLACE and slot is not None) else None
        update = DayUpdate(log_date=log_date, records=records, slot=slot, fields=fields, mode=mode)
        return await self.coordinator.upsert(Domain.FOOD, user_id, update)

    async def remove_food_item(self, user_id: str, log_date: DateInput, slot: MealSlot, item_id: str) -> FoodDay:
        return await self.coordinator.remove_record(Domain.FOOD, user_id, log_date, item_id, slot=slot)

    # ==================== Workout ====================

    async def estimate_exercise(
        self,
        exercise_name: str,
        duration_minutes: float,
        weight_kg: Optional[float] = None,
        user_id: Optional[str] = None,
    ) -> ExerciseEstimate:
        """Preview the calories `log_exercise` would estimate for the same input."""
        weight = weight_kg or await self._resolve_weight(user_id)
        return estimate_exercise(exercise_name, duration_minutes, weight, self.met_table)

    async def log_exercise(
        self,
        user_id: str,
        log_date: DateInput,
        exercise: Exercise,
        weight_kg: Optional[float] = None,
        mode: MergeMode = MergeMode.APPEND,
        **fields,
    ) -> WorkoutDay:
        """Add one exercise to a day's workout.

        Calories are estimated from MET when not supplied, using `weight_kg`,
        else the user's stored weight, else the default weight.
        """
        normalize_date(log_date)
        weight = weight_kg or await self._resolve_weight(user_id)
        exercise = enrich_exercise(exercise, weight, self.met_table)

        update = DayUpdate(log_date=log_date, records=[exercise], fields=fields, mode=mode)
        return await self.coordinator.upsert(Domain.WORKOUT, user_id, update)

    async def remove_exercise(self, user_id: str, log_date: DateInput, exercise_id: str) -> WorkoutDay:
        return await self.coordinator.remove_record(Domain.WORKOUT, user_id, log_date, exercise_id)

    async def workout_stats(self, user_id: str, today: date, days: int = 30) -> WorkoutPeriodSummary:
        entries = await self.coordinator.get_range(Domain.WORKOUT, user_id, today - timedelta(days=days), today)
        return summarize_workouts(entries)

    # ==================== Study ====================

    async def save_study_day(
        self,
        user_id: str,
        log_date: DateInput,
        sessions: Optional[Sequence[StudySession]] = None,
        notes: Optional[str] = None,
        mode: MergeMode = MergeMode.REPLACE,
    ) -> StudyDay:
        """Set a day's study sessions. None keeps the stored sessions."""
        fields = {"notes": notes} if notes else {}
        records = list(sessions) if sessions is not None else None
        update = DayUpdate(log_date=log_date, records=records, fields=fields, mode=mode)
        return await self.coordinator.upsert(Domain.STUDY, user_id, update)

    async def add_study_session(
        self, user_id: str, log_date: DateInput, session: StudySession, notes: Optional[str] = None
    ) -> StudyDay:
        return await self.save_study_day(user_id, log_date, [session], notes, mode=MergeMode.APPEND)

    async def study_stats(self, user_id: str, today: date, days: int = 30) -> StudyPeriodSummary:
        entries = await self.coordinator.get_range(Domain.STUDY, user_id, today - timedelta(days=days), today)
        return summarize_study(entries)

    # ==================== Shared ====================

    async def get_day(self, domain: Domain, user_id: str, log_date: DateInput) -> Optional[DayEntry]:
        return await self.coordinator.get_day(domain, user_id, log_date)

    async def get_week(self, domain: Domain, user_id: str, anchor: DateInput) -> tuple[date, date, list[DayEntry]]:
        """Entries of the Monday-to-Sunday week containing `anchor`."""
        monday, sunday = week_range(normalize_date(anchor))
        entries = await self.coordinator.get_range(domain, user_id, monday, sunday)
        return monday, sunday, entries

    async def delete_day(self, domain: Domain, user_id: str, log_date: DateInput) -> bool:
        return await self.coordinator.delete_day(domain, user_id, log_date)

    async def _week_of_all(self, user_id: str, anchor: date) -> tuple[list, list, list]:
        monday, sunday = week_range(anchor)
        food, workout, study = await asyncio.gather(
            self.coordinator.get_range(Domain.FOOD, user_id, monday, sunday),
            self.coordinator.get_range(Domain.WORKOUT, user_id, monday, sunday),
            self.coordinator.get_range(Domain.STUDY, user_id, monday, sunday),
        )
        return food, workout, study

    async def weekly_report(self, user_id: str, anchor: DateInput) -> WeeklyReport:
        day = normalize_date(anchor)
        food, workout, study = await self._week_of_all(user_id, day)
        return generate_weekly_report(food, workout, study, day)

    async def dashboard(self, user_id: str, today: date) -> DashboardOverview:
        (food, workout, study), goals = await asyncio.gather(
            self._week_of_all(user_id, today), self.user_goals(user_id)
        )
        return generate_dashboard(today, goals, food, workout, study)

    async def trends(self, user_id: str, today: date, days: int = 30) -> Trends:
        """Daily series for each domain over the last `days` days."""
        start = today - timedelta(days=days)
        food, workout, study = await asyncio.gather(
            *(self.coordinator.get_range(domain, user_id, start, today) for domain in Domain)
        )
        return generate_trends(start, today, food, workout, study)

    async def cleanup(self, user_id: str, today: date, retention_days: int = RETENTION_DAYS) -> dict[Domain, int]:
        """Delete day entries older than the retention window, for every domain."""
        cutoff = today - timedelta(days=retention_days)
        counts = await asyncio.gather(
            *(self.coordinator.delete_before(domain, user_id, cutoff) for domain in Domain)
        )
        return dict(zip(Domain, counts))


# ==================== Wiring ====================

_tracker: Tracker | None = None
_auth_client: AuthClient | None = None


def build_tracker(config: AppConfig) -> tuple[Tracker, AuthClient]:
    """Create the tracker and auth client for a configuration."""
    if config.storage_backend == "memory":
        logger.warning("Using in-memory storage; data is lost on restart")
        store = InMemoryStore()
    else:
        store = LifeLogFirestoreClient(config.firestore)

    coordinator = UpsertCoordinator(
        store,
        storage_timeout=config.storage_timeout,
        max_attempts=config.max_write_attempts,
    )
    lookup = NutritionLookup(
        providers=build_providers(
            config.edamam_app_id,
            config.edamam_app_key,
            config.nutritionix_app_id,
            config.nutritionix_api_key,
        ),
        timeout=config.lookup_timeout,
    )
    tracker = Tracker(coordinator, lookup, users=store, default_weight_kg=config.default_weight_kg)
    return tracker, AuthClient(store)


def configure(tracker: Tracker | None = None, auth_client: AuthClient | None = None) -> None:
    """Install the tracker/auth client used by routes and tools."""
    global _tracker, _auth_client
    _tracker = tracker
    _auth_client = auth_client


def _ensure_built() -> None:
    global _tracker, _auth_client
    if _tracker is None or _auth_client is None:
        tracker, auth_client = build_tracker(AppConfig.from_env())
        _tracker = _tracker or tracker
        _auth_client = _auth_client or auth_client


def get_tracker() -> Tracker:
    """Get or create the tracker."""
    _ensure_built()
    return _tracker


def get_auth_client() -> AuthClient:
    """Get or create the auth client."""
    _ensure_built()
    return _auth_client
