"""Core Data Models - Pydantic models for type safety.

Day entries are the per-user, per-calendar-day documents for each tracking
domain. Their total fields are derived and are recomputed by the aggregator
before every write.
"""

from abc import abstractmethod
from datetime import datetime, time, timezone
from datetime import date as DateType
from enum import Enum
from typing import ClassVar, Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def noon_utc(log_date: DateType) -> datetime:
    """Representative timestamp for a calendar day.

    Noon keeps the instant on the same calendar day in every timezone within
    +/-12h of UTC.
    """
    return datetime.combine(log_date, time(12, 0), tzinfo=timezone.utc)


class Domain(str, Enum):
    """Tracking domain. Each domain has its own collection of day entries."""

    FOOD = "food"
    WORKOUT = "workout"
    STUDY = "study"


class MealSlot(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACKS = "snacks"


MEAL_SLOTS: tuple[MealSlot, ...] = tuple(MealSlot)


class FoodUnit(str, Enum):
    G = "g"
    ML = "ml"
    OZ = "oz"
    SERVING = "serving"
    CUP = "cup"
    TBSP = "tbsp"
    TSP = "tsp"
    PIECE = "piece"


class ExerciseCategory(str, Enum):
    STRENGTH = "strength"
    CARDIO = "cardio"
    FLEXIBILITY = "flexibility"
    SPORTS = "sports"
    OTHER = "other"


class Intensity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# ==================== Sub-records ====================


class FoodItem(BaseModel):
    """A single food item logged into a meal slot."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1, description="Name of the food")
    quantity: float = Field(default=100, ge=0, description="Amount in `unit`")
    unit: FoodUnit = FoodUnit.G
    calories: float = Field(default=0, ge=0)
    protein: float = Field(default=0, ge=0, description="Protein in grams")
    carbs: float = Field(default=0, ge=0, description="Carbohydrates in grams")
    fat: float = Field(default=0, ge=0, description="Fat in grams")
    fiber: float = Field(default=0, ge=0)
    sugar: float = Field(default=0, ge=0)
    is_auto_estimated: bool = Field(default=False, description="Macros came from a lookup, not the user")
    source: Optional[str] = Field(default=None, description="Lookup provider tag when estimated")


class Exercise(BaseModel):
    """A single exercise within a day's workout."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    category: ExerciseCategory = ExerciseCategory.OTHER
    sets: int = Field(default=0, ge=0)
    reps: int = Field(default=0, ge=0)
    weight: float = Field(default=0, ge=0, description="Load in kg")
    duration: float = Field(default=0, ge=0, description="Minutes")
    calories_burned: float = Field(default=0, ge=0)
    met: Optional[float] = Field(default=None, ge=0, description="MET value used for estimation")
    is_auto_calculated: bool = False
    notes: Optional[str] = Field(default=None, max_length=200)


class StudySession(BaseModel):
    """A single study session. Completion fields are derived."""

    id: str = Field(default_factory=_new_id)
    subject: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    planned_duration: float = Field(ge=0, description="Minutes")
    actual_duration: float = Field(default=0, ge=0, description="Minutes")
    completed: bool = False
    completion_percentage: int = Field(default=0, ge=0, le=100)
    difficulty: Difficulty = Difficulty.MEDIUM
    notes: Optional[str] = Field(default=None, max_length=500)
    resources: list[str] = Field(default_factory=list)


class Meal(BaseModel):
    """Items logged in one meal slot with their cached totals."""

    items: list[FoodItem] = Field(default_factory=list)
    total_calories: float = 0
    total_protein: float = 0
    total_carbs: float = 0
    total_fat: float = 0


# ==================== Day entries ====================


class DayEntry(BaseModel):
    """Common fields of every day document.

    (user_id, log_date) is unique per domain.
    """

    model_config = ConfigDict(validate_assignment=True)

    domain: ClassVar[Domain]
    # Scalar fields a caller may set directly through an upsert
    scalar_fields: ClassVar[frozenset[str]] = frozenset({"notes"})

    user_id: str = Field(min_length=1)
    log_date: DateType
    day_anchor: datetime = Field(description="UTC noon of log_date, set on creation")
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def new(cls, user_id: str, log_date: DateType) -> "DayEntry":
        return cls(user_id=user_id, log_date=log_date, day_anchor=noon_utc(log_date))

    @abstractmethod
    def records(self) -> list[BaseModel]:
        """All sub-records of this day, in storage order."""


class FoodDay(DayEntry):
    """A day's food log grouped by meal slot."""

    domain: ClassVar[Domain] = Domain.FOOD
    scalar_fields: ClassVar[frozenset[str]] = frozenset({"notes", "water_intake"})

    breakfast: Meal = Field(default_factory=Meal)
    lunch: Meal = Field(default_factory=Meal)
    dinner: Meal = Field(default_factory=Meal)
    snacks: Meal = Field(default_factory=Meal)
    total_day_calories: float = 0
    total_day_protein: float = 0
    total_day_carbs: float = 0
    total_day_fat: float = 0
    water_intake: float = Field(default=0, ge=0, description="Millilitres")

    def meal(self, slot: MealSlot) -> Meal:
        return getattr(self, MealSlot(slot).value)

    def records(self) -> list[BaseModel]:
        return [item for slot in MEAL_SLOTS for item in self.meal(slot).items]


class WorkoutDay(DayEntry):
    """A day's exercises."""

    domain: ClassVar[Domain] = Domain.WORKOUT
    scalar_fields: ClassVar[frozenset[str]] = frozenset(
        {"notes", "workout_type", "intensity", "completed"}
    )

    exercises: list[Exercise] = Field(default_factory=list)
    total_calories_burned: float = 0
    total_duration: float = Field(default=0, description="Minutes")
    workout_type: str = "mixed"
    intensity: Intensity = Intensity.MEDIUM
    completed: bool = False

    def records(self) -> list[BaseModel]:
        return list(self.exercises)


class StudyDay(DayEntry):
    """A day's study sessions."""

    domain: ClassVar[Domain] = Domain.STUDY

    sessions: list[StudySession] = Field(default_factory=list)
    total_planned_hours: float = 0
    total_actual_hours: float = 0
    total_completed_sessions: int = 0
    productivity_score: int = Field(default=0, ge=0, le=100)

    def records(self) -> list[BaseModel]:
        return list(self.sessions)


DAY_MODELS: dict[Domain, type[DayEntry]] = {
    Domain.FOOD: FoodDay,
    Domain.WORKOUT: WorkoutDay,
    Domain.STUDY: StudyDay,
}

RECORD_MODELS: dict[Domain, type[BaseModel]] = {
    Domain.FOOD: FoodItem,
    Domain.WORKOUT: Exercise,
    Domain.STUDY: StudySession,
}


# ==================== Estimates ====================


class NutritionEstimate(BaseModel):
    """Macros for a quantity of food and the lookup path that produced them."""

    calories: float = Field(ge=0)
    protein: float = Field(ge=0)
    carbs: float = Field(ge=0)
    fat: float = Field(ge=0)
    fiber: float = Field(default=0, ge=0)
    sugar: float = Field(default=0, ge=0)
    source: str = Field(description="Provider name, or 'estimated' for the local table")


class ExerciseEstimate(BaseModel):
    """Calories burned for an exercise and the MET value used."""

    calories: int = Field(ge=0)
    met: float = Field(ge=0)
    matched: Optional[str] = Field(default=None, description="Table key used; None for the default MET")


# ==================== Users ====================


class UserGoals(BaseModel):
    """Display-side goal thresholds. Not enforced by the core."""

    daily_calorie_intake: int = Field(default=2000, ge=0)
    daily_calorie_burn: int = Field(default=500, ge=0)
    daily_study_hours: float = Field(default=4, ge=0)
    weekly_workout_days: int = Field(default=5, ge=0, le=7)


class User(BaseModel):
    """User record stored in Firestore."""

    email: str
    name: Optional[str] = Field(default=None, max_length=50)
    api_key_hash: str = Field(description="SHA256 hash of API key - never store plaintext")
    weight_kg: Optional[float] = Field(default=None, gt=0, description="Body weight used for MET estimates")
    goals: UserGoals = Field(default_factory=UserGoals)
    created_at: datetime = Field(default_factory=_utcnow)


# ==================== Reports ====================


class SubjectHours(BaseModel):
    subject: str
    hours: float


class FoodPeriodSummary(BaseModel):
    total_calories: float = 0
    avg_daily_calories: float = 0
    total_protein: float = 0
    total_carbs: float = 0
    total_fat: float = 0
    days_logged: int = 0


class WorkoutPeriodSummary(BaseModel):
    total_calories_burned: float = 0
    total_duration: float = 0
    days_worked_out: int = 0
    total_exercises: int = 0


class StudyPeriodSummary(BaseModel):
    total_hours: float = 0
    avg_daily_hours: float = 0
    completed_sessions: int = 0
    subject_breakdown: list[SubjectHours] = Field(default_factory=list)


class WeeklyReport(BaseModel):
    """Monday-to-Sunday report across the three domains."""

    week_start: DateType
    week_end: DateType
    food: FoodPeriodSummary
    workout: WorkoutPeriodSummary
    study: StudyPeriodSummary


class GoalProgress(BaseModel):
    """Today's totals against the user's goals. Remaining is negative when over."""

    calories_consumed: float
    calories_remaining: float
    calories_burned: float
    burn_remaining: float
    study_hours: float
    study_hours_remaining: float
    workout_days_this_week: int
    workout_days_remaining: int


class DailyPoint(BaseModel):
    """One day of a dashboard series."""

    log_date: DateType
    values: dict[str, float]


class DashboardOverview(BaseModel):
    today: dict[Domain, Optional[dict[str, float]]]
    weekly: dict[Domain, list[DailyPoint]]
    workout_days: int
    goals: UserGoals
    progress: GoalProgress


class Trends(BaseModel):
    """Per-domain daily series over a trailing window, oldest day first."""

    start: DateType
    end: DateType
    series: dict[Domain, list[DailyPoint]]
