"""Tests for the tracker service over the in-memory store."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from lifelog.core.errors import EntryValidationError, RecordNotFoundError
from lifelog.core.models import Domain, Exercise, FoodItem, MealSlot, StudySession, User, UserGoals
from lifelog.core.upsert import MergeMode, UpsertCoordinator
from lifelog.shell.memory_store import InMemoryStore
from lifelog.shell.nutrition import NutritionLookup
from lifelog.shell.tracker import Tracker


USER = "user1234abcd"
MONDAY = date(2024, 3, 11)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def tracker(store):
    return Tracker(UpsertCoordinator(store), NutritionLookup(), users=store)


def session(subject, planned, actual):
    return StudySession(subject=subject, topic="Review", planned_duration=planned, actual_duration=actual)


class TestFood:
    """Tests for food logging."""

    @pytest.mark.asyncio
    async def test_estimates_missing_nutrition(self, tracker):
        """Items without calories are filled from the nutrition lookup."""
        day = await tracker.log_food(
            USER, "2024-03-11", MealSlot.LUNCH, [FoodItem(name="Brown Rice", quantity=150)]
        )

        item = day.lunch.items[0]
        assert item.calories == 195
        assert item.fat == 0.45
        assert item.is_auto_estimated is True
        assert item.source == "estimated"
        assert day.total_day_calories == 195

    @pytest.mark.asyncio
    async def test_keeps_supplied_nutrition(self, tracker):
        day = await tracker.log_food(
            USER, MONDAY, MealSlot.BREAKFAST, [FoodItem(name="Oatmeal", calories=150, protein=5)]
        )
        assert day.breakfast.items[0].calories == 150
        assert day.breakfast.items[0].is_auto_estimated is False

    @pytest.mark.asyncio
    async def test_append_then_replace(self, tracker):
        await tracker.log_food(USER, MONDAY, MealSlot.BREAKFAST, [FoodItem(name="Oatmeal", calories=150)])
        day = await tracker.log_food(USER, MONDAY, MealSlot.BREAKFAST, [FoodItem(name="Banana", calories=105)])
        assert day.breakfast.total_calories == 255

        day = await tracker.log_food(
            USER, MONDAY, MealSlot.BREAKFAST, [FoodItem(name="Toast", calories=90)], mode=MergeMode.REPLACE
        )
        assert [i.name for i in day.breakfast.items] == ["Toast"]

    @pytest.mark.asyncio
    async def test_water_only(self, tracker):
        """Water intake can be logged without any food."""
        day = await tracker.log_food(USER, MONDAY, water_intake=750)
        assert day.water_intake == 750
        assert day.total_day_calories == 0

    @pytest.mark.asyncio
    async def test_items_require_slot(self, tracker, store):
        with pytest.raises(EntryValidationError):
            await tracker.log_food(USER, MONDAY, None, [FoodItem(name="Banana", calories=105)])
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_missing_slot_skips_nutrition_lookup(self, store):
        """A request without a meal slot is rejected before any provider is called."""
        lookup = NutritionLookup()
        lookup.lookup = AsyncMock()
        tracker = Tracker(UpsertCoordinator(store), lookup, users=store)

        with pytest.raises(EntryValidationError):
            await tracker.log_food(USER, MONDAY, None, [FoodItem(name="Banana"), FoodItem(name="Rice")])

        lookup.lookup.assert_not_awaited()
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_invalid_date(self, tracker):
        with pytest.raises(EntryValidationError):
            await tracker.log_food(USER, "31/12/2024", MealSlot.LUNCH, [FoodItem(name="Soup", calories=1)])

    @pytest.mark.asyncio
    async def test_remove_item(self, tracker):
        day = await tracker.log_food(USER, MONDAY, MealSlot.DINNER, [FoodItem(name="Fish", calories=200)])
        item_id = day.dinner.items[0].id

        day = await tracker.remove_food_item(USER, MONDAY, MealSlot.DINNER, item_id)

        assert day.dinner.items == []
        assert day.total_day_calories == 0


class TestWorkout:
    """Tests for workout logging."""

    @pytest.mark.asyncio
    async def test_estimates_with_default_weight(self, tracker):
        day = await tracker.log_exercise(USER, MONDAY, Exercise(name="Running (moderate, 6mph)", duration=30))
        assert day.exercises[0].calories_burned == 343
        assert day.exercises[0].is_auto_calculated is True
        assert day.total_calories_burned == 343

    @pytest.mark.asyncio
    async def test_uses_stored_user_weight(self, tracker, store):
        await store.save_user(USER, User(email="a@b.com", api_key_hash=USER, weight_kg=80))
        day = await tracker.log_exercise(USER, MONDAY, Exercise(name="Running (moderate, 6mph)", duration=30))
        assert day.exercises[0].calories_burned == 392

    @pytest.mark.asyncio
    async def test_explicit_weight_wins(self, tracker, store):
        await store.save_user(USER, User(email="a@b.com", api_key_hash=USER, weight_kg=80))
        day = await tracker.log_exercise(
            USER, MONDAY, Exercise(name="Running (moderate, 6mph)", duration=30), weight_kg=60
        )
        assert day.exercises[0].calories_burned == 294

    @pytest.mark.asyncio
    async def test_scalar_fields(self, tracker):
        day = await tracker.log_exercise(
            USER, MONDAY, Exercise(name="Squat", sets=5, reps=5, calories_burned=120), workout_type="strength"
        )
        assert day.workout_type == "strength"
        assert day.exercises[0].is_auto_calculated is False

    @pytest.mark.asyncio
    async def test_remove_unknown_exercise(self, tracker):
        await tracker.log_exercise(USER, MONDAY, Exercise(name="Squat", calories_burned=120))
        with pytest.raises(RecordNotFoundError):
            await tracker.remove_exercise(USER, MONDAY, "missing")

    @pytest.mark.asyncio
    async def test_stats_over_last_30_days(self, tracker):
        today = date(2024, 3, 31)
        await tracker.log_exercise(USER, date(2024, 3, 30), Exercise(name="Run", duration=30, calories_burned=300))
        await tracker.log_exercise(USER, date(2024, 3, 5), Exercise(name="Run", duration=20, calories_burned=200))
        await tracker.log_exercise(USER, date(2024, 2, 1), Exercise(name="Run", duration=60, calories_burned=600))

        stats = await tracker.workout_stats(USER, today)

        assert stats.total_calories_burned == 500
        assert stats.total_duration == 50
        assert stats.days_worked_out == 2

    @pytest.mark.asyncio
    async def test_estimate_exercise(self, tracker):
        estimate = await tracker.estimate_exercise("Zumba Advanced Remix", 60)
        assert estimate.met == 4.0
        assert estimate.calories == 280

    @pytest.mark.asyncio
    async def test_estimate_matches_logged_calories(self, tracker, store):
        """The preview uses the stored weight, like log_exercise does."""
        await store.save_user(USER, User(email="a@b.com", api_key_hash=USER, weight_kg=80))

        estimate = await tracker.estimate_exercise("Running (moderate, 6mph)", 30, user_id=USER)
        day = await tracker.log_exercise(USER, MONDAY, Exercise(name="Running (moderate, 6mph)", duration=30))

        assert estimate.calories == 392
        assert day.exercises[0].calories_burned == estimate.calories

    @pytest.mark.asyncio
    async def test_estimate_explicit_weight_wins(self, tracker, store):
        await store.save_user(USER, User(email="a@b.com", api_key_hash=USER, weight_kg=80))
        estimate = await tracker.estimate_exercise("Running (moderate, 6mph)", 30, weight_kg=60, user_id=USER)
        assert estimate.calories == 294


class TestStudy:
    """Tests for study logging."""

    @pytest.mark.asyncio
    async def test_save_day_replaces_sessions(self, tracker):
        await tracker.save_study_day(USER, MONDAY, [session("Math", 60, 60)])
        day = await tracker.save_study_day(USER, MONDAY, [session("Math", 60, 50), session("Physics", 30, 30)])

        assert len(day.sessions) == 2
        assert day.total_planned_hours == 1.5
        assert day.productivity_score == 89

    @pytest.mark.asyncio
    async def test_notes_only_keeps_sessions(self, tracker):
        await tracker.save_study_day(USER, MONDAY, [session("Math", 60, 60)])
        day = await tracker.save_study_day(USER, MONDAY, None, notes="Focused")
        assert day.notes == "Focused"
        assert len(day.sessions) == 1

    @pytest.mark.asyncio
    async def test_add_session_appends(self, tracker):
        await tracker.add_study_session(USER, MONDAY, session("Math", 60, 60))
        day = await tracker.add_study_session(USER, MONDAY, session("Physics", 60, 30))

        assert [s.subject for s in day.sessions] == ["Math", "Physics"]
        assert day.total_completed_sessions == 1

    @pytest.mark.asyncio
    async def test_stats(self, tracker):
        today = date(2024, 3, 13)
        await tracker.save_study_day(USER, MONDAY, [session("Math", 60, 60)])
        await tracker.save_study_day(USER, today, [session("Math", 60, 30), session("Physics", 60, 60)])

        stats = await tracker.study_stats(USER, today, days=7)

        assert stats.total_hours == 2.5
        assert stats.avg_daily_hours == 1.3
        assert [(s.subject, s.hours) for s in stats.subject_breakdown] == [("Math", 1.5), ("Physics", 1.0)]


class TestViewsAndReports:
    """Tests for week views, reports, dashboard and cleanup."""

    @pytest.mark.asyncio
    async def test_get_week(self, tracker):
        await tracker.log_food(USER, date(2024, 3, 10), MealSlot.LUNCH, [FoodItem(name="A", calories=1)])
        await tracker.log_food(USER, date(2024, 3, 12), MealSlot.LUNCH, [FoodItem(name="B", calories=1)])
        await tracker.log_food(USER, date(2024, 3, 17), MealSlot.LUNCH, [FoodItem(name="C", calories=1)])

        monday, sunday, entries = await tracker.get_week(Domain.FOOD, USER, "2024-03-14")

        assert (monday, sunday) == (date(2024, 3, 11), date(2024, 3, 17))
        assert [e.log_date for e in entries] == [date(2024, 3, 12), date(2024, 3, 17)]

    @pytest.mark.asyncio
    async def test_weekly_report(self, tracker):
        await tracker.log_food(USER, MONDAY, MealSlot.LUNCH, [FoodItem(name="Soup", calories=600)])
        await tracker.log_exercise(USER, MONDAY, Exercise(name="Run", duration=30, calories_burned=300))
        await tracker.add_study_session(USER, MONDAY, session("Math", 60, 60))

        report = await tracker.weekly_report(USER, MONDAY)

        assert report.food.total_calories == 600
        assert report.workout.total_calories_burned == 300
        assert report.study.total_hours == 1.0

    @pytest.mark.asyncio
    async def test_dashboard_uses_user_goals(self, tracker, store):
        await store.save_user(
            USER, User(email="a@b.com", api_key_hash=USER, goals=UserGoals(daily_calorie_intake=1800))
        )
        await tracker.log_food(USER, MONDAY, MealSlot.LUNCH, [FoodItem(name="Soup", calories=600)])

        overview = await tracker.dashboard(USER, MONDAY)

        assert overview.goals.daily_calorie_intake == 1800
        assert overview.progress.calories_remaining == 1200
        assert overview.today[Domain.FOOD]["calories"] == 600

    @pytest.mark.asyncio
    async def test_trends_cover_last_30_days(self, tracker):
        today = date(2024, 3, 31)
        await tracker.log_food(USER, date(2024, 3, 20), MealSlot.LUNCH, [FoodItem(name="Soup", calories=400, protein=20)])
        await tracker.log_food(USER, date(2024, 3, 2), MealSlot.LUNCH, [FoodItem(name="Pie", calories=500)])
        await tracker.log_food(USER, date(2024, 2, 20), MealSlot.LUNCH, [FoodItem(name="Old", calories=900)])
        await tracker.log_exercise(USER, date(2024, 3, 30), Exercise(name="Run", duration=30, calories_burned=300))

        trends = await tracker.trends(USER, today)

        assert (trends.start, trends.end) == (date(2024, 3, 1), today)
        food = trends.series[Domain.FOOD]
        assert [p.log_date for p in food] == [date(2024, 3, 2), date(2024, 3, 20)]
        assert food[1].values == {"calories": 400, "protein": 20}
        assert trends.series[Domain.WORKOUT][0].values == {"calories_burned": 300, "duration": 30}
        assert trends.series[Domain.STUDY] == []

    @pytest.mark.asyncio
    async def test_cleanup(self, tracker):
        today = date(2024, 3, 31)
        await tracker.log_food(USER, date(2024, 2, 1), water_intake=100)
        await tracker.add_study_session(USER, date(2024, 2, 15), session("Math", 60, 60))
        await tracker.log_food(USER, date(2024, 3, 30), water_intake=100)

        counts = await tracker.cleanup(USER, today)

        assert counts == {Domain.FOOD: 1, Domain.WORKOUT: 0, Domain.STUDY: 1}
        assert await tracker.get_day(Domain.FOOD, USER, date(2024, 3, 30)) is not None
        assert await tracker.get_day(Domain.FOOD, USER, date(2024, 2, 1)) is None

    @pytest.mark.asyncio
    async def test_delete_day(self, tracker):
        await tracker.log_food(USER, MONDAY, water_intake=100)
        assert await tracker.delete_day(Domain.FOOD, USER, MONDAY) is True
        assert await tracker.get_day(Domain.FOOD, USER, MONDAY) is None
