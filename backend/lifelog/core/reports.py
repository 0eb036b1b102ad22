"""Report Generation - Pure functions for generating reports.

All functions are pure: same input always produces same output, no side effects.
Inputs are day entries that were already recomputed by the aggregator.
"""

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence

from .estimators import round_places
from .models import (
    DailyPoint,
    DashboardOverview,
    Domain,
    FoodDay,
    FoodPeriodSummary,
    GoalProgress,
    StudyDay,
    StudyPeriodSummary,
    SubjectHours,
    Trends,
    UserGoals,
    WeeklyReport,
    WorkoutDay,
    WorkoutPeriodSummary,
)


def week_range(anchor: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing `anchor`."""
    monday = anchor - timedelta(days=anchor.weekday())
    return monday, monday + timedelta(days=6)


def summarize_food(days: Sequence[FoodDay]) -> FoodPeriodSummary:
    """Totals and daily average over the logged food days.

    Args:
        days: Food days in the period (days without a log are not counted)

    Returns:
        FoodPeriodSummary with totals rounded to one decimal
    """
    total_calories = sum(d.total_day_calories for d in days)
    days_logged = len(days)
    avg_daily_calories = total_calories / days_logged if days_logged > 0 else 0

    return FoodPeriodSummary(
        total_calories=total_calories,
        avg_daily_calories=round_places(avg_daily_calories, 1),
        total_protein=round_places(sum(d.total_day_protein for d in days), 1),
        total_carbs=round_places(sum(d.total_day_carbs for d in days), 1),
        total_fat=round_places(sum(d.total_day_fat for d in days), 1),
        days_logged=days_logged,
    )


def summarize_workouts(days: Sequence[WorkoutDay]) -> WorkoutPeriodSummary:
    """A day counts as worked out when it has at least one exercise."""
    return WorkoutPeriodSummary(
        total_calories_burned=sum(d.total_calories_burned for d in days),
        total_duration=sum(d.total_duration for d in days),
        days_worked_out=sum(1 for d in days if d.exercises),
        total_exercises=sum(len(d.exercises) for d in days),
    )


def subject_breakdown(days: Iterable[StudyDay]) -> list[SubjectHours]:
    """Actual study hours per subject, in order of first appearance."""
    minutes: dict[str, float] = defaultdict(float)
    for day in days:
        for session in day.sessions:
            minutes[session.subject] += session.actual_duration
    return [SubjectHours(subject=s, hours=round_places(m / 60, 1)) for s, m in minutes.items()]


def summarize_study(days: Sequence[StudyDay]) -> StudyPeriodSummary:
    total_hours = sum(d.total_actual_hours for d in days)
    days_logged = len(days)

    return StudyPeriodSummary(
        total_hours=round_places(total_hours, 1),
        avg_daily_hours=round_places(total_hours / days_logged, 1) if days_logged else 0,
        completed_sessions=sum(d.total_completed_sessions for d in days),
        subject_breakdown=subject_breakdown(days),
    )


def _in_range(days, start: date, end: date) -> list:
    return sorted((d for d in days if start <= d.log_date <= end), key=lambda d: d.log_date)


def generate_weekly_report(
    food_days: Sequence[FoodDay],
    workout_days: Sequence[WorkoutDay],
    study_days: Sequence[StudyDay],
    week_start: Optional[date] = None,
) -> WeeklyReport:
    """Generate a Monday-to-Sunday report across all three domains.

    Args:
        food_days: Food days (may extend beyond the week; filtered here)
        workout_days: Workout days
        study_days: Study days
        week_start: Any day of the week to report (defaults to this week)

    Returns:
        WeeklyReport with one summary per domain
    """
    week_start, week_end = week_range(week_start or date.today())

    return WeeklyReport(
        week_start=week_start,
        week_end=week_end,
        food=summarize_food(_in_range(food_days, week_start, week_end)),
        workout=summarize_workouts(_in_range(workout_days, week_start, week_end)),
        study=summarize_study(_in_range(study_days, week_start, week_end)),
    )


def calculate_goal_progress(
    goals: UserGoals,
    today_food: Optional[FoodDay],
    today_workout: Optional[WorkoutDay],
    today_study: Optional[StudyDay],
    workout_days_this_week: int,
) -> GoalProgress:
    """Compare today's totals with the user's goals.

    Missing days count as zero.
    """
    consumed = today_food.total_day_calories if today_food else 0
    burned = today_workout.total_calories_burned if today_workout else 0
    hours = today_study.total_actual_hours if today_study else 0

    return GoalProgress(
        calories_consumed=consumed,
        calories_remaining=goals.daily_calorie_intake - consumed,
        calories_burned=burned,
        burn_remaining=goals.daily_calorie_burn - burned,
        study_hours=round_places(hours, 2),
        study_hours_remaining=round_places(goals.daily_study_hours - hours, 2),
        workout_days_this_week=workout_days_this_week,
        workout_days_remaining=goals.weekly_workout_days - workout_days_this_week,
    )


def _food_today(day: Optional[FoodDay]) -> Optional[dict[str, float]]:
    if day is None:
        return None
    return {
        "calories": day.total_day_calories,
        "protein": day.total_day_protein,
        "carbs": day.total_day_carbs,
        "fat": day.total_day_fat,
        "water_intake": day.water_intake,
    }


def _workout_today(day: Optional[WorkoutDay]) -> Optional[dict[str, float]]:
    if day is None:
        return None
    return {
        "calories_burned": day.total_calories_burned,
        "duration": day.total_duration,
        "exercises": len(day.exercises),
    }


def _study_today(day: Optional[StudyDay]) -> Optional[dict[str, float]]:
    if day is None:
        return None
    return {
        "hours": day.total_actual_hours,
        "sessions": len(day.sessions),
        "score": day.productivity_score,
    }


def generate_dashboard(
    today: date,
    goals: UserGoals,
    food_days: Sequence[FoodDay],
    workout_days: Sequence[WorkoutDay],
    study_days: Sequence[StudyDay],
) -> DashboardOverview:
    """Today's numbers plus this week's daily series for each domain.

    Args:
        today: The user's current date
        goals: The user's goals
        food_days: Food days of the current week
        workout_days: Workout days of the current week
        study_days: Study days of the current week

    Returns:
        DashboardOverview for the dashboard page
    """
    monday, sunday = week_range(today)
    food_week = _in_range(food_days, monday, sunday)
    workout_week = _in_range(workout_days, monday, sunday)
    study_week = _in_range(study_days, monday, sunday)

    def on_today(days):
        return next((d for d in days if d.log_date == today), None)

    today_food, today_workout, today_study = on_today(food_week), on_today(workout_week), on_today(study_week)
    workout_count = summarize_workouts(workout_week).days_worked_out

    return DashboardOverview(
        today={
            Domain.FOOD: _food_today(today_food),
            Domain.WORKOUT: _workout_today(today_workout),
            Domain.STUDY: _study_today(today_study),
        },
        weekly={
            Domain.FOOD: [
                DailyPoint(log_date=d.log_date, values={
                    "calories": d.total_day_calories,
                    "protein": d.total_day_protein,
                    "carbs": d.total_day_carbs,
                    "fat": d.total_day_fat,
                })
                for d in food_week
            ],
            Domain.WORKOUT: [
                DailyPoint(log_date=d.log_date, values={
                    "calories_burned": d.total_calories_burned,
                    "duration": d.total_duration,
                })
                for d in workout_week
            ],
            Domain.STUDY: [
                DailyPoint(log_date=d.log_date, values={
                    "hours": d.total_actual_hours,
                    "score": d.productivity_score,
                })
                for d in study_week
            ],
        },
        workout_days=workout_count,
        goals=goals,
        progress=calculate_goal_progress(goals, today_food, today_workout, today_study, workout_count),
    )


def generate_trends(
    start: date,
    end: date,
    food_days: Sequence[FoodDay],
    workout_days: Sequence[WorkoutDay],
    study_days: Sequence[StudyDay],
) -> Trends:
    """Daily series for the trend charts, one point per logged day.

    Food carries calories and protein, workouts calories burned and duration,
    study hours and the productivity score.
    """
    return Trends(
        start=start,
        end=end,
        series={
            Domain.FOOD: [
                DailyPoint(log_date=d.log_date, values={
                    "calories": d.total_day_calories,
                    "protein": d.total_day_protein,
                })
                for d in _in_range(food_days, start, end)
            ],
            Domain.WORKOUT: [
                DailyPoint(log_date=d.log_date, values={
                    "calories_burned": d.total_calories_burned,
                    "duration": d.total_duration,
                })
                for d in _in_range(workout_days, start, end)
            ],
            Domain.STUDY: [
                DailyPoint(log_date=d.log_date, values={
                    "hours": d.total_actual_hours,
                    "score": d.productivity_score,
                })
                for d in _in_range(study_days, start, end)
            ],
        },
    )
