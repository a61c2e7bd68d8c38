"""
Validated record types for the documents the coaching pipeline reads.

Raw store documents are untyped maps written by the client screens. They are
parsed into these models at the aggregator boundary; nothing downstream reads
raw dicts. Numeric fields accept numbers or numeric strings, and blank or
garbage values become None.
"""

import logging
from datetime import date
from typing import Any, ClassVar, Dict, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

INTENSITY_LEVELS = ("Low", "Medium", "High", "Extreme")
DEFAULT_INTENSITY = "Medium"


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float, bool)):
        return str(value)
    return None


class StoreRecord(BaseModel):
    """Base for store documents: camelCase aliases, unknown fields ignored."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Goals(StoreRecord):
    goal_type: Optional[str] = Field(default=None, alias="goalType")
    calorie_limit: Optional[float] = Field(default=None, alias="calorieLimit")
    protein_goal: Optional[float] = Field(default=None, alias="proteinGoal")
    carb_goal: Optional[float] = Field(default=None, alias="carbGoal")
    fat_goal: Optional[float] = Field(default=None, alias="fatGoal")
    workout_sessions_per_week: Optional[float] = Field(default=None, alias="workoutSessionsPerWeek")
    cardio_sessions_per_week: Optional[float] = Field(default=None, alias="cardioSessionsPerWeek")
    water_goal: Optional[float] = Field(default=None, alias="waterGoal")  # litres per day
    starting_weight: Optional[float] = Field(default=None, alias="startingWeight")

    coerce_numbers = field_validator(
        "calorie_limit", "protein_goal", "carb_goal", "fat_goal",
        "workout_sessions_per_week", "cardio_sessions_per_week",
        "water_goal", "starting_weight",
        mode="before",
    )(_to_float)
    coerce_texts = field_validator("goal_type", mode="before")(_to_text)


class UserProfile(StoreRecord):
    user_id: str = ""
    display_name: Optional[str] = Field(default=None, alias="displayName")
    coach_id: Optional[str] = Field(default=None, alias="coachId")
    coach_intensity: Optional[str] = Field(default=None, alias="coachIntensity")
    skip_coach_reason: Optional[str] = Field(default=None, alias="skipCoachReason")
    goals: Goals = Field(default_factory=Goals)

    coerce_texts = field_validator(
        "display_name", "coach_id", "coach_intensity", "skip_coach_reason", mode="before"
    )(_to_text)

    @field_validator("goals", mode="before")
    @classmethod
    def goals_or_empty(cls, value):
        return value if isinstance(value, dict) else {}

    @property
    def has_coach(self) -> bool:
        """A usable coach: non-empty coach id and no skip reason recorded."""
        return bool(self.coach_id) and not self.skip_coach_reason

    @property
    def intensity(self) -> str:
        if self.coach_intensity in INTENSITY_LEVELS:
            return self.coach_intensity
        return DEFAULT_INTENSITY


class DailyCheckin(StoreRecord):
    date: date
    current_weight: Optional[float] = Field(default=None, alias="currentWeight")
    step_count: Optional[float] = Field(default=None, alias="stepCount")
    hours_of_sleep: Optional[float] = Field(default=None, alias="hoursOfSleep")
    trained_today: Optional[str] = Field(default=None, alias="trainedToday")
    cardio_today: Optional[str] = Field(default=None, alias="cardioToday")
    calorie_goal_met: Optional[str] = Field(default=None, alias="calorieGoalMet")

    coerce_numbers = field_validator(
        "current_weight", "step_count", "hours_of_sleep", mode="before"
    )(_to_float)
    coerce_texts = field_validator(
        "trained_today", "cardio_today", "calorie_goal_met", mode="before"
    )(_to_text)


class WeeklyCheckin(StoreRecord):
    week_start: date
    average_weight: Optional[float] = Field(default=None, alias="averageWeight")
    average_steps: Optional[float] = Field(default=None, alias="averageSteps")
    average_sleep: Optional[float] = Field(default=None, alias="averageSleep")
    workout_goal_achieved: Optional[str] = Field(default=None, alias="workoutGoalAchieved")
    cardio_goal_achieved: Optional[str] = Field(default=None, alias="cardioGoalAchieved")
    appetite: Optional[str] = None
    energy_levels: Optional[str] = Field(default=None, alias="energyLevels")
    workouts: Optional[str] = None
    digestion: Optional[str] = None
    proud_achievement: Optional[str] = Field(default=None, alias="proudAchievement")
    hardest_part: Optional[str] = Field(default=None, alias="hardestPart")
    social_events: Optional[str] = Field(default=None, alias="socialEvents")
    confidence_next_week: Optional[str] = Field(default=None, alias="confidenceNextWeek")
    schedule_next_week: Optional[str] = Field(default=None, alias="scheduleNextWeek")
    habit_to_improve: Optional[str] = Field(default=None, alias="habitToImprove")

    coerce_numbers = field_validator(
        "average_weight", "average_steps", "average_sleep", mode="before"
    )(_to_float)
    coerce_texts = field_validator(
        "workout_goal_achieved", "cardio_goal_achieved", "appetite", "energy_levels",
        "workouts", "digestion", "proud_achievement", "hardest_part", "social_events",
        "confidence_next_week", "schedule_next_week", "habit_to_improve",
        mode="before",
    )(_to_text)

    # (label, attribute) pairs in the order the check-in form asks them
    REFLECTIONS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("Appetite", "appetite"),
        ("Energy Levels", "energy_levels"),
        ("Workouts", "workouts"),
        ("Digestion", "digestion"),
        ("Proud Achievement", "proud_achievement"),
        ("Hardest Part", "hardest_part"),
        ("Social Events", "social_events"),
        ("Confidence Next Week", "confidence_next_week"),
        ("Schedule Next Week", "schedule_next_week"),
        ("Habit to Improve", "habit_to_improve"),
    )


class FoodDiary(StoreRecord):
    date: date
    total_calories: float = Field(default=0.0, alias="totalCalories")
    total_protein: float = Field(default=0.0, alias="totalProtein")
    total_carbs: float = Field(default=0.0, alias="totalCarbs")
    total_fat: float = Field(default=0.0, alias="totalFat")

    @field_validator("total_calories", "total_protein", "total_carbs", "total_fat", mode="before")
    @classmethod
    def number_or_zero(cls, value):
        return _to_float(value) or 0.0


class WorkoutLog(StoreRecord):
    id: str
    date: date
    routine_name: Optional[str] = Field(default=None, alias="routineName")
    status: Optional[str] = None

    coerce_texts = field_validator("routine_name", "status", mode="before")(_to_text)


class CardioLog(StoreRecord):
    id: str
    date: date
    name: Optional[str] = None
    minutes: float = Field(default=0.0, alias="time")
    calories: float = 0.0
    avg_heart_rate: Optional[float] = Field(default=None, alias="avgHeartRate")

    coerce_texts = field_validator("name", mode="before")(_to_text)
    coerce_heart_rate = field_validator("avg_heart_rate", mode="before")(_to_float)

    @field_validator("minutes", "calories", mode="before")
    @classmethod
    def number_or_zero(cls, value):
        return _to_float(value) or 0.0


class WaterLog(StoreRecord):
    date: date
    total_ml: float = Field(default=0.0, alias="totalML")

    @field_validator("total_ml", mode="before")
    @classmethod
    def number_or_zero(cls, value):
        return _to_float(value) or 0.0


class CoachRecord(StoreRecord):
    coach_name: Optional[str] = None
    coach_persona: Optional[str] = None
    intensity_levels: Dict[str, str] = Field(default_factory=dict, alias="intensityLevels")

    coerce_texts = field_validator("coach_name", "coach_persona", mode="before")(_to_text)

    @field_validator("intensity_levels", mode="before")
    @classmethod
    def known_levels_only(cls, value):
        if not isinstance(value, dict):
            return {}
        return {
            level: text.strip()
            for level, text in value.items()
            if level in INTENSITY_LEVELS and isinstance(text, str) and text.strip()
        }


R = TypeVar("R", bound=StoreRecord)


def parse_record(model: Type[R], data: Optional[Dict[str, Any]], **context: Any) -> Optional[R]:
    """
    Validate one raw document. Returns None (and logs) instead of raising.

    ``context`` supplies fields the document key carries rather than the body
    (e.g. ``date`` for ``{userId}_{date}`` keyed collections).
    """
    if data is None:
        return None
    try:
        return model.model_validate({**data, **context})
    except ValidationError as e:
        logger.warning(
            f"Skipping invalid {model.__name__} record ({context}): {e.error_count()} errors"
        )
        return None
