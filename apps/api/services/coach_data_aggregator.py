"""
Coach Data Aggregator

Collects everything the coaching prompts need for one user and one time
window: check-ins, food diary, workout/cardio/water logs, and the profile.

Reads only. Missing records are represented (None / empty lists), never
raised; deciding what a missing record means is the caller's job.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Union

from services.coach_records import (
    CardioLog,
    DailyCheckin,
    FoodDiary,
    UserProfile,
    WaterLog,
    WeeklyCheckin,
    WorkoutLog,
    parse_record,
)
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"
DAILY_CHECKINS = "daily_checkins"
WEEKLY_CHECKINS = "weekly_checkins"
FOOD_DIARY = "food_diary"
WATER_LOG = "water_log"
WORKOUT_LOGS = "workout_logs"
CARDIO_LOG = "cardio_log"

PERIOD_WEEKLY = "weekly"
PERIOD_DAILY = "daily"


def week_monday(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_dates(week_start: date) -> List[date]:
    """Dates from ``week_start`` through the Sunday that ends its week."""
    sunday = week_monday(week_start) + timedelta(days=6)
    return [week_start + timedelta(days=i) for i in range((sunday - week_start).days + 1)]


def dates_so_far(day: date) -> List[date]:
    """Monday of ``day``'s week through ``day`` inclusive."""
    monday = week_monday(day)
    return [monday + timedelta(days=i) for i in range((day - monday).days + 1)]


def dated_key(user_id: str, day: date) -> str:
    return f"{user_id}_{day.isoformat()}"


@dataclass
class _PeriodRecords:
    daily_checkins: List[DailyCheckin] = field(default_factory=list)
    food_diaries: List[FoodDiary] = field(default_factory=list)
    workout_logs: List[WorkoutLog] = field(default_factory=list)
    cardio_logs: List[CardioLog] = field(default_factory=list)
    water_logs: List[WaterLog] = field(default_factory=list)

    @property
    def total_calories(self) -> float:
        return sum(d.total_calories for d in self.food_diaries)

    @property
    def total_protein(self) -> float:
        return sum(d.total_protein for d in self.food_diaries)

    @property
    def total_carbs(self) -> float:
        return sum(d.total_carbs for d in self.food_diaries)

    @property
    def total_fat(self) -> float:
        return sum(d.total_fat for d in self.food_diaries)

    @property
    def total_cardio_minutes(self) -> float:
        return sum(c.minutes for c in self.cardio_logs)

    @property
    def total_cardio_calories(self) -> float:
        return sum(c.calories for c in self.cardio_logs)

    @property
    def total_water_ml(self) -> float:
        return sum(w.total_ml for w in self.water_logs)


@dataclass
class WeeklySummary(_PeriodRecords):
    user_id: str = ""
    week_start: Optional[date] = None
    week_dates: List[date] = field(default_factory=list)
    weekly_checkin: Optional[WeeklyCheckin] = None
    user_profile: Optional[UserProfile] = None

    @property
    def has_checkin(self) -> bool:
        return self.weekly_checkin is not None


@dataclass
class DailySummary(_PeriodRecords):
    user_id: str = ""
    day: Optional[date] = None
    week_start: Optional[date] = None
    days_into_week: int = 0
    last_week_checkin: Optional[WeeklyCheckin] = None
    user_profile: Optional[UserProfile] = None


class CoachDataAggregator:
    """
    Builds WeeklySummary / DailySummary snapshots from the document store.

    Usage:
        aggregator = CoachDataAggregator(store)
        summary = aggregator.collect_weekly("abc123", date(2024, 3, 4))
        if not summary.has_checkin:
            ...
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def aggregate(
        self, user_id: str, period_start: date, period_kind: str
    ) -> Union[WeeklySummary, DailySummary]:
        if period_kind == PERIOD_WEEKLY:
            return self.collect_weekly(user_id, period_start)
        if period_kind == PERIOD_DAILY:
            return self.collect_daily(user_id, period_start)
        raise ValueError(f"Unknown period kind: {period_kind}")

    def collect_weekly(self, user_id: str, week_start: date) -> WeeklySummary:
        dates = week_dates(week_start)
        summary = WeeklySummary(
            user_id=user_id,
            week_start=week_start,
            week_dates=dates,
            weekly_checkin=self._weekly_checkin(user_id, week_start),
            user_profile=self._profile(user_id),
        )
        self._fill_period(summary, user_id, dates, completed_workouts_only=False)

        logger.info(
            f"Collected weekly data for user {user_id} week {week_start}: "
            f"checkin={summary.has_checkin}, daily={len(summary.daily_checkins)}, "
            f"food={len(summary.food_diaries)}, workouts={len(summary.workout_logs)}, "
            f"cardio={len(summary.cardio_logs)}, water={len(summary.water_logs)}"
        )
        return summary

    def collect_daily(self, user_id: str, day: date) -> DailySummary:
        dates = dates_so_far(day)
        monday = dates[0]
        summary = DailySummary(
            user_id=user_id,
            day=day,
            week_start=monday,
            days_into_week=len(dates),
            last_week_checkin=self._weekly_checkin(user_id, monday - timedelta(weeks=1)),
            user_profile=self._profile(user_id),
        )
        self._fill_period(summary, user_id, dates, completed_workouts_only=True)

        logger.info(
            f"Collected daily data for user {user_id} on {day} "
            f"(day {summary.days_into_week} of week): "
            f"daily={len(summary.daily_checkins)}, food={len(summary.food_diaries)}, "
            f"workouts={len(summary.workout_logs)}, cardio={len(summary.cardio_logs)}, "
            f"water={len(summary.water_logs)}"
        )
        return summary

    def _fill_period(
        self,
        summary: _PeriodRecords,
        user_id: str,
        dates: List[date],
        completed_workouts_only: bool,
    ) -> None:
        # Walk dates in order so every list follows the window's date order.
        for day in dates:
            key = dated_key(user_id, day)
            iso = day.isoformat()

            checkin = parse_record(DailyCheckin, self.store.get(DAILY_CHECKINS, key), date=iso)
            if checkin:
                summary.daily_checkins.append(checkin)

            diary = parse_record(FoodDiary, self.store.get(FOOD_DIARY, key), date=iso)
            if diary:
                summary.food_diaries.append(diary)

            water = parse_record(WaterLog, self.store.get(WATER_LOG, key), date=iso)
            if water:
                summary.water_logs.append(water)

            workout_filter = {"userId": user_id, "date": iso}
            if completed_workouts_only:
                workout_filter["status"] = "completed"
            for doc in self.store.query(WORKOUT_LOGS, where=workout_filter):
                log = parse_record(WorkoutLog, doc.data, id=doc.id, date=iso)
                if log:
                    summary.workout_logs.append(log)

            for doc in self.store.query(CARDIO_LOG, where={"userId": user_id, "date": iso}):
                log = parse_record(CardioLog, doc.data, id=doc.id, date=iso)
                if log:
                    summary.cardio_logs.append(log)

    def _weekly_checkin(self, user_id: str, week_start: date) -> Optional[WeeklyCheckin]:
        data = self.store.get(WEEKLY_CHECKINS, dated_key(user_id, week_start))
        return parse_record(WeeklyCheckin, data, week_start=week_start.isoformat())

    def _profile(self, user_id: str) -> Optional[UserProfile]:
        return parse_record(UserProfile, self.store.get(USERS, user_id), user_id=user_id)
