"""
Coaching Message Service

Runs the produce step for both endpoints: aggregate the period's data,
pick the coach, call the generator, persist the result.

Preconditions that fail raise the domain errors below; the router maps them
to HTTP responses.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from services.coach_data_aggregator import CoachDataAggregator
from services.coach_message_generator import CoachMessageGenerator
from services.coach_message_store import DailyMessageGate, StoredDailyMessage, WeeklyMessageStore
from services.coach_records import UserProfile
from services.coach_resolver import DEFAULT_COACH, DEFAULT_COACH_NAME, CoachResolver, ResolvedCoach
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)


class CoachingPreconditionError(Exception):
    """A record the produce step depends on is missing or unusable."""


class ProfileNotFoundError(CoachingPreconditionError):
    def __init__(self, user_id: str):
        super().__init__(f"User profile not found for {user_id}")
        self.user_id = user_id


class NoCoachSelectedError(CoachingPreconditionError):
    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} has not selected a coach")
        self.user_id = user_id


class WeeklyCheckinNotFoundError(CoachingPreconditionError):
    def __init__(self, user_id: str, week_start: date):
        super().__init__(f"Weekly checkin not found for {user_id} week {week_start}")
        self.user_id = user_id
        self.week_start = week_start


@dataclass(frozen=True)
class WeeklyResult:
    message_id: str
    subject: str
    coach: ResolvedCoach


class CoachingMessageService:
    """
    Usage:
        service = CoachingMessageService(store, generator)
        stored, created = service.generate_daily(user_id, date.today())
        result = service.generate_weekly(user_id, date(2024, 3, 4))
    """

    def __init__(self, store: DocumentStore, generator: CoachMessageGenerator):
        self.aggregator = CoachDataAggregator(store)
        self.resolver = CoachResolver(store)
        self.daily_gate = DailyMessageGate(store)
        self.weekly_store = WeeklyMessageStore(store)
        self.generator = generator

    def _resolve(self, coach_id: str) -> ResolvedCoach:
        if coach_id == DEFAULT_COACH_NAME:
            return DEFAULT_COACH
        return self.resolver.resolve(coach_id)

    def generate_daily(self, user_id: str, day: date) -> Tuple[StoredDailyMessage, bool]:
        """Return the day's message and whether it was generated by this call."""

        def produce() -> Tuple[str, ResolvedCoach]:
            summary = self.aggregator.collect_daily(user_id, day)
            profile: Optional[UserProfile] = summary.user_profile
            if profile is None:
                raise ProfileNotFoundError(user_id)
            if not profile.has_coach:
                raise NoCoachSelectedError(user_id)

            coach = self._resolve(profile.coach_id)
            logger.info(f"Generating daily coach message for user {user_id} with coach {coach.name}")
            return self.generator.generate_daily(summary, coach), coach

        return self.daily_gate.get_or_create(user_id, day.isoformat(), produce)

    def generate_weekly(self, user_id: str, week_start: date) -> WeeklyResult:
        summary = self.aggregator.collect_weekly(user_id, week_start)
        if not summary.has_checkin:
            raise WeeklyCheckinNotFoundError(user_id, week_start)

        profile = summary.user_profile
        if profile is not None and profile.has_coach:
            coach = self._resolve(profile.coach_id)
        else:
            coach = DEFAULT_COACH

        logger.info(f"Generating weekly coaching message for user {user_id} with coach {coach.name}")
        message = self.generator.generate_weekly(summary, coach)
        message_id = self.weekly_store.create(user_id, week_start.isoformat(), message, coach)
        return WeeklyResult(message_id=message_id, subject=message.subject, coach=coach)
