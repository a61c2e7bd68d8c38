"""
Coaching message persistence.

Daily messages are keyed ``{userId}_{date}``: the gate returns an existing
record untouched and only produces (and writes) a message when none exists.
Weekly messages are appended to the user's inbox under generated ids.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from services.coach_message_generator import WeeklyCoachingMessage
from services.coach_resolver import DEFAULT_COACH_NAME, ResolvedCoach
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)

DAILY_COACH_MESSAGES = "daily_coach_messages"
MESSAGES = "messages"


def daily_message_key(user_id: str, day: str) -> str:
    return f"{user_id}_{day}"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class StoredDailyMessage:
    user_id: str
    message: str
    date: str
    coach_id: Optional[str]
    coach_name: str
    created_at: Optional[str] = None

    @classmethod
    def from_document(cls, data: dict, day: str = "") -> "StoredDailyMessage":
        return cls(
            user_id=data.get("userId", ""),
            message=data.get("message", ""),
            date=data.get("date") or day,
            coach_id=data.get("coachId"),
            coach_name=data.get("coachName") or DEFAULT_COACH_NAME,
            created_at=data.get("createdAt"),
        )

    def to_document(self) -> dict:
        return {
            "userId": self.user_id,
            "message": self.message,
            "date": self.date,
            "coachId": self.coach_id,
            "coachName": self.coach_name,
            "createdAt": self.created_at,
        }


DailyProducer = Callable[[], Tuple[str, ResolvedCoach]]


class DailyMessageGate:
    """
    At most one daily message per (user, date).

    Usage:
        gate = DailyMessageGate(store)
        stored, created = gate.get_or_create(user_id, "2024-03-01", produce)
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def find(self, user_id: str, day: str) -> Optional[StoredDailyMessage]:
        data = self.store.get(DAILY_COACH_MESSAGES, daily_message_key(user_id, day))
        return StoredDailyMessage.from_document(data, day) if data is not None else None

    def get_or_create(
        self, user_id: str, day: str, producer: DailyProducer
    ) -> Tuple[StoredDailyMessage, bool]:
        existing = self.find(user_id, day)
        if existing is not None:
            logger.info(f"Daily message already exists for user {user_id} on {day}")
            return existing, False

        # producer errors propagate; nothing is written on failure
        message, coach = producer()
        stored = StoredDailyMessage(
            user_id=user_id,
            message=message,
            date=day,
            coach_id=coach.coach_id,
            coach_name=coach.name,
            created_at=_utcnow_iso(),
        )
        self.store.set(DAILY_COACH_MESSAGES, daily_message_key(user_id, day), stored.to_document())
        return stored, True


class WeeklyMessageStore:
    """Appends weekly coaching messages to the user's inbox."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def create(
        self,
        user_id: str,
        week_start: str,
        message: WeeklyCoachingMessage,
        coach: ResolvedCoach,
    ) -> str:
        message_id = self.store.add(MESSAGES, {
            "userId": user_id,
            "subject": message.subject,
            "body": message.body,
            "coach_id": coach.coach_id,
            "coach_name": coach.name,
            "weekStartDate": week_start,
            "read": False,
            "createdAt": _utcnow_iso(),
        })
        logger.info(f"Stored weekly message {message_id} for user {user_id} week {week_start}")
        return message_id
