import re
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class WeeklyCoachingMessageRequest(BaseModel):
    """Body of POST /api/generate-coaching-message. The user comes from the token."""
    model_config = ConfigDict(extra="ignore")

    weekStartDate: str = Field(..., pattern=DATE_PATTERN)

    @field_validator("weekStartDate")
    @classmethod
    def real_date(cls, value: str) -> str:
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError("Invalid date format (expected YYYY-MM-DD)")
        return value

    @property
    def week_start(self) -> date:
        return date.fromisoformat(self.weekStartDate)


class DailyCoachMessageRequest(BaseModel):
    """Body of POST /api/generate-daily-coach-message. ``date`` defaults to today."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    requested: Any = Field(default=None, alias="date")

    def resolved_date(self, today: Optional[date] = None) -> date:
        """The requested day, or today when absent or not a real YYYY-MM-DD date."""
        today = today or date.today()
        if not isinstance(self.requested, str) or not re.match(DATE_PATTERN, self.requested):
            return today
        try:
            return date.fromisoformat(self.requested)
        except ValueError:
            return today


class DailyCoachMessageResponse(BaseModel):
    success: bool = True
    message: str
    date: str
    coachName: str
    requestId: Optional[str] = None


class WeeklyCoachingMessageResponse(BaseModel):
    success: bool = True
    messageId: str
    subject: str
    requestId: Optional[str] = None
