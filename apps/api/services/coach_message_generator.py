"""
Coach Message Generator

Calls Gemini once per request to write the weekly email-style message or the
short daily message.

Failures surface as MessageGenerationError with a structured ``failure``
kind so the request handler can tell an upstream rate limit (429 to the
client) from any other upstream problem (500). No retries happen here.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from google import genai
from google.genai import types as genai_types

from core.config import Settings
from services.coach_data_aggregator import DailySummary, WeeklySummary
from services.coach_prompts import DEFAULT_SUBJECT, build_daily_prompt, build_weekly_prompt
from services.coach_resolver import ResolvedCoach

logger = logging.getLogger(__name__)

MAX_SUBJECT_LENGTH = 60

RATE_LIMIT_PATTERNS = ("rate limit", "too many requests", "resource exhausted", "resource_exhausted")

_JSON_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class GenerationFailure(str, Enum):
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"


class MessageGenerationError(Exception):
    """The model call failed or returned nothing usable."""

    def __init__(
        self,
        message: str,
        failure: GenerationFailure = GenerationFailure.UPSTREAM,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.failure = failure
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.failure == GenerationFailure.RATE_LIMITED


@dataclass(frozen=True)
class WeeklyCoachingMessage:
    subject: str
    body: str


def classify_failure(exc: Exception) -> GenerationFailure:
    """
    Decide whether an upstream error is a rate limit.

    The HTTP status / gRPC status on the error wins; the message text is the
    fallback for errors that carry neither.
    """
    code = getattr(exc, "code", None)
    if code == 429:
        return GenerationFailure.RATE_LIMITED
    status = getattr(exc, "status", None)
    if status == 429 or (isinstance(status, str) and status.upper() == "RESOURCE_EXHAUSTED"):
        return GenerationFailure.RATE_LIMITED

    text = str(exc).lower()
    if any(pattern in text for pattern in RATE_LIMIT_PATTERNS):
        return GenerationFailure.RATE_LIMITED
    return GenerationFailure.UPSTREAM


def _strip_fence(text: str) -> str:
    match = _JSON_FENCE.match(text.strip())
    return match.group(1) if match else text


def parse_weekly_response(text: str) -> WeeklyCoachingMessage:
    """
    Parse the model's weekly reply.

    Expected shape is JSON ``{"subject", "body"}``, optionally fenced. Anything
    else is used verbatim as the body, with the first line as the subject when
    it is short enough.
    """
    try:
        parsed = json.loads(_strip_fence(text))
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        subject = parsed.get("subject")
        body = parsed.get("body")
        return WeeklyCoachingMessage(
            subject=subject.strip() if isinstance(subject, str) and subject.strip() else DEFAULT_SUBJECT,
            body=body if isinstance(body, str) and body.strip() else text,
        )

    first_line = text.split("\n", 1)[0].strip()
    if 0 < len(first_line) <= MAX_SUBJECT_LENGTH:
        subject = re.sub(r"^#+\s*", "", first_line) or DEFAULT_SUBJECT
    else:
        subject = DEFAULT_SUBJECT
    return WeeklyCoachingMessage(subject=subject, body=text)


class CoachMessageGenerator:
    """
    Gemini-backed coaching message writer.

    Usage:
        generator = CoachMessageGenerator(genai.Client(api_key=...))
        message = generator.generate_weekly(summary, coach)
    """

    def __init__(self, client=None, model: str = "gemini-2.5-flash", temperature: float = 0.7):
        self.client = client
        self.model = model
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings) -> "CoachMessageGenerator":
        api_key = settings.gemini_api_key
        if not api_key:
            logger.warning("No Gemini API key configured; coaching message generation is disabled")
        client = genai.Client(api_key=api_key) if api_key else None
        return cls(client, model=settings.GEMINI_MODEL, temperature=settings.COACH_MESSAGE_TEMPERATURE)

    def generate_weekly(self, summary: WeeklySummary, coach: ResolvedCoach) -> WeeklyCoachingMessage:
        text = self._generate(build_weekly_prompt(summary, coach), json_output=True)
        return parse_weekly_response(text)

    def generate_daily(self, summary: DailySummary, coach: ResolvedCoach) -> str:
        return self._generate(build_daily_prompt(summary, coach)).strip()

    def _generate(self, prompt: str, json_output: bool = False) -> str:
        if self.client is None:
            raise MessageGenerationError("Gemini client is not configured")

        config = genai_types.GenerateContentConfig(
            temperature=self.temperature,
            response_mime_type="application/json" if json_output else None,
        )

        start = time.monotonic()
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[
                    genai_types.Content(role="user", parts=[genai_types.Part(text=prompt)]),
                ],
                config=config,
            )
        except Exception as e:
            failure = classify_failure(e)
            code = getattr(e, "code", None)
            logger.error(f"Gemini call failed ({failure.value}): {e}")
            raise MessageGenerationError(
                str(e), failure=failure, status_code=code if isinstance(code, int) else None
            ) from e

        latency_ms = int((time.monotonic() - start) * 1000)
        text = getattr(response, "text", None) or ""
        if not text.strip():
            raise MessageGenerationError("Gemini returned an empty response")

        logger.info(f"Gemini {self.model} responded in {latency_ms}ms ({len(text)} chars)")
        return text
