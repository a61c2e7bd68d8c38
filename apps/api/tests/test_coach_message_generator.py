"""
Coach Message Generator Tests

Deterministic: Gemini is a MagicMock. Covers
1. Upstream failure classification (rate limit vs everything else)
2. Weekly reply parsing (JSON, fenced JSON, plain-text fallback)
3. One model call per generation, with the prompt carrying the persona
"""

from datetime import date
from unittest.mock import MagicMock

import pytest

from services.coach_data_aggregator import DailySummary, WeeklySummary
from services.coach_message_generator import (
    CoachMessageGenerator,
    GenerationFailure,
    MessageGenerationError,
    classify_failure,
    parse_weekly_response,
)
from services.coach_prompts import DEFAULT_SUBJECT
from services.coach_records import UserProfile, WeeklyCheckin
from services.coach_resolver import DEFAULT_COACH, ResolvedCoach
from tests.coaching_helpers import FakeGeminiClient


def _weekly_summary():
    return WeeklySummary(
        user_id="u1",
        week_start=date(2024, 3, 4),
        weekly_checkin=WeeklyCheckin(week_start=date(2024, 3, 4)),
        user_profile=UserProfile.model_validate({"coachId": "coach_1", "goals": {"goalType": "Gain Strength"}}),
    )


def _daily_summary(intensity=None):
    profile = {"coachId": "coach_1"}
    if intensity:
        profile["coachIntensity"] = intensity
    return DailySummary(
        user_id="u1",
        day=date(2024, 3, 6),
        week_start=date(2024, 3, 4),
        days_into_week=3,
        user_profile=UserProfile.model_validate(profile),
    )


# ===========================================================================
# Failure classification
# ===========================================================================

class TestClassifyFailure:
    @pytest.mark.parametrize("message", [
        "Rate limit exceeded",
        "429 Too Many Requests",
        "Too many requests, slow down",
        "RESOURCE_EXHAUSTED: quota",
        "Resource exhausted",
    ])
    def test_rate_limit_text(self, message):
        assert classify_failure(Exception(message)) == GenerationFailure.RATE_LIMITED

    def test_status_code_429(self):
        exc = Exception("quota")
        exc.code = 429
        assert classify_failure(exc) == GenerationFailure.RATE_LIMITED

    def test_grpc_resource_exhausted_status(self):
        exc = Exception("quota")
        exc.status = "RESOURCE_EXHAUSTED"
        assert classify_failure(exc) == GenerationFailure.RATE_LIMITED

    @pytest.mark.parametrize("message", [
        "connection reset",
        "500 Internal error",
        "",
        "Invalid request req-84291 (prompt has 14290 tokens)",
    ])
    def test_everything_else_is_upstream(self, message):
        assert classify_failure(RuntimeError(message)) == GenerationFailure.UPSTREAM

    def test_status_code_500_is_upstream(self):
        exc = Exception("server error")
        exc.code = 500
        assert classify_failure(exc) == GenerationFailure.UPSTREAM


# ===========================================================================
# Weekly reply parsing
# ===========================================================================

class TestParseWeeklyResponse:
    def test_json_reply(self):
        msg = parse_weekly_response('{"subject": "Great week!", "body": "Hi there"}')
        assert msg.subject == "Great week!"
        assert msg.body == "Hi there"

    def test_fenced_json_reply(self):
        msg = parse_weekly_response('```json\n{"subject": "Fenced", "body": "Body"}\n```')
        assert msg.subject == "Fenced"
        assert msg.body == "Body"

    def test_json_without_subject_uses_default(self):
        text = '{"body": "Only a body"}'
        msg = parse_weekly_response(text)
        assert msg.subject == DEFAULT_SUBJECT
        assert msg.body == "Only a body"

    def test_json_without_body_uses_full_text(self):
        text = '{"subject": "Only a subject"}'
        msg = parse_weekly_response(text)
        assert msg.subject == "Only a subject"
        assert msg.body == text

    def test_plain_text_first_line_becomes_subject(self):
        text = "## Crushing It This Week\n\nHi Sam, here's your review."
        msg = parse_weekly_response(text)
        assert msg.subject == "Crushing It This Week"
        assert msg.body == text

    def test_long_first_line_uses_default_subject(self):
        text = "x" * 61 + "\nmore"
        msg = parse_weekly_response(text)
        assert msg.subject == DEFAULT_SUBJECT
        assert msg.body == text

    def test_empty_first_line_uses_default_subject(self):
        text = "\nHi Sam"
        assert parse_weekly_response(text).subject == DEFAULT_SUBJECT

    def test_json_array_is_treated_as_text(self):
        text = '["not", "an", "object"]'
        msg = parse_weekly_response(text)
        assert msg.body == text


# ===========================================================================
# Generation
# ===========================================================================

class TestCoachMessageGenerator:
    def test_weekly_makes_one_call_and_parses_reply(self):
        gemini = FakeGeminiClient('{"subject": "Week 10", "body": "Strong week."}')
        generator = CoachMessageGenerator(gemini, model="gemini-test")

        msg = generator.generate_weekly(_weekly_summary(), DEFAULT_COACH)

        assert gemini.calls == 1
        assert gemini.models.generate_content.call_args.kwargs["model"] == "gemini-test"
        assert msg.subject == "Week 10"
        assert msg.body == "Strong week."

    def test_weekly_prompt_carries_persona_and_goal(self):
        gemini = FakeGeminiClient('{"subject": "s", "body": "b"}')
        coach = ResolvedCoach(coach_id="coach_1", name="Coach Carter", persona="Speaks like a drill sergeant.")

        CoachMessageGenerator(gemini).generate_weekly(_weekly_summary(), coach)

        prompt = gemini.last_prompt()
        assert 'You are the AI Coach "Coach Carter"' in prompt
        assert "Speaks like a drill sergeant." in prompt
        assert '"Gain Strength"' in prompt

    def test_daily_returns_stripped_text(self):
        gemini = FakeGeminiClient("  Keep pushing today!  \n")

        text = CoachMessageGenerator(gemini).generate_daily(_daily_summary(), DEFAULT_COACH)

        assert text == "Keep pushing today!"

    def test_daily_prompt_uses_coach_intensity_override(self):
        gemini = FakeGeminiClient("ok")
        coach = ResolvedCoach(
            coach_id="coach_1",
            name="Coach Carter",
            intensity_levels={"High": "Push them with military precision."},
        )

        CoachMessageGenerator(gemini).generate_daily(_daily_summary("High"), coach)

        assert "COACHING INTENSITY: High. Push them with military precision." in gemini.last_prompt()

    def test_daily_prompt_defaults_to_medium_intensity(self):
        gemini = FakeGeminiClient("ok")

        CoachMessageGenerator(gemini).generate_daily(_daily_summary(), DEFAULT_COACH)

        assert "COACHING INTENSITY: Medium." in gemini.last_prompt()

    def test_rate_limit_raises_structured_error(self):
        gemini = FakeGeminiClient()
        gemini.fail(Exception("429 Too Many Requests"))

        with pytest.raises(MessageGenerationError) as exc_info:
            CoachMessageGenerator(gemini).generate_daily(_daily_summary(), DEFAULT_COACH)

        assert exc_info.value.failure == GenerationFailure.RATE_LIMITED
        assert exc_info.value.is_rate_limited

    def test_empty_reply_is_an_upstream_failure(self):
        gemini = FakeGeminiClient("   ")

        with pytest.raises(MessageGenerationError) as exc_info:
            CoachMessageGenerator(gemini).generate_daily(_daily_summary(), DEFAULT_COACH)

        assert exc_info.value.failure == GenerationFailure.UPSTREAM

    def test_unconfigured_client_is_an_upstream_failure(self):
        with pytest.raises(MessageGenerationError) as exc_info:
            CoachMessageGenerator(None).generate_weekly(_weekly_summary(), DEFAULT_COACH)

        assert exc_info.value.failure == GenerationFailure.UPSTREAM

    def test_from_settings_without_key_has_no_client(self):
        settings = MagicMock(gemini_api_key=None, GEMINI_MODEL="gemini-2.5-flash", COACH_MESSAGE_TEMPERATURE=0.5)

        generator = CoachMessageGenerator.from_settings(settings)

        assert generator.client is None
        assert generator.temperature == 0.5
