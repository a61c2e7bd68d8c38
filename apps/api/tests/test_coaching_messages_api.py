"""
End-to-end tests for the coaching message endpoints.

Requests go through the real router, gate, aggregator and SQLite store; only
Gemini is faked.
"""
import asyncio
from datetime import date
from unittest.mock import MagicMock

import pytest

from core.config import settings
from tests.coaching_helpers import USER_ID, auth_headers, seed_profile, seed_weekly_checkin

DAILY_URL = "/api/generate-daily-coach-message"
WEEKLY_URL = "/api/generate-coaching-message"
WEEK_START = "2024-03-04"
DAY = "2024-03-06"


@pytest.fixture
def coach(store):
    store.set("coaches", "coach_1", {"coach_name": "Coach Carter", "coach_persona": "Tough but fair."})


class TestDailyCoachMessage:
    def test_generates_and_stores_message(self, client, store, gemini, coach):
        seed_profile(store)
        gemini.reply("Two workouts down, keep the streak going today!")

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Two workouts down, keep the streak going today!"
        assert data["date"] == DAY
        assert data["coachName"] == "Coach Carter"

        stored = store.get("daily_coach_messages", f"{USER_ID}_{DAY}")
        assert stored["message"] == data["message"]
        assert stored["coachId"] == "coach_1"
        assert stored["coachName"] == "Coach Carter"
        assert stored["userId"] == USER_ID
        assert stored["createdAt"]

    def test_second_request_same_day_returns_stored_message(self, client, store, gemini, coach):
        seed_profile(store)
        gemini.reply("First message")

        first = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())
        gemini.reply("A different message")
        second = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["message"] == first.json()["message"] == "First message"
        assert second.json()["coachName"] == first.json()["coachName"]
        assert gemini.calls == 1

    def test_stored_message_without_date_returns_requested_date(self, client, store, gemini):
        store.set("daily_coach_messages", f"{USER_ID}_{DAY}", {"message": "old"})

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "old"
        assert data["date"] == DAY
        assert data["coachName"] == "AI Coach"
        assert gemini.calls == 0

    def test_no_coach_selected_returns_400(self, client, store, gemini):
        seed_profile(store, coachId="")

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 400
        assert resp.json()["error"] == "No coach selected"
        assert resp.json()["message"] == "Please select an AI coach to receive daily messages"
        assert gemini.calls == 0
        assert store.get("daily_coach_messages", f"{USER_ID}_{DAY}") is None

    def test_skip_coach_reason_counts_as_no_coach(self, client, store, gemini, coach):
        seed_profile(store, skipCoachReason="Not interested right now")

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 400
        assert gemini.calls == 0

    def test_missing_profile_returns_404(self, client, gemini):
        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 404
        assert resp.json()["error"] == "User profile not found"
        assert gemini.calls == 0

    def test_default_coach_id_skips_registry_lookup(self, client, store):
        seed_profile(store, coachId="AI Coach")

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 200
        assert resp.json()["coachName"] == "AI Coach"

    @pytest.mark.parametrize("body", [{}, {"date": "not-a-date"}, {"date": "2024-02-30"}, {"date": 20240306}])
    def test_absent_or_bad_date_falls_back_to_today(self, client, store, coach, body):
        seed_profile(store)

        resp = client.post(DAILY_URL, json=body, headers=auth_headers())

        assert resp.status_code == 200
        assert resp.json()["date"] == date.today().isoformat()

    def test_empty_body_is_accepted(self, client, store, coach):
        seed_profile(store)

        resp = client.post(DAILY_URL, headers=auth_headers())

        assert resp.status_code == 200
        assert resp.json()["date"] == date.today().isoformat()

    def test_ai_rate_limit_returns_429_and_stores_nothing(self, client, store, gemini, coach):
        seed_profile(store)
        gemini.fail(Exception("429 RESOURCE_EXHAUSTED: rate limit reached"))

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 429
        data = resp.json()
        assert data["retryAfter"] == 60
        assert "high demand" in data["message"]
        assert store.get("daily_coach_messages", f"{USER_ID}_{DAY}") is None

    def test_upstream_failure_returns_500_with_details_outside_production(self, client, store, gemini, coach):
        seed_profile(store)
        gemini.fail(RuntimeError("model exploded"))

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to generate daily coach message"
        assert "model exploded" in resp.json()["details"]
        assert store.get("daily_coach_messages", f"{USER_ID}_{DAY}") is None

    def test_upstream_failure_hides_details_in_production(self, client, store, gemini, coach, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")
        seed_profile(store)
        gemini.fail(RuntimeError("model exploded"))

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 500
        assert "details" not in resp.json()

    def test_unauthorized_error_text_maps_to_401(self, client, store, gemini, coach):
        seed_profile(store)
        gemini.fail(RuntimeError("Unauthorized: API key revoked"))

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthorized"


class TestWeeklyCoachingMessage:
    def test_generates_message_into_inbox(self, client, store, gemini, coach):
        seed_profile(store)
        seed_weekly_checkin(store, WEEK_START)
        gemini.reply('{"subject": "Strong week, Sam!", "body": "Hi Sam, great week."}')

        resp = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["subject"] == "Strong week, Sam!"

        stored = store.get("messages", data["messageId"])
        assert stored["userId"] == USER_ID
        assert stored["subject"] == "Strong week, Sam!"
        assert stored["body"] == "Hi Sam, great week."
        assert stored["coach_id"] == "coach_1"
        assert stored["coach_name"] == "Coach Carter"
        assert stored["weekStartDate"] == WEEK_START
        assert stored["read"] is False

    def test_missing_weekly_checkin_returns_404(self, client, store, gemini):
        seed_profile(store)

        resp = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())

        assert resp.status_code == 404
        assert resp.json()["error"] == "Weekly checkin not found for the specified week"
        assert gemini.calls == 0

    def test_no_coach_uses_default_persona(self, client, store, gemini):
        seed_profile(store, coachId="")
        seed_weekly_checkin(store, WEEK_START)

        resp = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())

        assert resp.status_code == 200
        stored = store.get("messages", resp.json()["messageId"])
        assert stored["coach_name"] == "AI Coach"
        assert 'You are the AI Coach "AI Coach"' in gemini.last_prompt()

    def test_skip_coach_reason_uses_default_persona(self, client, store, gemini, coach):
        seed_profile(store, skipCoachReason="Not interested right now")
        seed_weekly_checkin(store, WEEK_START)

        resp = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())

        assert resp.status_code == 200
        stored = store.get("messages", resp.json()["messageId"])
        assert stored["coach_name"] == "AI Coach"
        assert gemini.calls == 1

    def test_every_call_creates_a_new_message(self, client, store, gemini):
        seed_profile(store)
        seed_weekly_checkin(store, WEEK_START)

        first = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())
        second = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())

        assert first.json()["messageId"] != second.json()["messageId"]
        assert gemini.calls == 2

    def test_malformed_json_returns_400(self, client):
        headers = {**auth_headers(), "Content-Type": "application/json"}

        resp = client.post(WEEKLY_URL, content=b"{not json", headers=headers)

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid JSON in request body"

    @pytest.mark.parametrize("body", [{}, {"weekStartDate": "03/04/2024"}, {"weekStartDate": "2024-13-40"}])
    def test_schema_violation_returns_400_with_details(self, client, gemini, body):
        resp = client.post(WEEKLY_URL, json=body, headers=auth_headers())

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request body"
        assert resp.json()["details"]
        assert gemini.calls == 0

    def test_ai_rate_limit_status_code_returns_429(self, client, store, gemini):
        seed_profile(store)
        seed_weekly_checkin(store, WEEK_START)
        error = Exception("quota")
        error.code = 429
        gemini.fail(error)

        resp = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())

        assert resp.status_code == 429
        assert resp.json()["retryAfter"] == 60
        assert store.query("messages") == []

    def test_upstream_failure_returns_500(self, client, store, gemini):
        seed_profile(store)
        seed_weekly_checkin(store, WEEK_START)
        gemini.fail(RuntimeError("connection reset"))

        resp = client.post(WEEKLY_URL, json={"weekStartDate": WEEK_START}, headers=auth_headers())

        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to generate coaching message"


class TestRequestGuards:
    @pytest.mark.parametrize("url", [DAILY_URL, WEEKLY_URL])
    def test_missing_token_returns_401(self, client, url):
        resp = client.post(url, json={}, headers={"Origin": "http://testserver"})

        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthorized"

    def test_invalid_token_returns_401(self, client):
        headers = {"Authorization": "Bearer not-a-jwt", "Origin": "http://testserver"}

        resp = client.post(DAILY_URL, json={}, headers=headers)

        assert resp.status_code == 401

    def test_token_verification_runs_off_the_event_loop(self, client, clients, store, coach):
        seed_profile(store)
        verify = clients.token_verifier.verify
        seen = {}

        def verify_and_record(token):
            try:
                asyncio.get_running_loop()
                seen["on_loop"] = True
            except RuntimeError:
                seen["on_loop"] = False
            return verify(token)

        clients.token_verifier = MagicMock()
        clients.token_verifier.verify.side_effect = verify_and_record

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.status_code == 200
        assert seen == {"on_loop": False}

    def test_foreign_origin_in_production_is_rejected_before_auth(self, client, clients, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")
        clients.token_verifier = MagicMock()

        resp = client.post(
            DAILY_URL,
            json={"date": DAY},
            headers=auth_headers(origin="https://evil.example.com"),
        )

        assert resp.status_code == 403
        clients.token_verifier.verify.assert_not_called()

    def test_trusted_auth_domain_origin_is_accepted(self, client, store, coach, monkeypatch):
        monkeypatch.setattr(settings, "AUTH_DOMAIN", "myapp.firebaseapp.com")
        seed_profile(store)

        resp = client.post(
            DAILY_URL,
            json={"date": DAY},
            headers=auth_headers(origin="https://myapp.firebaseapp.com"),
        )

        assert resp.status_code == 200

    def test_oversized_body_returns_413_before_auth(self, client, clients, gemini):
        clients.token_verifier = MagicMock()
        body = b"x" * (1024 * 1024 + 1)

        resp = client.post(
            WEEKLY_URL,
            content=body,
            headers={"Content-Type": "application/json", "Origin": "http://testserver"},
        )

        assert resp.status_code == 413
        clients.token_verifier.verify.assert_not_called()
        assert gemini.calls == 0

    def test_rate_limit_returns_429_with_retry_hint(self, limited_client, store, coach):
        seed_profile(store)
        headers = auth_headers()

        for _ in range(2):
            assert limited_client.post(DAILY_URL, json={"date": DAY}, headers=headers).status_code == 200
        resp = limited_client.post(DAILY_URL, json={"date": DAY}, headers=headers)

        assert resp.status_code == 429
        data = resp.json()
        assert data["error"] == "Rate limit exceeded"
        assert 0 < data["retryAfter"] <= 3600
        assert resp.headers["X-RateLimit-Limit"] == "2"
        assert resp.headers["X-RateLimit-Remaining"] == "0"

    def test_rate_limit_is_per_user(self, limited_client, store, coach):
        seed_profile(store)
        seed_profile(store, user_id="other_user")

        for _ in range(2):
            limited_client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())
        resp = limited_client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers("other_user"))

        assert resp.status_code == 200

    def test_request_id_in_body_matches_header(self, client, store, coach):
        seed_profile(store)

        resp = client.post(DAILY_URL, json={"date": DAY}, headers=auth_headers())

        assert resp.json()["requestId"]
        assert resp.json()["requestId"] == resp.headers["X-Request-ID"]

    def test_error_responses_carry_request_id(self, client):
        resp = client.post(DAILY_URL, json={}, headers={"Origin": "http://testserver"})

        assert resp.status_code == 401
        assert resp.json()["requestId"] == resp.headers["X-Request-ID"]


def test_ping(client):
    assert client.get("/ping").json() == {"pong": True}


def test_health_reports_store_status(client, clients, monkeypatch):
    assert client.get("/health").status_code == 200

    monkeypatch.setattr(clients.document_store, "ping", lambda: False)
    resp = client.get("/health")

    assert resp.status_code == 503
    assert resp.json()["database"] == "unavailable"
