"""
Coaching Message API Router

POST /api/generate-coaching-message      weekly inbox message (new one per call)
POST /api/generate-daily-coach-message   one message per user per day

Both endpoints run the same guard sequence before any work:
body size, CSRF origin check, bearer token, per-user rate limit. Only then
is the body parsed and validated.
"""

import json
import logging
import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaError
from starlette.concurrency import run_in_threadpool

from core.auth import authenticate
from core.clients import ServiceClients, get_service_clients
from core.config import settings
from core.csrf import verify_origin
from core.exceptions import (
    APIException,
    ForbiddenError,
    NotFoundError,
    PayloadTooLargeError,
    RateLimitedError,
    UnauthorizedError,
    ValidationError,
    error_response,
    request_id_for,
)
from core.logging import RequestLogger
from schemas import (
    DailyCoachMessageRequest,
    DailyCoachMessageResponse,
    WeeklyCoachingMessageRequest,
    WeeklyCoachingMessageResponse,
)
from services.coach_message_generator import MessageGenerationError
from services.coaching_pipeline import (
    CoachingMessageService,
    NoCoachSelectedError,
    ProfileNotFoundError,
    WeeklyCheckinNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["coaching"])

AI_RETRY_AFTER_S = 60
AI_BUSY_MESSAGE = (
    "The AI service is currently experiencing high demand. Please try again in a few minutes."
)


def _request_logger(request: Request) -> RequestLogger:
    request_id = request_id_for(request) or str(uuid.uuid4())
    request.state.request_id = request_id
    return RequestLogger(logger, request_id, path=request.url.path)


def _check_size(request: Request) -> None:
    content_length = request.headers.get("content-length")
    if content_length is None:
        return
    try:
        size = int(content_length)
    except ValueError:
        raise ValidationError("Invalid Content-Length header")
    if size > settings.MAX_REQUEST_BODY_BYTES:
        raise PayloadTooLargeError()


def _check_origin(request: Request, log: RequestLogger) -> None:
    origin = request.headers.get("origin")
    referer = request.headers.get("referer")
    allowed = verify_origin(
        origin,
        referer,
        request.headers.get("host"),
        trusted_hosts=settings.trusted_origin_hosts,
        development=settings.is_development,
    )
    if not allowed:
        log.security("CSRF validation failed", origin=origin, referer=referer)
        raise ForbiddenError()


def _check_rate_limit(user_id: str, clients: ServiceClients, log: RequestLogger) -> None:
    if clients.rate_limiter is None:
        return
    result = clients.rate_limiter.limit(user_id)
    if not result.success:
        retry_after = result.retry_after()
        log.security("Rate limit exceeded", user_id=user_id, retry_after=retry_after)
        raise RateLimitedError(
            retry_after,
            headers={**result.headers(), "Retry-After": str(retry_after)},
        )


async def _guard(request: Request, clients: ServiceClients, log: RequestLogger) -> str:
    """Run the pre-parse checks in order and return the authenticated user id."""
    _check_size(request)
    _check_origin(request, log)
    # Token verification may fetch JWKS and the limiter talks to Redis; both block.
    try:
        user_id = await run_in_threadpool(
            authenticate, request.headers.get("authorization"), clients.token_verifier
        )
    except UnauthorizedError:
        log.security("Authentication failed")
        raise
    await run_in_threadpool(_check_rate_limit, user_id, clients, log)
    return user_id


async def _read_body(request: Request) -> bytes:
    body = await request.body()
    if len(body) > settings.MAX_REQUEST_BODY_BYTES:
        raise PayloadTooLargeError()
    return body


def _success(request: Request, payload: Dict[str, Any]) -> JSONResponse:
    request_id = request_id_for(request)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={**payload, "requestId": request_id},
        headers={"X-Request-ID": request_id},
    )


def _failure(request: Request, log: RequestLogger, error: str, exc: Exception) -> JSONResponse:
    log.error(f"{error}: {exc}", exc_info=True)
    if "Unauthorized" in str(exc):
        return error_response(request, status.HTTP_401_UNAUTHORIZED, "Unauthorized")
    extra = {} if settings.is_production else {"details": str(exc)}
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, error, **extra)


def _ai_rate_limited(log: RequestLogger, exc: MessageGenerationError) -> RateLimitedError:
    log.warning(f"AI service rate limited: {exc}")
    return RateLimitedError(AI_RETRY_AFTER_S, message=AI_BUSY_MESSAGE)


@router.post("/generate-coaching-message", response_model=WeeklyCoachingMessageResponse)
async def generate_coaching_message(
    request: Request,
    clients: ServiceClients = Depends(get_service_clients),
):
    """
    Generate this week's coaching message from the user's weekly check-in
    and logs, and append it to their inbox.
    """
    log = _request_logger(request)
    try:
        user_id = await _guard(request, clients, log)

        raw = await _read_body(request)
        try:
            payload = json.loads(raw or b"null")
        except ValueError:
            raise ValidationError("Invalid JSON in request body")
        try:
            body = WeeklyCoachingMessageRequest.model_validate(payload)
        except SchemaError as e:
            raise ValidationError(
                "Invalid request body",
                details=e.errors(include_url=False, include_context=False, include_input=False),
            )

        service = CoachingMessageService(clients.document_store, clients.message_generator)
        try:
            result = await run_in_threadpool(service.generate_weekly, user_id, body.week_start)
        except WeeklyCheckinNotFoundError:
            raise NotFoundError("Weekly checkin not found for the specified week")
        except MessageGenerationError as e:
            if e.is_rate_limited:
                raise _ai_rate_limited(log, e)
            raise

        log.info(
            "Weekly coaching message generated",
            user_id=user_id,
            message_id=result.message_id,
            coach_name=result.coach.name,
        )
        return _success(request, {
            "success": True,
            "messageId": result.message_id,
            "subject": result.subject,
        })

    except APIException:
        raise
    except Exception as e:
        return _failure(request, log, "Failed to generate coaching message", e)


@router.post("/generate-daily-coach-message", response_model=DailyCoachMessageResponse)
async def generate_daily_coach_message(
    request: Request,
    clients: ServiceClients = Depends(get_service_clients),
):
    """
    Return today's coach message for the user, generating and storing it on
    the first call of the day.
    """
    log = _request_logger(request)
    try:
        user_id = await _guard(request, clients, log)

        raw = await _read_body(request)
        try:
            payload = json.loads(raw) if raw.strip() else {}
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        day = DailyCoachMessageRequest.model_validate(payload).resolved_date()

        service = CoachingMessageService(clients.document_store, clients.message_generator)
        try:
            stored, created = await run_in_threadpool(service.generate_daily, user_id, day)
        except ProfileNotFoundError:
            raise NotFoundError("User profile not found")
        except NoCoachSelectedError:
            log.info("User has not selected a coach, skipping message generation", user_id=user_id)
            raise APIException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No coach selected",
                error_code="NO_COACH_SELECTED",
                extra={"message": "Please select an AI coach to receive daily messages"},
            )
        except MessageGenerationError as e:
            if e.is_rate_limited:
                raise _ai_rate_limited(log, e)
            raise

        log.info(
            "Daily coach message generated" if created else "Returning existing daily coach message",
            user_id=user_id,
            date=stored.date,
            coach_name=stored.coach_name,
        )
        return _success(request, {
            "success": True,
            "message": stored.message,
            "date": stored.date,
            "coachName": stored.coach_name,
        })

    except APIException:
        raise
    except Exception as e:
        return _failure(request, log, "Failed to generate daily coach message", e)
