"""
Service clients shared by the request handlers.

Built once in the application lifespan, stored on ``app.state.clients`` and
handed to routes through ``get_service_clients``. Tests override that
dependency with fakes.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from core.cache import create_redis_client
from core.config import Settings
from core.database import create_db_engine, create_session_factory, init_schema
from core.rate_limit import RedisRateLimiter
from core.security import TokenVerifier
from services.coach_message_generator import CoachMessageGenerator
from services.document_store import DocumentStore, SqlDocumentStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceClients:
    document_store: DocumentStore
    token_verifier: TokenVerifier
    message_generator: CoachMessageGenerator
    rate_limiter: Optional[RedisRateLimiter] = None
    redis_client: Optional[object] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceClients":
        engine = create_db_engine(settings.database_url)
        init_schema(engine)
        store = SqlDocumentStore(create_session_factory(engine), engine=engine)

        redis_client = None
        rate_limiter = None
        if settings.RATE_LIMIT_ENABLED:
            redis_client = create_redis_client(settings.REDIS_URL)
            if redis_client is not None:
                rate_limiter = RedisRateLimiter(
                    redis_client,
                    limit=settings.COACH_MESSAGE_RATE_LIMIT,
                    window=settings.COACH_MESSAGE_RATE_WINDOW_S,
                )

        return cls(
            document_store=store,
            token_verifier=TokenVerifier.from_settings(settings),
            message_generator=CoachMessageGenerator.from_settings(settings),
            rate_limiter=rate_limiter,
            redis_client=redis_client,
        )

    def close(self) -> None:
        self.document_store.close()
        if self.redis_client is not None:
            try:
                self.redis_client.close()
            except Exception as e:
                logger.warning(f"Error closing Redis client: {e}")


def get_service_clients(request: Request) -> ServiceClients:
    return request.app.state.clients
