"""
Pytest configuration and fixtures

Every test gets a fresh in-memory SQLite document store, a fake Gemini
client that records calls, and a TestClient whose service clients are
injected through a dependency override. Nothing talks to the network.
"""
import pytest
import sys
import os

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")

from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from core.clients import ServiceClients, get_service_clients
from core.database import create_db_engine, create_session_factory, init_schema
from core.rate_limit import RedisRateLimiter
from core.security import TokenVerifier
from main import app
from services.coach_message_generator import CoachMessageGenerator
from services.document_store import SqlDocumentStore
from tests.coaching_helpers import FakeGeminiClient, FakeRedis, TEST_TOKEN_SECRET


@pytest.fixture
def engine():
    engine = create_db_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SqlDocumentStore(create_session_factory(engine), engine=engine)


@pytest.fixture
def gemini():
    return FakeGeminiClient()


@pytest.fixture
def generator(gemini):
    return CoachMessageGenerator(gemini, model="gemini-test", temperature=0.7)


@pytest.fixture
def verifier():
    return TokenVerifier(secret=TEST_TOKEN_SECRET, algorithms=["HS256"])


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def clients(store, verifier, generator):
    return ServiceClients(
        document_store=store,
        token_verifier=verifier,
        message_generator=generator,
    )


@pytest.fixture
def client(clients):
    app.dependency_overrides[get_service_clients] = lambda: clients
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def limited_client(client, clients, fake_redis):
    """TestClient whose coaching endpoints allow two requests per user per hour."""
    clients.rate_limiter = RedisRateLimiter(fake_redis, limit=2, window=3600)
    return client
