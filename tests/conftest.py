from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from chatpulse.database.connection import mongo_db_dependency
from chatpulse.main import app
from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.message_repository import MessageRepository
from chatpulse.repositories.typing_indicator_repository import TypingIndicatorRepository
from chatpulse.repositories.user_repository import UserRepository
from chatpulse.services.typing_service import TypingIndicatorService
from chatpulse.services.unread_service import UnreadTrackingService
from chatpulse.utils.realtime_bus import NoopBus, set_bus


class FakeClock:

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingBus:

    enabled = True

    def __init__(self) -> None:
        self.published = []

    async def publish(self, channel: str, message: str) -> None:
        self.published.append((channel, message))

    async def set_presence(self, user_id: str, ttl_seconds: int = 60) -> None:
        return

    async def is_present(self, user_id: str):
        return None


@pytest.fixture(autouse=True)
def reset_bus():
    set_bus(NoopBus())
    yield
    set_bus(None)


@pytest.fixture
def recording_bus():
    bus = RecordingBus()
    set_bus(bus)
    return bus


@pytest.fixture
def db():
    return AsyncMongoMockClient()["chatpulse_test"]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def typing_service(db, clock):
    return TypingIndicatorService(
        TypingIndicatorRepository(db),
        ConversationRepository(db),
        UserRepository(db),
        clock=clock,
        expiry_ms=2000,
    )


@pytest.fixture
def unread_service(db):
    return UnreadTrackingService(MessageRepository(db), ConversationRepository(db))


@pytest.fixture
def make_user(db):
    async def _make(name: str) -> str:
        result = await db["users"].insert_one({"clerk_id": f"clerk_{name}", "name": name, "email": f"{name.lower()}@chatpulse.io"})
        return str(result.inserted_id)
    return _make


@pytest.fixture
def make_conversation(db):
    async def _make(*participants: str) -> str:
        convo = await ConversationRepository(db).create(list(participants), created_by=participants[0])
        return convo["_id"]
    return _make


@asynccontextmanager
async def _no_lifespan(app):
    yield


@pytest.fixture
def client(db):
    app.dependency_overrides[mongo_db_dependency] = lambda: db
    real_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _no_lifespan
    # one portal for every request and socket, so events reach sockets opened by the same client
    with TestClient(app) as test_client:
        yield test_client
    app.router.lifespan_context = real_lifespan
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    def _signup(name: str) -> dict:
        resp = client.post("/users/sync", json={
            "clerk_id": f"clerk_{name}",
            "name": name,
            "email": f"{name.lower()}@chatpulse.io",
        })
        assert resp.status_code == 200
        body = resp.json()
        return {"id": body["id"], "clerk_id": f"clerk_{name}", "token": body["access_token"],
                "headers": {"Authorization": f"Bearer {body['access_token']}"}}
    return _signup
