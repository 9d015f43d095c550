import pytest
from pymongo.errors import ServerSelectionTimeoutError

from chatpulse.database.connection import mongo_db_dependency
from chatpulse.main import app
from chatpulse.repositories.user_repository import UserRepository
from chatpulse.services.user_service import UserService
from chatpulse.utils.security import TokenError, create_access_token, decode_access_token


async def test_sync_user_creates_then_updates(db):
    service = UserService(UserRepository(db))
    user_id = await service.sync_user("clerk_1", "Alice", "alice@chatpulse.io", None)
    same_id = await service.sync_user("clerk_1", "Alice Smith", "alice@chatpulse.io", "https://img/a.png")

    assert user_id == same_id
    user = await service.get_user(user_id)
    assert user.name == "Alice Smith"
    assert user.image_url == "https://img/a.png"
    assert user.is_online is True


async def test_set_online_ignores_unknown_users(db):
    service = UserService(UserRepository(db))
    assert await service.set_online("nobody", True) is False

    user_id = await service.sync_user("clerk_1", "Alice", "alice@chatpulse.io", None)
    assert await service.set_online("clerk_1", False) is True
    assert (await service.get_user(user_id)).is_online is False


def test_token_round_trip_and_rejection():
    token = create_access_token("abc")
    assert decode_access_token(token)["sub"] == "abc"
    with pytest.raises(TokenError):
        decode_access_token(token + "x")


class _DownCollection:

    async def find_one(self, *args, **kwargs):
        raise ServerSelectionTimeoutError("no servers")


class _DownDatabase:

    def get_collection(self, name):
        return _DownCollection()

    def __getitem__(self, name):
        return _DownCollection()


def test_storage_outage_maps_to_503(client):
    app.dependency_overrides[mongo_db_dependency] = lambda: _DownDatabase()
    token = create_access_token("650000000000000000000000")
    resp = client.get("/typing", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 503
    assert resp.json() == {"detail": "Storage unavailable"}
