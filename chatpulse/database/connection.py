import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from chatpulse.config import settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo() -> None:
    global _client, _db
    _client = AsyncIOMotorClient(settings.MONGO_URL)
    _db = _client[settings.MONGO_DB_NAME]
    await ensure_indexes(_db)
    await migrate_legacy_data(_db)
    logger.info(f"Connected to MongoDB database '{settings.MONGO_DB_NAME}'")


async def close_mongo_connection() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    _db = None


def get_database() -> AsyncIOMotorDatabase:
    if _db is None:
        raise RuntimeError("MongoDB is not connected")
    return _db


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    # imported here to keep repositories free of connection state
    from chatpulse.repositories.conversation_repository import ConversationRepository
    from chatpulse.repositories.message_repository import MessageRepository
    from chatpulse.repositories.typing_indicator_repository import TypingIndicatorRepository
    from chatpulse.repositories.user_repository import UserRepository

    await TypingIndicatorRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    await ConversationRepository(db).ensure_indexes()
    await UserRepository(db).ensure_indexes()


async def migrate_legacy_data(db: AsyncIOMotorDatabase) -> None:
    from chatpulse.repositories.message_repository import MessageRepository

    await MessageRepository(db).migrate_legacy_reactions()
