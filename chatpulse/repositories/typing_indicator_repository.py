from typing import Iterable, List

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from chatpulse.models.typing_indicator import TypingIndicatorDocument


class TypingIndicatorRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["typing_indicators"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING)], name="by_conversation")
        await self.collection.create_index(
            [("conversation_id", ASCENDING), ("user_id", ASCENDING)],
            name="by_conversation_user",
            unique=True,
        )

    async def list_by_conversation(self, conversation_id: str) -> List[TypingIndicatorDocument]:
        cur = self.collection.find({"conversation_id": conversation_id})
        return [doc async for doc in cur]

    async def upsert(self, conversation_id: str, user_id: str, timestamp: int) -> bool:
        """Create or refresh the row for the pair. Returns True when a new row was created."""
        key = {"conversation_id": conversation_id, "user_id": user_id}
        try:
            result = await self.collection.update_one(key, {"$set": {"timestamp": timestamp}}, upsert=True)
        except DuplicateKeyError:
            # a concurrent upsert created the row first; refresh it instead
            await self.collection.update_one(key, {"$set": {"timestamp": timestamp}})
            return False
        return result.upserted_id is not None

    async def delete_for_user(self, conversation_id: str, user_id: str) -> int:
        result = await self.collection.delete_many({"conversation_id": conversation_id, "user_id": user_id})
        return result.deleted_count or 0

    async def delete_many(self, indicator_ids: Iterable) -> int:
        ids = list(indicator_ids)
        if not ids:
            return 0
        result = await self.collection.delete_many({"_id": {"$in": ids}})
        return result.deleted_count or 0
