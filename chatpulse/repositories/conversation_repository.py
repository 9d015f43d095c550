from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from chatpulse.models.conversation import ConversationDocument


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("last_message_at", DESCENDING)])

    async def get_by_id(self, conversation_id: str) -> Optional[ConversationDocument]:
        if not ObjectId.is_valid(conversation_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(conversation_id)})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def create(self, participants: List[str], created_by: str, name: Optional[str] = None) -> ConversationDocument:
        # one-to-one conversations are stored with sorted participants so they can be found again
        is_group = len(participants) > 2
        if not is_group:
            participants = sorted(participants)
            existing = await self.collection.find_one({"participants": participants, "is_group": False})
            if existing:
                existing["_id"] = str(existing.get("_id"))
                return existing
        now = datetime.now(timezone.utc)
        doc: ConversationDocument = {
            "participants": participants,
            "is_group": is_group,
            "name": name,
            "created_by": created_by,
            "created_at": now,
            "last_message_at": now,
            "last_message_preview": None,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def update_on_new_message(self, conversation_id: str, preview: str) -> None:
        await self.collection.update_one(
            {"_id": ObjectId(conversation_id)},
            {
                "$set": {
                    "last_message_at": datetime.now(timezone.utc),
                    "last_message_preview": preview,
                },
            },
        )

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        query = {"participants": {"$in": [user_id]}}
        cur = self.collection.find(query).sort([("last_message_at", DESCENDING), ("_id", DESCENDING)])
        items = [doc async for doc in cur]
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def list_ids_for_user(self, user_id: str) -> List[str]:
        cur = self.collection.find({"participants": {"$in": [user_id]}}, {"_id": 1})
        return [str(doc["_id"]) async for doc in cur]
