import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from chatpulse.models.message import MessageDocument, ReactionEntry

logger = logging.getLogger(__name__)


def normalize_reactions(raw: Any) -> List[ReactionEntry]:
    """
    Bring stored reactions into the canonical ordered list of {emoji, user_ids}.

    Older rows keep reactions as a map of emoji -> list of user ids; those are
    converted in key order. Empty entries and duplicate user ids are dropped.
    """
    if not raw:
        return []
    if isinstance(raw, dict):
        pairs = list(raw.items())
    else:
        pairs = [(r.get("emoji"), r.get("user_ids", [])) for r in raw]
    merged: Dict[str, List[str]] = {}
    for emoji, user_ids in pairs:
        if not emoji:
            continue
        bucket = merged.setdefault(emoji, [])
        for uid in user_ids or []:
            if uid not in bucket:
                bucket.append(uid)
    return [{"emoji": emoji, "user_ids": uids} for emoji, uids in merged.items() if uids]


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("conversation_id", ASCENDING), ("timestamp", ASCENDING)],
            name="by_conversation",
        )

    async def save_message(self, conversation_id: str, sender_id: str, content: str, reply_to: Optional[str] = None) -> MessageDocument:
        doc: MessageDocument = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
            "timestamp": datetime.now(timezone.utc),
            # the sender has seen their own message
            "read_by": [sender_id],
            "reply_to": reply_to,
            "edited": False,
            "deleted": False,
            "reactions": [],
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get_by_id(self, message_id: str) -> Optional[MessageDocument]:
        if not ObjectId.is_valid(message_id):
            return None
        doc = await self.collection.find_one({"_id": ObjectId(message_id)})
        if doc:
            doc["_id"] = str(doc["_id"])
            doc["reactions"] = normalize_reactions(doc.get("reactions"))
        return doc

    async def get_messages_by_conversation(self, conversation_id: str, limit: int = 200) -> List[MessageDocument]:
        cur = self.collection.find({"conversation_id": conversation_id}).sort([("timestamp", 1), ("_id", 1)]).limit(limit)
        items = await cur.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
            it["reactions"] = normalize_reactions(it.get("reactions"))
        return items

    async def update_content(self, message_id: str, content: str) -> None:
        await self.collection.update_one(
            {"_id": ObjectId(message_id)},
            {"$set": {"content": content, "edited": True, "edited_at": datetime.now(timezone.utc)}},
        )

    async def soft_delete(self, message_id: str) -> None:
        await self.collection.update_one(
            {"_id": ObjectId(message_id)},
            {"$set": {"deleted": True, "content": "", "reactions": []}},
        )

    async def set_reactions(self, message_id: str, reactions: List[ReactionEntry]) -> None:
        await self.collection.update_one({"_id": ObjectId(message_id)}, {"$set": {"reactions": reactions}})

    async def migrate_legacy_reactions(self) -> int:
        """Rewrite map-shaped reactions into the canonical list. Returns rows changed."""
        migrated = 0
        async for doc in self.collection.find({"reactions": {"$exists": True}}, {"reactions": 1}):
            if isinstance(doc.get("reactions"), dict):
                await self.set_reactions(str(doc["_id"]), normalize_reactions(doc["reactions"]))
                migrated += 1
        if migrated:
            logger.info(f"Migrated reactions of {migrated} messages to the list format")
        return migrated

    async def count_unread(self, conversation_id: str, user_id: str) -> int:
        # $ne on an array field matches documents whose array lacks the value
        return await self.collection.count_documents(
            {"conversation_id": conversation_id, "read_by": {"$ne": user_id}}
        )

    async def mark_read(self, conversation_id: str, user_id: str) -> int:
        result = await self.collection.update_many(
            {"conversation_id": conversation_id, "read_by": {"$ne": user_id}},
            {"$addToSet": {"read_by": user_id}},
        )
        return result.modified_count or 0
