from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from chatpulse.models.user import UserDocument


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("clerk_id", ASCENDING)], unique=True)

    async def get_by_clerk_id(self, clerk_id: str) -> Optional[UserDocument]:
        user = await self._collection.find_one({"clerk_id": clerk_id})
        if user:
            user["_id"] = str(user["_id"])  # normalize to string for API layer
        return user

    async def get_by_id(self, user_id: str) -> Optional[UserDocument]:
        if not ObjectId.is_valid(user_id):
            return None
        user = await self._collection.find_one({"_id": ObjectId(user_id)})
        if user:
            user["_id"] = str(user["_id"])
        return user

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, UserDocument]:
        """Resolve ids to users; ids that are malformed or unknown are left out."""
        oids = [ObjectId(u) for u in set(user_ids) if ObjectId.is_valid(u)]
        if not oids:
            return {}
        found: Dict[str, UserDocument] = {}
        async for user in self._collection.find({"_id": {"$in": oids}}):
            user["_id"] = str(user["_id"])
            found[user["_id"]] = user
        return found

    async def create_user(self, clerk_id: str, fields: Dict[str, Any]) -> str:
        doc = {"clerk_id": clerk_id, **fields}
        result = await self._collection.insert_one(doc)
        return str(result.inserted_id)

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> None:
        await self._collection.update_one({"_id": ObjectId(user_id)}, {"$set": fields})

    async def list_users(self) -> List[UserDocument]:
        items = []
        async for user in self._collection.find({}):
            user["_id"] = str(user["_id"])
            items.append(user)
        return items
