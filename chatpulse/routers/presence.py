from fastapi import APIRouter, Depends, HTTPException

from chatpulse.database.connection import mongo_db_dependency
from chatpulse.repositories.user_repository import UserRepository
from chatpulse.utils.realtime_bus import get_bus


router = APIRouter(prefix="/presence", tags=["chat"])


@router.get("/{user_id}")
async def presence(user_id: str, db = Depends(mongo_db_dependency)):
    """
    Online status of a user. A live Redis heartbeat key wins when Redis is
    configured; otherwise the stored online flag is used.
    """
    user = await UserRepository(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    bus = await get_bus()
    online = await bus.is_present(user_id)
    if online is None:
        online = bool(user.get("is_online", False))
    return {"user_id": user_id, "online": online, "last_seen": user.get("last_seen")}
