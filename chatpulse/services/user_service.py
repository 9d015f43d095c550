from typing import List, Optional

from chatpulse.repositories.user_repository import UserRepository
from chatpulse.schemas.user import UserPublic
from chatpulse.utils.clock import now_ms


def to_public(user: dict) -> UserPublic:
    return UserPublic(
        id=user["_id"],
        name=user.get("name", ""),
        email=user.get("email"),
        image_url=user.get("image_url"),
        is_online=bool(user.get("is_online", False)),
        last_seen=user.get("last_seen"),
    )


class UserService:
    """Service layer for the user directory"""

    def __init__(self, user_repository: UserRepository):
        self.user_repository = user_repository

    async def sync_user(self, clerk_id: str, name: str, email: str, image_url: Optional[str]) -> str:
        """
        Sync a user signed in through the identity provider
        - Existing user (by clerk_id): refresh profile fields
        - Otherwise create it
        - Either way the user is marked online
        Returns the user id.
        """
        fields = {
            "name": name,
            "email": email,
            "image_url": image_url,
            "is_online": True,
            "last_seen": now_ms(),
        }
        existing = await self.user_repository.get_by_clerk_id(clerk_id)
        if existing:
            await self.user_repository.update_user(existing["_id"], fields)
            return existing["_id"]
        return await self.user_repository.create_user(clerk_id, fields)

    async def set_online(self, clerk_id: str, online: bool) -> bool:
        """Update the online flag; unknown users are ignored."""
        user = await self.user_repository.get_by_clerk_id(clerk_id)
        if not user:
            return False
        await self.user_repository.update_user(user["_id"], {"is_online": online, "last_seen": now_ms()})
        return True

    async def get_users(self) -> List[UserPublic]:
        return [to_public(u) for u in await self.user_repository.list_users()]

    async def get_user(self, user_id: str) -> Optional[UserPublic]:
        user = await self.user_repository.get_by_id(user_id)
        return to_public(user) if user else None
