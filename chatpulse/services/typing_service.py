import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from chatpulse.config import settings
from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.typing_indicator_repository import TypingIndicatorRepository
from chatpulse.repositories.user_repository import UserRepository
from chatpulse.utils.clock import now_ms
from chatpulse.utils.realtime_bus import fanout

logger = logging.getLogger(__name__)

EXPIRY_MS = 2000


class TypingIndicatorService:
    """
    Ephemeral "user is typing" state, one row per (conversation, user).

    There is no background sweeper: every read drops and deletes rows older
    than the expiry window before returning, so a result never contains a
    stale indicator.
    """

    def __init__(
        self,
        typing_repo: TypingIndicatorRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        clock: Callable[[], int] = now_ms,
        expiry_ms: Optional[int] = None,
    ) -> None:
        self._typing_repo = typing_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._clock = clock
        self.expiry_ms = expiry_ms if expiry_ms is not None else settings.TYPING_EXPIRY_MS

    def is_stale(self, indicator: Dict[str, Any], now: int) -> bool:
        return now - indicator["timestamp"] > self.expiry_ms

    async def set_typing(self, conversation_id: str, user_id: str, is_typing: bool) -> None:
        if is_typing:
            created = await self._typing_repo.upsert(conversation_id, user_id, self._clock())
            if not created:
                # refresh only; participants already know
                return
            logger.debug(f"User {user_id} started typing in {conversation_id}")
        else:
            if not await self._typing_repo.delete_for_user(conversation_id, user_id):
                return
            logger.debug(f"User {user_id} stopped typing in {conversation_id}")
        await self._notify(conversation_id, user_id, is_typing)

    async def purge_stale(self, conversation_id: str, now: Optional[int] = None) -> List[Dict[str, Any]]:
        """Delete expired indicators of a conversation and return the fresh ones."""
        if now is None:
            now = self._clock()
        indicators = await self._typing_repo.list_by_conversation(conversation_id)
        stale = [t["_id"] for t in indicators if self.is_stale(t, now)]
        if stale:
            deleted = await self._typing_repo.delete_many(stale)
            logger.debug(f"Purged {deleted} stale typing indicators from {conversation_id}")
        return [t for t in indicators if not self.is_stale(t, now)]

    async def get_typing_users(self, conversation_id: str, now: Optional[int] = None) -> List[Dict[str, str]]:
        fresh = await self.purge_stale(conversation_id, now)
        if not fresh:
            return []
        users = await self._user_repo.get_many(t["user_id"] for t in fresh)
        # indicators whose user no longer exists are dropped
        return [
            {"id": users[t["user_id"]]["_id"], "name": users[t["user_id"]].get("name", "")}
            for t in fresh
            if t["user_id"] in users
        ]

    async def get_all_typing_indicators(self, user_id: str) -> Dict[str, List[Dict[str, str]]]:
        conversation_ids = await self._conversation_repo.list_ids_for_user(user_id)
        now = self._clock()
        results = await asyncio.gather(*(self.get_typing_users(cid, now) for cid in conversation_ids))
        return dict(zip(conversation_ids, results))

    async def _notify(self, conversation_id: str, user_id: str, is_typing: bool) -> None:
        convo = await self._conversation_repo.get_by_id(conversation_id)
        if not convo:
            return
        others = [p for p in convo.get("participants", []) if p != user_id]
        await fanout(others, {
            "type": "typing",
            "conversation_id": conversation_id,
            "user_id": user_id,
            "is_typing": is_typing,
        })
