import asyncio
import logging
from typing import Dict

from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.message_repository import MessageRepository

logger = logging.getLogger(__name__)


class UnreadTrackingService:
    """Unread counts derived from each message's read_by set; nothing is materialized."""

    def __init__(self, message_repo: MessageRepository, conversation_repo: ConversationRepository) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo

    async def get_unread_count(self, user_id: str, conversation_id: str) -> int:
        return await self._message_repo.count_unread(conversation_id, user_id)

    async def get_unread_counts(self, user_id: str) -> Dict[str, int]:
        conversation_ids = await self._conversation_repo.list_ids_for_user(user_id)
        counts = await asyncio.gather(*(self.get_unread_count(user_id, cid) for cid in conversation_ids))
        return dict(zip(conversation_ids, counts))

    async def mark_as_read(self, conversation_id: str, user_id: str) -> int:
        modified = await self._message_repo.mark_read(conversation_id, user_id)
        if modified:
            logger.info(f"Marked {modified} messages read for {user_id} in {conversation_id}")
        return modified
