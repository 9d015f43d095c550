import logging
from typing import Any, Dict, List, Optional

from chatpulse.models.message import ReactionEntry
from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.message_repository import MessageRepository, normalize_reactions
from chatpulse.services.typing_service import TypingIndicatorService
from chatpulse.utils.realtime_bus import fanout

logger = logging.getLogger(__name__)


class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        typing_service: TypingIndicatorService,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._typing_service = typing_service

    async def create_conversation(self, created_by: str, participant_ids: List[str], name: Optional[str] = None) -> Dict[str, Any]:
        participants = list(dict.fromkeys([created_by, *participant_ids]))
        if len(participants) < 2:
            raise ValueError("A conversation needs at least one other participant")
        return await self._conversation_repo.create(participants, created_by, name=name)

    async def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        return await self._conversation_repo.list_for_user(user_id)

    async def send_message(self, conversation: Dict[str, Any], sender_id: str, content: str, reply_to: Optional[str] = None) -> Dict[str, Any]:
        if not content or not content.strip():
            raise ValueError("Message content cannot be empty")
        conversation_id = conversation["_id"]
        if reply_to is not None:
            target = await self._message_repo.get_by_id(reply_to)
            if not target or target["conversation_id"] != conversation_id:
                raise ValueError("Replied-to message is not in this conversation")
        saved = await self._message_repo.save_message(conversation_id, sender_id, content.strip(), reply_to=reply_to)
        await self._conversation_repo.update_on_new_message(conversation_id, content.strip()[:200])
        # sending ends the typing state for this user
        await self._typing_service.set_typing(conversation_id, sender_id, False)
        await self._notify(conversation, sender_id, {
            "type": "message",
            "conversation_id": conversation_id,
            "message_id": saved["_id"],
            "from": sender_id,
            "content": saved["content"],
            "reply_to": reply_to,
        })
        return saved

    async def get_history(self, conversation_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        return await self._message_repo.get_messages_by_conversation(conversation_id, limit=limit)

    async def edit_message(self, conversation: Dict[str, Any], message_id: str, user_id: str, content: str) -> Dict[str, Any]:
        if not content or not content.strip():
            raise ValueError("Message content cannot be empty")
        message = await self._find_message(conversation, message_id)
        if message["sender_id"] != user_id:
            raise PermissionError("Only the sender can edit a message")
        if message.get("deleted"):
            raise ValueError("Deleted messages cannot be edited")
        await self._message_repo.update_content(message_id, content.strip())
        await self._notify(conversation, user_id, {
            "type": "message_edited",
            "conversation_id": conversation["_id"],
            "message_id": message_id,
            "content": content.strip(),
        })
        return await self._message_repo.get_by_id(message_id)

    async def delete_message(self, conversation: Dict[str, Any], message_id: str, user_id: str) -> Dict[str, Any]:
        message = await self._find_message(conversation, message_id)
        if message["sender_id"] != user_id:
            raise PermissionError("Only the sender can delete a message")
        if not message.get("deleted"):
            await self._message_repo.soft_delete(message_id)
            logger.info(f"Message {message_id} deleted by {user_id}")
            await self._notify(conversation, user_id, {
                "type": "message_deleted",
                "conversation_id": conversation["_id"],
                "message_id": message_id,
            })
        return await self._message_repo.get_by_id(message_id)

    async def toggle_reaction(self, conversation: Dict[str, Any], message_id: str, user_id: str, emoji: str) -> List[ReactionEntry]:
        """Add the user's reaction with this emoji, or take it back if already there."""
        message = await self._find_message(conversation, message_id)
        if message.get("deleted"):
            raise ValueError("Deleted messages cannot be reacted to")
        reactions = normalize_reactions(message.get("reactions"))
        entry = next((r for r in reactions if r["emoji"] == emoji), None)
        if entry is None:
            reactions.append({"emoji": emoji, "user_ids": [user_id]})
        elif user_id in entry["user_ids"]:
            entry["user_ids"].remove(user_id)
        else:
            entry["user_ids"].append(user_id)
        reactions = [r for r in reactions if r["user_ids"]]
        await self._message_repo.set_reactions(message_id, reactions)
        await self._notify(conversation, user_id, {
            "type": "reaction",
            "conversation_id": conversation["_id"],
            "message_id": message_id,
            "reactions": reactions,
        })
        return reactions

    async def _find_message(self, conversation: Dict[str, Any], message_id: str) -> Dict[str, Any]:
        message = await self._message_repo.get_by_id(message_id)
        if not message or message["conversation_id"] != conversation["_id"]:
            raise LookupError("Message not found")
        return message

    async def _notify(self, conversation: Dict[str, Any], actor_id: str, event: Dict[str, Any]) -> None:
        others = [p for p in conversation.get("participants", []) if p != actor_id]
        await fanout(others, event)
