from fastapi import APIRouter, Depends, HTTPException, Query

from chatpulse.database.connection import mongo_db_dependency
from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.message_repository import MessageRepository
from chatpulse.routers.typing import get_typing_service
from chatpulse.schemas.conversation import (
    ConversationCreate,
    MarkReadResult,
    MessageCreate,
    MessageEdit,
    ReactionToggle,
    UnreadCount,
    UnreadCounts,
)
from chatpulse.services.chat_service import ChatService
from chatpulse.services.typing_service import TypingIndicatorService
from chatpulse.services.unread_service import UnreadTrackingService
from chatpulse.utils.dependencies import get_current_user, require_participant


router = APIRouter(prefix="/conversations", tags=["chat"])


def get_chat_service(db = Depends(mongo_db_dependency), typing_service: TypingIndicatorService = Depends(get_typing_service)) -> ChatService:
    return ChatService(MessageRepository(db), ConversationRepository(db), typing_service)


def get_unread_service(db = Depends(mongo_db_dependency)) -> UnreadTrackingService:
    return UnreadTrackingService(MessageRepository(db), ConversationRepository(db))


@router.get("")
async def list_conversations(current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    items = await service.list_conversations(current_user["_id"])
    return {"items": items}


@router.post("", status_code=201)
async def create_conversation(body: ConversationCreate, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        convo = await service.create_conversation(current_user["_id"], body.participant_ids, name=body.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return convo


@router.get("/unread", response_model=UnreadCounts)
async def unread_counts(current_user: dict = Depends(get_current_user), service: UnreadTrackingService = Depends(get_unread_service)):
    counts = await service.get_unread_counts(current_user["_id"])
    return {"counts": counts}


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, current_user: dict = Depends(get_current_user), db = Depends(mongo_db_dependency)):
    return await require_participant(conversation_id, current_user["_id"], db)


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, limit: int = Query(200, ge=1, le=1000), current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service), db = Depends(mongo_db_dependency)):
    await require_participant(conversation_id, current_user["_id"], db)
    messages = await service.get_history(conversation_id, limit=limit)
    return {"items": messages}


@router.post("/{conversation_id}/messages", status_code=201)
async def send_message(conversation_id: str, body: MessageCreate, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service), db = Depends(mongo_db_dependency)):
    convo = await require_participant(conversation_id, current_user["_id"], db)
    try:
        saved = await service.send_message(convo, current_user["_id"], body.content, reply_to=body.reply_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return saved


@router.patch("/{conversation_id}/messages/{message_id}")
async def edit_message(conversation_id: str, message_id: str, body: MessageEdit, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service), db = Depends(mongo_db_dependency)):
    convo = await require_participant(conversation_id, current_user["_id"], db)
    try:
        return await service.edit_message(convo, message_id, current_user["_id"], body.content)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{conversation_id}/messages/{message_id}")
async def delete_message(conversation_id: str, message_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service), db = Depends(mongo_db_dependency)):
    convo = await require_participant(conversation_id, current_user["_id"], db)
    try:
        return await service.delete_message(convo, message_id, current_user["_id"])
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.post("/{conversation_id}/messages/{message_id}/reactions")
async def toggle_reaction(conversation_id: str, message_id: str, body: ReactionToggle, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service), db = Depends(mongo_db_dependency)):
    convo = await require_participant(conversation_id, current_user["_id"], db)
    try:
        reactions = await service.toggle_reaction(convo, message_id, current_user["_id"], body.emoji)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"message_id": message_id, "reactions": reactions}


@router.get("/{conversation_id}/unread", response_model=UnreadCount)
async def unread_count(conversation_id: str, current_user: dict = Depends(get_current_user), service: UnreadTrackingService = Depends(get_unread_service), db = Depends(mongo_db_dependency)):
    await require_participant(conversation_id, current_user["_id"], db)
    unread = await service.get_unread_count(current_user["_id"], conversation_id)
    return {"conversation_id": conversation_id, "unread": unread}


@router.post("/{conversation_id}/read", response_model=MarkReadResult)
async def mark_read(conversation_id: str, current_user: dict = Depends(get_current_user), service: UnreadTrackingService = Depends(get_unread_service), db = Depends(mongo_db_dependency)):
    await require_participant(conversation_id, current_user["_id"], db)
    updated = await service.mark_as_read(conversation_id, current_user["_id"])
    return {"conversation_id": conversation_id, "updated": updated}
