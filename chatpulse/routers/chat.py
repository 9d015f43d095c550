import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from chatpulse.config import settings
from chatpulse.database.connection import mongo_db_dependency
from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.message_repository import MessageRepository
from chatpulse.routers.typing import get_typing_service
from chatpulse.services.typing_service import TypingIndicatorService
from chatpulse.services.unread_service import UnreadTrackingService
from chatpulse.utils.realtime_bus import get_bus, user_channel
from chatpulse.utils.security import TokenError, decode_access_token
from chatpulse.utils.websocket_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.websocket("/ws/{user_id}")
async def chat_socket(websocket: WebSocket, user_id: str, typing_service: TypingIndicatorService = Depends(get_typing_service), db = Depends(mongo_db_dependency)):
    # token comes in the query string: ?token=...
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return
    try:
        payload = decode_access_token(token)
    except TokenError as e:
        logger.warning(f"WebSocket auth failed for {user_id}: {e}")
        await websocket.close(code=4401)
        return
    if payload.get("sub") != user_id:
        await websocket.close(code=4403)
        return

    conversation_repo = ConversationRepository(db)
    unread_service = UnreadTrackingService(MessageRepository(db), conversation_repo)

    await manager.connect(user_id, websocket)
    bus = await get_bus()
    tasks = []
    subscriber = None
    if bus.enabled:
        subscriber = await bus.subscribe(user_channel(user_id), websocket.send_text)
        tasks.append(asyncio.create_task(subscriber.run()))

        async def _presence_heartbeat():
            while True:
                await bus.set_presence(user_id, ttl_seconds=settings.PRESENCE_TTL_SECONDS)
                await asyncio.sleep(settings.PRESENCE_TTL_SECONDS / 2)
        tasks.append(asyncio.create_task(_presence_heartbeat()))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid JSON"}))
                continue
            if not isinstance(msg, dict):
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid message payload"}))
                continue
            kind = msg.get("type")
            conversation_id = msg.get("conversation_id")
            if kind not in ("typing_start", "typing_stop", "read") or not isinstance(conversation_id, str):
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid message payload"}))
                continue
            convo = await conversation_repo.get_by_id(conversation_id)
            if not convo or user_id not in convo.get("participants", []):
                await websocket.send_text(json.dumps({"type": "error", "detail": "Not a participant", "conversation_id": conversation_id}))
                continue

            if kind == "read":
                updated = await unread_service.mark_as_read(conversation_id, user_id)
                await websocket.send_text(json.dumps({"type": "ack", "event": kind, "conversation_id": conversation_id, "updated": updated}))
                continue

            await typing_service.set_typing(conversation_id, user_id, kind == "typing_start")
            await websocket.send_text(json.dumps({"type": "ack", "event": kind, "conversation_id": conversation_id}))
    except WebSocketDisconnect:
        logger.debug(f"WebSocket closed for {user_id}")
    finally:
        manager.disconnect(user_id, websocket)
        if subscriber is not None:
            await subscriber.cancel()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
