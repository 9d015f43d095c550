from fastapi import APIRouter, Depends

from chatpulse.database.connection import mongo_db_dependency
from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.typing_indicator_repository import TypingIndicatorRepository
from chatpulse.repositories.user_repository import UserRepository
from chatpulse.schemas.typing_indicator import AllTypingResponse, TypingUpdate, TypingUsersResponse
from chatpulse.services.typing_service import TypingIndicatorService
from chatpulse.utils.dependencies import get_current_user, require_participant


router = APIRouter(prefix="/typing", tags=["typing"])


def get_typing_service(db = Depends(mongo_db_dependency)) -> TypingIndicatorService:
    return TypingIndicatorService(TypingIndicatorRepository(db), ConversationRepository(db), UserRepository(db))


@router.post("", status_code=204)
async def set_typing(body: TypingUpdate, current_user: dict = Depends(get_current_user), service: TypingIndicatorService = Depends(get_typing_service), db = Depends(mongo_db_dependency)):
    await require_participant(body.conversation_id, current_user["_id"], db)
    await service.set_typing(body.conversation_id, current_user["_id"], body.is_typing)


@router.get("", response_model=AllTypingResponse)
async def all_typing(current_user: dict = Depends(get_current_user), service: TypingIndicatorService = Depends(get_typing_service)):
    conversations = await service.get_all_typing_indicators(current_user["_id"])
    return {"conversations": conversations}


@router.get("/{conversation_id}", response_model=TypingUsersResponse)
async def typing_users(conversation_id: str, current_user: dict = Depends(get_current_user), service: TypingIndicatorService = Depends(get_typing_service), db = Depends(mongo_db_dependency)):
    await require_participant(conversation_id, current_user["_id"], db)
    users = await service.get_typing_users(conversation_id)
    return {"conversation_id": conversation_id, "users": users}
