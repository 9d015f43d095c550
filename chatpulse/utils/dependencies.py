import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from chatpulse.database.connection import mongo_db_dependency
from chatpulse.repositories.conversation_repository import ConversationRepository
from chatpulse.repositories.user_repository import UserRepository
from chatpulse.utils.security import TokenError, decode_access_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db=Depends(mongo_db_dependency),
) -> dict:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except TokenError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = await UserRepository(db).get_by_id(payload["sub"])
    if not user:
        logger.warning(f"Token subject {payload['sub']} has no user")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return user


async def require_participant(conversation_id: str, user_id: str, db) -> dict:
    convo = await ConversationRepository(db).get_by_id(conversation_id)
    if not convo:
        raise HTTPException(status_code=404, detail="Conversation not found.")
    if user_id not in convo.get("participants", []):
        raise HTTPException(status_code=403, detail="Not a participant of this conversation.")
    return convo
