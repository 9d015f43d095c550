from typing import List

from fastapi import APIRouter, Depends, HTTPException

from chatpulse.database.connection import mongo_db_dependency
from chatpulse.repositories.user_repository import UserRepository
from chatpulse.schemas.user import OnlineStatus, UserPublic, UserSync
from chatpulse.services.user_service import UserService
from chatpulse.utils.dependencies import get_current_user
from chatpulse.utils.security import create_access_token


router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(db = Depends(mongo_db_dependency)) -> UserService:
    return UserService(UserRepository(db))


@router.post("/sync")
async def sync_user(body: UserSync, service: UserService = Depends(get_user_service)):
    user_id = await service.sync_user(body.clerk_id, body.name, body.email, body.image_url)
    return {"id": user_id, "access_token": create_access_token(user_id), "token_type": "bearer"}


@router.post("/online")
async def set_online(body: OnlineStatus, current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    if body.clerk_id != current_user.get("clerk_id"):
        raise HTTPException(status_code=403, detail="Cannot change another user's presence.")
    await service.set_online(body.clerk_id, body.online)
    return {"online": body.online}


@router.get("", response_model=List[UserPublic])
async def list_users(current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return await service.get_users()
