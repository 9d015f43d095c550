from typing import Dict, List

from pydantic import BaseModel


class TypingUpdate(BaseModel):

    conversation_id: str
    is_typing: bool


class TypingUser(BaseModel):

    id: str
    name: str


class TypingUsersResponse(BaseModel):

    conversation_id: str
    users: List[TypingUser]


class AllTypingResponse(BaseModel):

    conversations: Dict[str, List[TypingUser]]
