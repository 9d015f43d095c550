from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ConversationCreate(BaseModel):

    participant_ids: List[str] = Field(min_length=1)
    name: Optional[str] = None


class MessageCreate(BaseModel):

    content: str
    reply_to: Optional[str] = None


class MessageEdit(BaseModel):

    content: str


class ReactionToggle(BaseModel):

    emoji: str = Field(min_length=1, max_length=32)


class UnreadCount(BaseModel):

    conversation_id: str
    unread: int


class UnreadCounts(BaseModel):

    counts: Dict[str, int]


class MarkReadResult(BaseModel):

    conversation_id: str
    updated: int
