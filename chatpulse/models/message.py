from datetime import datetime
from typing import List, Optional, TypedDict


class ReactionEntry(TypedDict):
    emoji: str
    user_ids: List[str]


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    content: str
    timestamp: datetime
    # user ids that have seen the message; only grows
    read_by: List[str]
    reply_to: Optional[str]
    edited: bool
    edited_at: Optional[datetime]
    # soft delete keeps the row so replies and read state survive
    deleted: bool
    reactions: List[ReactionEntry]
