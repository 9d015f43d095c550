from datetime import datetime
from typing import List, Optional, TypedDict


class ConversationDocument(TypedDict, total=False):
    _id: str
    participants: List[str]
    is_group: bool
    name: Optional[str]
    created_by: str
    created_at: datetime
    last_message_at: datetime
    last_message_preview: Optional[str]
