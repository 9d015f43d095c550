from typing import TypedDict


class TypingIndicatorDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    user_id: str
    # last keystroke, epoch ms
    timestamp: int
