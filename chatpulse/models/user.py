from typing import Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    clerk_id: str
    name: str
    email: str
    image_url: Optional[str]
    is_online: bool
    # epoch ms
    last_seen: int
