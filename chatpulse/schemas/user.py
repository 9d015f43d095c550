from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserSync(BaseModel):

    clerk_id: str = Field(min_length=1)
    name: str
    email: EmailStr
    image_url: Optional[str] = None


class OnlineStatus(BaseModel):

    clerk_id: str
    online: bool


class UserPublic(BaseModel):

    id: str
    name: str
    email: Optional[EmailStr] = None
    image_url: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[int] = None
