# etoh/schemas/friend.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from etoh.schemas.user import ProfileOut


class FriendRequestCreate(BaseModel):
    email: str = Field(..., min_length=1, max_length=254)


class FriendRequestResult(BaseModel):
    """
    Результат отправки заявки. Ожидаемые отказы (неизвестный email, сам себе,
    уже друзья, уже есть заявка) приходят как success=False с сообщением.
    """
    success: bool
    message: str
    reason: Optional[str] = None
    request_id: Optional[int] = None


class FriendRequestOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    status: str
    created_at: datetime
    sender_profile: Optional[ProfileOut] = None
    receiver_profile: Optional[ProfileOut] = None


class FriendRequestRespond(BaseModel):
    accept: bool


class FriendRequestRespondOut(BaseModel):
    success: bool
    status: str
    friendship_ids: List[int] = []


class FriendOut(BaseModel):
    """
    Строка дружбы со стороны владельца:
      - user_id        -> владелец списка (текущий пользователь)
      - friend_id      -> друг
      - friend_profile -> публичный профиль друга
    """
    id: int
    user_id: int
    friend_id: int
    created_at: datetime
    friend_profile: ProfileOut


class FriendRemoveOut(BaseModel):
    success: bool
    removed: bool


class FriendProfileOut(ProfileOut):
    motivation_text: Optional[str] = None
    created_at: datetime


class FriendPictureOut(BaseModel):
    photo_url: Optional[str] = None
