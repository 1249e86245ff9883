# etoh/schemas/user.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class UserOut(BaseModel):
    id: int
    telegram_id: int
    email: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None
    language_code: Optional[str] = None
    motivation_text: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    """Поля, которые пользователь меняет сам. None — «не трогать»."""
    email: Optional[str] = Field(None, min_length=3, max_length=254)
    motivation_text: Optional[str] = Field(None, max_length=1000)


class ProfileOut(BaseModel):
    """Публичный профиль второй стороны, вкладывается в списки заявок и друзей."""
    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None

    class Config:
        from_attributes = True
