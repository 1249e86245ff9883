# etoh/routers/auth.py
"""
Вход через Telegram WebApp. Валидирует initData, создаёт пользователя при
первом входе или обновляет поля профиля и возвращает пользователя.
"""

from fastapi import APIRouter, HTTPException, Request, Depends
from sqlalchemy.orm import Session

from etoh.db import get_db
from etoh.schemas.user import UserOut
from etoh.models.user import User
from etoh.utils.telegram_dep import validate_and_sync_user

router = APIRouter()


@router.post("/telegram", response_model=UserOut)
async def auth_via_telegram(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Точка входа в приложение (/api/auth/telegram).
    Ожидает JSON: { "initData": "<Telegram.WebApp.initData>" }
    """
    try:
        data = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    init_data = (data or {}).get("initData")
    if not init_data:
        raise HTTPException(status_code=400, detail="initData is required")

    return validate_and_sync_user(init_data, db, create_if_missing=True)
