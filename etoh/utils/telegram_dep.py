# etoh/utils/telegram_dep.py
"""
Аутентификация через Telegram WebApp initData.

Единственное место, где устанавливается личность пользователя: initData
проверяется по подписи бота, а движок дружбы получает только готового User
(его id) и ничего больше.

- validate_and_sync_user: валидирует initData, находит/создаёт пользователя, обновляет поля профиля
- get_current_telegram_user: FastAPI-зависимость для HTTP-роутов (пользователей не создаёт)
- get_websocket_user_id: то же для websocket-стрима, отдаёт только id
"""

import logging
import os
from typing import Optional

from fastapi import Depends, HTTPException, Request, WebSocket
from sqlalchemy.orm import Session

from etoh.db import SessionLocal, get_db
from etoh.models.user import User
from etoh.utils.user import get_display_name
from telegram_webapp_auth.auth import TelegramAuthenticator, generate_secret_key

log = logging.getLogger(__name__)

TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")
if not TELEGRAM_BOT_TOKEN:
    raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

_auth_secret = generate_secret_key(TELEGRAM_BOT_TOKEN)
authenticator = TelegramAuthenticator(_auth_secret)

SUPPORTED_LANGS = {"en", "ru", "es"}


def _normalize_lang(code: Optional[str]) -> str:
    """Приводим код языка к поддерживаемому, по умолчанию 'en'."""
    if not code:
        return "en"
    c = code.lower()
    if "-" in c:
        c = c.split("-")[0]
    return c if c in SUPPORTED_LANGS else "en"


def _get_init_data_from_request(request: Request, body: Optional[dict]) -> Optional[str]:
    """
    Порядок поиска initData:
      - JSON body, ключ 'initData'
      - заголовок 'x-telegram-initdata'
      - query (?init_data=...)
    """
    if body and isinstance(body, dict):
        v = body.get("initData")
        if isinstance(v, str) and v.strip():
            return v

    header_v = request.headers.get("x-telegram-initdata")
    if header_v:
        return header_v

    q = request.query_params.get("init_data")
    if q:
        return q

    return None


def _apply_user_fields_from_tg(u: User, tg_user) -> bool:
    """Переносим поля профиля Telegram в пользователя. True, если что-то изменилось."""
    changed = False

    def upd(field: str, new_val):
        nonlocal changed
        if getattr(u, field) != new_val:
            setattr(u, field, new_val)
            changed = True

    first_name = getattr(tg_user, "first_name", None)
    last_name = getattr(tg_user, "last_name", None)
    username = getattr(tg_user, "username", None)

    upd("first_name", first_name)
    upd("last_name", last_name)
    upd("username", username)
    upd("photo_url", getattr(tg_user, "photo_url", None))
    upd("language_code", _normalize_lang(getattr(tg_user, "language_code", None)))
    upd("allows_write_to_pm", getattr(tg_user, "allows_write_to_pm", getattr(u, "allows_write_to_pm", True)))
    # Обновляем display name
    upd("name", get_display_name(first_name=first_name, last_name=last_name, username=username, telegram_id=u.telegram_id))

    return changed


def validate_and_sync_user(init_data: str, db: Session, *, create_if_missing: bool) -> User:
    """Валидируем initData, находим или создаём пользователя, обновляем его поля из Telegram."""
    if not init_data:
        raise HTTPException(status_code=401, detail="initData is required")

    try:
        result = authenticator.validate(init_data)
    except Exception as e:
        log.info("initData rejected: %s", e)
        raise HTTPException(status_code=401, detail=f"Auth error: {str(e)}")

    tg_user = result.user
    telegram_id = tg_user.id

    user: Optional[User] = db.query(User).filter_by(telegram_id=telegram_id).first()

    if not user:
        if not create_if_missing:
            raise HTTPException(status_code=401, detail="User is not registered")
        user = User(telegram_id=telegram_id)
        _apply_user_fields_from_tg(user, tg_user)
        db.add(user)
        db.commit()
        db.refresh(user)
        log.info("Registered user %s (telegram %s)", user.id, telegram_id)
        return user

    if _apply_user_fields_from_tg(user, tg_user):
        db.add(user)
        db.commit()
        db.refresh(user)

    return user


async def get_current_telegram_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Зависимость для защищённых роутов: достаём initData, валидируем и
    возвращаем существующего пользователя с обновлёнными полями.
    """
    body = None
    if request.method in {"POST", "PUT", "PATCH"}:
        try:
            body = await request.json()
        except Exception:
            body = None

    init_data = _get_init_data_from_request(request, body)
    if not init_data:
        raise HTTPException(
            status_code=401,
            detail="initData required (JSON 'initData', header 'x-telegram-initdata' or '?init_data=...')",
        )

    return validate_and_sync_user(init_data, db, create_if_missing=False)


def get_websocket_user_id(websocket: WebSocket) -> Optional[int]:
    """
    initData для websocket-стрима приходит в ?init_data=... (браузер не умеет
    ставить заголовки на websocket). Вместо исключения возвращаем None, чтобы
    роут закрыл сокет с кодом политики.

    Сессия живёт только на время проверки: сокет может висеть часами и не
    должен держать соединение из пула. Наружу отдаём только id.
    """
    init_data = websocket.query_params.get("init_data")
    if not init_data:
        return None
    with SessionLocal() as db:
        try:
            return validate_and_sync_user(init_data, db, create_if_missing=False).id
        except HTTPException:
            return None
