# etoh/routers/users.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from etoh.db import get_db
from etoh.models.user import User
from etoh.schemas.user import UserOut, UserUpdate
from etoh.utils.telegram_dep import get_current_telegram_user
from etoh.utils.user import normalize_email

router = APIRouter()
log = logging.getLogger(__name__)


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_telegram_user)):
    """Текущий пользователь по Telegram WebApp initData."""
    return current_user


@router.patch("/me", response_model=UserOut)
def update_me(
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Обновить свой email (по нему вас находят друзья) и текст мотивации.
    Email храним нормализованным; занят другим -> 409.
    """
    if payload.email is not None:
        email = normalize_email(payload.email)
        if "@" not in email:
            raise HTTPException(422, detail={"code": "invalid_email"})
        taken = db.query(User.id).filter(User.email == email, User.id != current_user.id).first()
        if taken:
            raise HTTPException(409, detail={"code": "email_taken"})
        current_user.email = email
    if payload.motivation_text is not None:
        current_user.motivation_text = payload.motivation_text.strip() or None

    try:
        db.commit()
    except IntegrityError:
        # тот же email параллельно занял кто-то другой
        db.rollback()
        raise HTTPException(409, detail={"code": "email_taken"})
    db.refresh(current_user)
    log.info("User %s updated profile", current_user.id)
    return current_user
