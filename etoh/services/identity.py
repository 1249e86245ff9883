# etoh/services/identity.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from etoh.models.user import User
from etoh.utils.user import normalize_email


def resolve_account_id(db: Session, email: Optional[str]) -> Optional[int]:
    """
    Email -> id аккаунта. Точное совпадение без учёта регистра.
    Отсутствие — нормальный исход: возвращаем None, не бросаем.
    """
    email_norm = normalize_email(email)
    if not email_norm:
        return None
    row = db.query(User.id).filter(User.email == email_norm).first()
    return row[0] if row else None
