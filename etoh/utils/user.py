# etoh/utils/user.py
from typing import Optional


def get_display_name(first_name: str = "", last_name: str = "", username: str = "", telegram_id: int = None) -> str:
    """
    Отображаемое имя пользователя:
    1. Имя и фамилия через пробел, если есть.
    2. Иначе username.
    3. Иначе Telegram ID.
    """
    name = " ".join(filter(None, [first_name, last_name]))
    if name.strip():
        return name.strip()
    if username:
        return username
    if telegram_id is not None:
        return str(telegram_id)
    return ""


def normalize_email(email: Optional[str]) -> str:
    """Каноничная форма для хранения и поиска: trim, нижний регистр."""
    return (email or "").strip().lower()
