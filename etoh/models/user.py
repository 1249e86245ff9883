# etoh/models/user.py

from sqlalchemy import Column, BigInteger, Integer, String, Boolean, DateTime, Text, func
from etoh.db import Base

class User(Base):
    """
    Аккаунт с точки зрения движка дружбы. Личность — из Telegram WebApp,
    email задаёт сам пользователь, по нему его находят друзья.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)

    # храним нормализованным (trim, нижний регистр): уникальность без учёта регистра
    email = Column(String(254), unique=True, nullable=True, index=True)

    username = Column(String, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    name = Column(String, index=True, nullable=True)  # отображаемое имя
    photo_url = Column(String, nullable=True)
    language_code = Column(String(8), nullable=True)
    allows_write_to_pm = Column(Boolean, default=True)
    motivation_text = Column(Text, nullable=True, comment="Зачем пользователь ведёт трекинг, видно друзьям")

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, telegram_id={self.telegram_id}, email={self.email}, name={self.name})>"
