# etoh/models/friendship.py
from sqlalchemy import (
    Column, Integer, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint, Index, func,
)
from sqlalchemy.orm import relationship
from etoh.db import Base


class Friendship(Base):
    """
    Одно направление дружбы. Строки всегда парные: (A, B) есть тогда и только
    тогда, когда есть (B, A). Создаёт и удаляет пары только движок переходов.
    """
    __tablename__ = "friendships"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    friend_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friendship_direction"),
        CheckConstraint("user_id <> friend_id", name="ck_friendship_not_self"),
        Index("ix_friendships_user_id", "user_id"),
        Index("ix_friendships_friend_id", "friend_id"),
        {"sqlite_autoincrement": True},
    )

    user = relationship("User", foreign_keys=[user_id])
    friend = relationship("User", foreign_keys=[friend_id])

    def __repr__(self):
        return f"<Friendship(id={self.id}, user_id={self.user_id}, friend_id={self.friend_id})>"
