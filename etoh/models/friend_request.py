# etoh/models/friend_request.py

from __future__ import annotations

import enum
from sqlalchemy import (
    Column, Integer, ForeignKey, DateTime, Enum,
    UniqueConstraint, CheckConstraint, Index, func, text,
)
from sqlalchemy.orm import relationship

from etoh.db import Base


class FriendRequestStatus(enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class FriendRequest(Base):
    """
    Заявка в друзья от sender к receiver.

    (user_min, user_max) — каноничный порядок неупорядоченной пары, он уникален:
    на пару не больше одной заявки. Разрешённые заявки удаляются в той же
    транзакции, что их разрешает, поэтому каждая закоммиченная строка — pending.
    """
    __tablename__ = "friend_requests"

    id = Column(Integer, primary_key=True, index=True)

    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    user_min = Column(Integer, nullable=False)
    user_max = Column(Integer, nullable=False)

    status = Column(
        Enum(FriendRequestStatus, name="friend_request_status"),
        nullable=False,
        default=FriendRequestStatus.pending,
        server_default=text("'pending'"),
    )

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_min", "user_max", name="uq_friend_request_pair"),
        CheckConstraint("sender_id <> receiver_id", name="ck_friend_request_not_self"),
        CheckConstraint("user_min < user_max", name="ck_friend_request_min_lt_max"),
        Index("ix_friend_requests_sender_id", "sender_id"),
        Index("ix_friend_requests_receiver_id", "receiver_id"),
        # id не переиспользуются: они входят в ключи идемпотентности событий
        {"sqlite_autoincrement": True},
    )

    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])

    def __repr__(self):
        return f"<FriendRequest(id={self.id}, sender_id={self.sender_id}, receiver_id={self.receiver_id}, status={self.status})>"
