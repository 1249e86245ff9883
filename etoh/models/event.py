# etoh/models/event.py
from sqlalchemy import Column, Integer, String, DateTime, JSON, func, UniqueConstraint, Index
from sqlalchemy.dialects.postgresql import JSONB
from etoh.db import Base

class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)

    # кто совершил действие
    actor_id = Column(Integer, nullable=False)

    # вторая сторона действия, если есть
    target_user_id = Column(Integer, nullable=True)

    type = Column(String(64), nullable=False)

    data = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True, default=dict)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    # защита от дублей при повторной записи того же изменения
    idempotency_key = Column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_events_idempotency_key"),
        Index("ix_events_actor_id", "actor_id"),
        Index("ix_events_target_user_id", "target_user_id"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} type={self.type} actor={self.actor_id} target={self.target_user_id}>"
