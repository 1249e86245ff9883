# etoh/services/events.py
from __future__ import annotations
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from etoh.models.event import Event

FRIEND_REQUEST_SENT = "friend_request_sent"
FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
FRIEND_REQUEST_REJECTED = "friend_request_rejected"

FRIENDSHIP_CREATED = "friendship_created"
FRIENDSHIP_REMOVED = "friendship_removed"

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def log_event(
    db: Session,
    *,
    type: str,
    actor_id: int,
    target_user_id: Optional[int] = None,
    data: Optional[Dict[str, Any]] = None,
    idempotency_key: Optional[str] = None,
) -> Event:
    """
    Единая точка записи в ленту изменений. Вызывается в той же транзакции, что
    и сама мутация, не коммитит. С idempotency_key повторная запись вернёт
    существующую строку вместо IntegrityError.
    """
    payload = {
        "type": type,
        "actor_id": actor_id,
        "target_user_id": target_user_id,
        "data": (data or {}),
        "idempotency_key": idempotency_key,
    }

    insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
    if idempotency_key and insert is not None:
        # ON CONFLICT DO NOTHING по уникальному ключу idempotency_key
        stmt = (
            insert(Event.__table__)
            .values(**payload)
            .on_conflict_do_nothing(index_elements=["idempotency_key"])
        )
        db.execute(stmt)
        ev = db.query(Event).filter(Event.idempotency_key == idempotency_key).first()
        if ev is not None:
            return ev

    ev = Event(**payload)
    db.add(ev)
    db.flush()
    return ev


def event_payload(ev: Event) -> Dict[str, Any]:
    """JSON-представление события, как его получают подписчики ретранслятора."""
    return {
        "id": ev.id,
        "type": ev.type,
        "actor_id": ev.actor_id,
        "target_user_id": ev.target_user_id,
        "data": ev.data or {},
        "created_at": ev.created_at.isoformat() if ev.created_at else None,
    }
