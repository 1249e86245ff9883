# etoh/routers/events.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from etoh.db import get_db
from etoh.models.event import Event
from etoh.models.user import User
from etoh.schemas.event import EventOut
from etoh.services.notifications import relay
from etoh.utils.telegram_dep import get_current_telegram_user, get_websocket_user_id

router = APIRouter(prefix="/events", tags=["Events"])
log = logging.getLogger(__name__)

# -------- фильтрация по "чипам" (types[]) --------
# Чип -> префикс типа; всё остальное сравниваем как точный тип
_CHIPS = {
    "request": "friend_request_%",
    "friendship": "friendship_%",
}


def _apply_types_filter(q, types: Optional[List[str]]):
    if not types:
        return q

    # Нормализуем к нижнему регистру
    tset = {t.lower().strip() for t in types if t and t.strip()}
    if not tset:
        return q

    clauses = [Event.type.like(_CHIPS[t]) for t in tset if t in _CHIPS]
    exact = [t for t in tset if t not in _CHIPS]
    if exact:
        clauses.append(Event.type.in_(exact))
    return q.where(or_(*clauses))


@router.get("/", response_model=List[EventOut])
def list_events(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    types: Optional[List[str]] = Query(None, description="Chips (request, friendship) or exact types"),
    since: Optional[datetime] = Query(None, description="created_at >= since"),
    before: Optional[datetime] = Query(None, description="created_at < before"),
):
    """
    Лента изменений текущего пользователя: события, где он актор или цель.
    Клиент перечитывает её (и списки друзей), чтобы догнать пропущенные
    уведомления из стрима.
    """
    me = current_user
    base = select(Event).where(or_(Event.actor_id == me.id, Event.target_user_id == me.id))

    if since is not None:
        base = base.where(Event.created_at >= since)
    if before is not None:
        base = base.where(Event.created_at < before)

    base = _apply_types_filter(base, types)
    # пагинация
    base = base.order_by(Event.created_at.desc(), Event.id.desc()).offset(offset).limit(limit)
    return db.execute(base).scalars().all()


@router.websocket("/stream")
async def stream_events(websocket: WebSocket, user_id: Optional[int] = Depends(get_websocket_user_id)):
    """
    Push-стрим событий для подключённого пользователя. Подписка живёт, пока
    открыт сокет, и снимается при отключении.
    """
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    subscription, queue = relay.subscribe_queue(user_id)
    await websocket.accept()
    log.debug("Event stream opened for user %s", user_id)

    async def _wait_disconnect() -> None:
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                return

    watcher = asyncio.ensure_future(_wait_disconnect())
    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({getter, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if watcher in done:
                getter.cancel()
                break
            await websocket.send_json(getter.result())
    except WebSocketDisconnect:
        pass
    finally:
        watcher.cancel()
        subscription.unsubscribe()
        log.debug("Event stream closed for user %s", user_id)
