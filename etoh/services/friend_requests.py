# etoh/services/friend_requests.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from etoh.services import relationship_store as store
from etoh.services.errors import StoreFailure
from etoh.services.events import FRIEND_REQUEST_SENT, event_payload, log_event
from etoh.services.identity import resolve_account_id
from etoh.services.notifications import relay

log = logging.getLogger(__name__)

USER_NOT_FOUND = "user_not_found"
SELF_REQUEST = "self_request"
ALREADY_FRIENDS = "already_friends"
ALREADY_PENDING = "already_pending"

MESSAGES = {
    USER_NOT_FOUND: "no such user",
    SELF_REQUEST: "cannot friend self",
    ALREADY_FRIENDS: "already friends",
    ALREADY_PENDING: "request already pending",
}


@dataclass(frozen=True)
class ProposeResult:
    success: bool
    message: str
    reason: Optional[str] = None
    request_id: Optional[int] = None

    @classmethod
    def rejected(cls, reason: str) -> "ProposeResult":
        return cls(success=False, message=MESSAGES[reason], reason=reason)


def _refusal_for_pair(db: Session, a: int, b: int) -> Optional[str]:
    if store.friendship_exists(db, a, b):
        return ALREADY_FRIENDS
    if store.find_pending_between(db, a, b) is not None:
        return ALREADY_PENDING
    return None


def propose(db: Session, requester_id: int, target_email: str) -> ProposeResult:
    """
    Создать ожидающую заявку от requester_id к аккаунту с target_email.

    Проверки, побеждает первая: неизвестный email, сам себе, уже друзья,
    есть ожидающая заявка для пары в любую сторону. Отказы возвращаются, а не
    бросаются. Конкурентный дубль падает на uq_friend_request_pair и
    отдаётся как already_pending. Бросаем только неожиданные ошибки БД
    (StoreFailure).
    """
    try:
        target_id = resolve_account_id(db, target_email)
        if target_id is None:
            log.debug("Friend request from %s refused: unknown email", requester_id)
            return ProposeResult.rejected(USER_NOT_FOUND)

        if target_id == requester_id:
            return ProposeResult.rejected(SELF_REQUEST)

        refusal = _refusal_for_pair(db, requester_id, target_id)
        if refusal:
            log.debug("Friend request %s -> %s refused: %s", requester_id, target_id, refusal)
            return ProposeResult.rejected(refusal)

        try:
            req = store.insert_request(db, requester_id, target_id)
        except IntegrityError:
            # проиграли гонку другой заявке для той же пары
            db.rollback()
            refusal = _refusal_for_pair(db, requester_id, target_id)
            if refusal:
                log.info("Concurrent friend request %s -> %s mapped to %s", requester_id, target_id, refusal)
                return ProposeResult.rejected(refusal)
            raise

        # прежнюю заявку пары могли принять между проверками и вставкой
        if store.friendship_exists(db, requester_id, target_id):
            db.rollback()
            log.info("Friend request %s -> %s dropped: pair became friends meanwhile", requester_id, target_id)
            return ProposeResult.rejected(ALREADY_FRIENDS)

        ev = log_event(
            db,
            type=FRIEND_REQUEST_SENT,
            actor_id=requester_id,
            target_user_id=target_id,
            data={"request_id": req.id},
            idempotency_key=f"friend_request_sent:{req.id}",
        )
        request_id = req.id
        payload = event_payload(ev)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("Friend request %s -> %r failed", requester_id, target_email)
        raise StoreFailure("could not create friend request") from e

    log.info("Friend request %s sent: %s -> %s", request_id, requester_id, target_id)
    relay.publish([requester_id, target_id], payload)
    return ProposeResult(success=True, message="friend request sent", request_id=request_id)
