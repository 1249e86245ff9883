# etoh/services/transitions.py
"""
Движок переходов: разрешает заявки в друзья и удаляет дружбу.

Каждая мутация идёт одной транзакцией, которая либо коммитится целиком, либо
откатывается, поэтому пара дружбы никогда не видна наполовину созданной или
наполовину удалённой. События пишутся внутри этой транзакции, а в ретранслятор
уходят только после коммита.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from etoh.models.friend_request import FriendRequestStatus
from etoh.services import relationship_store as store
from etoh.services.errors import (
    FriendRequestUnavailable,
    NotAuthorized,
    PairIntegrityError,
    StoreFailure,
)
from etoh.services.events import (
    FRIEND_REQUEST_ACCEPTED,
    FRIEND_REQUEST_REJECTED,
    FRIENDSHIP_CREATED,
    FRIENDSHIP_REMOVED,
    event_payload,
    log_event,
)
from etoh.services.notifications import relay

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RespondOutcome:
    status: str
    request_id: int
    sender_id: int
    receiver_id: int
    friendship_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class RemoveOutcome:
    removed: bool
    friend_id: Optional[int] = None


@dataclass
class _Published:
    user_ids: Tuple[int, int]
    payloads: List[dict] = field(default_factory=list)


def _verify_pair(db: Session, a: int, b: int, expected: int) -> None:
    ab, ba = store.pair_counts(db, a, b)
    if ab != expected or ba != expected:
        raise PairIntegrityError(
            f"friendship pair {a}/{b} has {ab}/{ba} rows, expected {expected}/{expected}"
        )


def _publish(published: _Published) -> None:
    for payload in published.payloads:
        relay.publish(published.user_ids, payload)


def respond(db: Session, request_id: int, responder_id: int, accept: bool) -> RespondOutcome:
    """
    Принять или отклонить ожидающую заявку, адресованную responder_id.

    Захват заявки — условный UPDATE и первая команда транзакции: из любого
    числа конкурентных вызовов для одной заявки выигрывает ровно один,
    остальные получают FriendRequestUnavailable. При accept вставляются обе
    строки дружбы (если пара уже есть, новую не создаём) и заявка удаляется;
    при reject заявка просто удаляется. Ошибка БД откатывает всё (заявка
    остаётся pending) и поднимается как StoreFailure.
    """
    new_status = FriendRequestStatus.accepted if accept else FriendRequestStatus.rejected
    try:
        req = store.claim_request(db, request_id, responder_id, new_status)
        if req is None:
            db.rollback()
            log.debug("Respond to request %s by %s: not claimable", request_id, responder_id)
            raise FriendRequestUnavailable("friend request not found")

        sender_id, receiver_id = req.sender_id, req.receiver_id
        published = _Published(user_ids=(sender_id, receiver_id))
        friendship_ids: Tuple[int, ...] = ()

        if accept:
            # пара могла появиться уже после отправки заявки (принята встречная/прежняя)
            created = not store.friendship_exists(db, sender_id, receiver_id)
            if created:
                store.insert_friendship_pair(db, sender_id, receiver_id)
            store.delete_request(db, request_id)
            _verify_pair(db, sender_id, receiver_id, expected=1)

            ab = store.get_own_friendship(db, sender_id, receiver_id)
            ba = store.get_own_friendship(db, receiver_id, sender_id)
            friendship_ids = (ab.id, ba.id)

            ev = log_event(
                db,
                type=FRIEND_REQUEST_ACCEPTED,
                actor_id=receiver_id,
                target_user_id=sender_id,
                data={"request_id": request_id},
                idempotency_key=f"friend_request_accepted:{request_id}",
            )
            published.payloads.append(event_payload(ev))
            if created:
                ev = log_event(
                    db,
                    type=FRIENDSHIP_CREATED,
                    actor_id=receiver_id,
                    target_user_id=sender_id,
                    data={"friendship_ids": list(friendship_ids)},
                    idempotency_key=f"friendship_created:{ab.id}:{ba.id}",
                )
                published.payloads.append(event_payload(ev))
            else:
                log.info("Request %s accepted for an existing pair %s/%s", request_id, sender_id, receiver_id)
        else:
            store.delete_request(db, request_id)
            ev = log_event(
                db,
                type=FRIEND_REQUEST_REJECTED,
                actor_id=receiver_id,
                target_user_id=sender_id,
                data={"request_id": request_id},
                idempotency_key=f"friend_request_rejected:{request_id}",
            )
            published.payloads.append(event_payload(ev))

        db.commit()
    except FriendRequestUnavailable:
        raise
    except PairIntegrityError:
        db.rollback()
        log.exception("Respond to request %s left an asymmetric pair, rolled back", request_id)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("Respond to request %s by %s failed", request_id, responder_id)
        raise StoreFailure("could not resolve friend request") from e

    log.info("Friend request %s %s by %s", request_id, new_status.value, responder_id)
    _publish(published)
    return RespondOutcome(
        status=new_status.value,
        request_id=request_id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        friendship_ids=friendship_ids,
    )


def remove(db: Session, owner_id: int, friendship_id: int) -> RemoveOutcome:
    """
    Удалить пару дружбы, к которой относится friendship_id.

    Удалять через строку может только её владелец (user_id), встречная строка
    уходит вместе с ней. Несуществующий id — успешный no-op, повторное
    удаление безвредно.
    """
    try:
        row = store.get_friendship(db, friendship_id)
        if row is None:
            db.rollback()
            log.debug("Remove friendship %s by %s: already gone", friendship_id, owner_id)
            return RemoveOutcome(removed=False)
        if row.user_id != owner_id:
            db.rollback()
            raise NotAuthorized("friendship belongs to another user")

        friend_id = row.friend_id
        deleted = store.delete_friendship_pair(db, owner_id, friend_id)
        _verify_pair(db, owner_id, friend_id, expected=0)

        published = _Published(user_ids=(owner_id, friend_id))
        ev = log_event(
            db,
            type=FRIENDSHIP_REMOVED,
            actor_id=owner_id,
            target_user_id=friend_id,
            data={"friendship_id": friendship_id, "rows": deleted},
            idempotency_key=f"friendship_removed:{friendship_id}",
        )
        published.payloads.append(event_payload(ev))
        db.commit()
    except NotAuthorized:
        raise
    except PairIntegrityError:
        db.rollback()
        log.exception("Remove friendship %s left rows behind, rolled back", friendship_id)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("Remove friendship %s by %s failed", friendship_id, owner_id)
        raise StoreFailure("could not remove friendship") from e

    log.info("Friendship %s/%s removed by %s", owner_id, friend_id, owner_id)
    _publish(published)
    return RemoveOutcome(removed=True, friend_id=friend_id)
