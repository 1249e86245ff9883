# etoh/services/relationship_store.py
# Хелперы хранения над friend_requests и friendships.
# Ничего не коммитят: транзакцией владеет движок.

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, update
from sqlalchemy.orm import Session

from etoh.models.friend_request import FriendRequest, FriendRequestStatus
from etoh.models.friendship import Friendship


def pair_min_max(a: int, b: int) -> Tuple[int, int]:
    return (a, b) if a < b else (b, a)


def _pair_filter(a: int, b: int):
    return or_(
        and_(Friendship.user_id == a, Friendship.friend_id == b),
        and_(Friendship.user_id == b, Friendship.friend_id == a),
    )


# =========================
# ЗАЯВКИ
# =========================

def find_pending_between(db: Session, a: int, b: int) -> Optional[FriendRequest]:
    """Ожидающая заявка для неупорядоченной пары {a, b}, в любую сторону."""
    umin, umax = pair_min_max(a, b)
    return (
        db.query(FriendRequest)
        .filter(
            FriendRequest.user_min == umin,
            FriendRequest.user_max == umax,
            FriendRequest.status == FriendRequestStatus.pending,
        )
        .first()
    )


def insert_request(db: Session, sender_id: int, receiver_id: int) -> FriendRequest:
    """
    Добавить ожидающую заявку и сделать flush. Дубль для той же пары падает
    здесь с IntegrityError (uq_friend_request_pair).
    """
    umin, umax = pair_min_max(sender_id, receiver_id)
    req = FriendRequest(
        sender_id=sender_id,
        receiver_id=receiver_id,
        user_min=umin,
        user_max=umax,
        status=FriendRequestStatus.pending,
    )
    db.add(req)
    db.flush()
    return req


def claim_request(
    db: Session,
    request_id: int,
    receiver_id: int,
    new_status: FriendRequestStatus,
) -> Optional[FriendRequest]:
    """
    Атомарно перевести ожидающую заявку для receiver_id в new_status.

    Один условный UPDATE по id + status + receiver_id; число затронутых строк
    говорит, выиграл ли этот вызов. Возвращает захваченную строку или None.
    """
    res = db.execute(
        update(FriendRequest)
        .where(
            FriendRequest.id == request_id,
            FriendRequest.status == FriendRequestStatus.pending,
            FriendRequest.receiver_id == receiver_id,
        )
        .values(status=new_status, updated_at=func.now())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        return None
    return db.query(FriendRequest).filter(FriendRequest.id == request_id).populate_existing().first()


def delete_request(db: Session, request_id: int) -> int:
    res = db.execute(
        delete(FriendRequest)
        .where(FriendRequest.id == request_id)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount


def list_pending_for_user(db: Session, user_id: int) -> List[FriendRequest]:
    """Ожидающие заявки, где user_id отправитель или получатель, новые сверху."""
    return (
        db.query(FriendRequest)
        .filter(
            or_(FriendRequest.sender_id == user_id, FriendRequest.receiver_id == user_id),
            FriendRequest.status == FriendRequestStatus.pending,
        )
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
        .all()
    )


# =========================
# ДРУЖБА
# =========================

def friendship_exists(db: Session, a: int, b: int) -> bool:
    return db.query(Friendship.id).filter(_pair_filter(a, b)).first() is not None


def get_friendship(db: Session, friendship_id: int) -> Optional[Friendship]:
    return db.query(Friendship).filter(Friendship.id == friendship_id).first()


def get_own_friendship(db: Session, user_id: int, friend_id: int) -> Optional[Friendship]:
    """Строка (user_id, friend_id), т.е. сторона пары со стороны user_id."""
    return (
        db.query(Friendship)
        .filter(Friendship.user_id == user_id, Friendship.friend_id == friend_id)
        .first()
    )


def insert_friendship_pair(db: Session, a: int, b: int) -> Tuple[Friendship, Friendship]:
    """Добавить оба направления (a, b) и (b, a) одним flush."""
    ab = Friendship(user_id=a, friend_id=b)
    ba = Friendship(user_id=b, friend_id=a)
    db.add_all([ab, ba])
    db.flush()
    return ab, ba


def delete_friendship_pair(db: Session, a: int, b: int) -> int:
    """Удалить оба направления {a, b} одним запросом. Возвращает число удалённых строк."""
    res = db.execute(
        delete(Friendship)
        .where(_pair_filter(a, b))
        .execution_options(synchronize_session=False)
    )
    return res.rowcount


def pair_counts(db: Session, a: int, b: int) -> Tuple[int, int]:
    """Количество строк (a, b) и (b, a)."""
    ab = db.query(func.count(Friendship.id)).filter(
        Friendship.user_id == a, Friendship.friend_id == b
    ).scalar()
    ba = db.query(func.count(Friendship.id)).filter(
        Friendship.user_id == b, Friendship.friend_id == a
    ).scalar()
    return int(ab or 0), int(ba or 0)


def list_friendships_for_user(db: Session, user_id: int) -> List[Friendship]:
    """Собственная сторона каждой пары пользователя, новые сверху."""
    return (
        db.query(Friendship)
        .filter(Friendship.user_id == user_id)
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
        .all()
    )
