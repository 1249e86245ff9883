# etoh/routers/friends.py
# HTTP-слой движка дружбы. Мутации идут только через
# etoh.services.friend_requests / etoh.services.transitions.

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List

from etoh.db import get_db
from etoh.models.user import User
from etoh.schemas.friend import (
    FriendOut,
    FriendPictureOut,
    FriendProfileOut,
    FriendRemoveOut,
    FriendRequestCreate,
    FriendRequestOut,
    FriendRequestRespond,
    FriendRequestRespondOut,
    FriendRequestResult,
)
from etoh.schemas.user import ProfileOut
from etoh.services import relationship_store as store
from etoh.services.errors import FriendRequestUnavailable, NotAuthorized, StoreFailure
from etoh.services.friend_requests import propose
from etoh.services.transitions import remove, respond
from etoh.utils.telegram_dep import get_current_telegram_user

router = APIRouter(tags=["Friends"])


# =========================
# ВСПОМОГАТЕЛЬНЫЕ ФУНКЦИИ
# =========================

def _profiles_map(db: Session, user_ids: Iterable[int]) -> Dict[int, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    return {u.id: u for u in db.query(User).filter(User.id.in_(ids)).all()}


def _profile(user: User) -> ProfileOut:
    return ProfileOut.model_validate(user)


def _store_failure() -> HTTPException:
    return HTTPException(500, detail={"code": StoreFailure.code})


def _require_friend(db: Session, current_user: User, friend_id: int) -> User:
    """Должна быть строка (я, friend_id), затем сам аккаунт друга."""
    if store.get_own_friendship(db, current_user.id, friend_id) is None:
        raise HTTPException(403, detail={"code": "not_friends"})
    friend = db.query(User).filter_by(id=friend_id).first()
    if not friend:
        raise HTTPException(404, detail="User not found")
    return friend


# =========================
# ЗАЯВКИ
# =========================

@router.post("/requests", response_model=FriendRequestResult)
def send_friend_request(
    payload: FriendRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Отправить заявку в друзья по email. Ожидаемые отказы — success=False с
    сообщением, а не HTTP-ошибки.
    """
    try:
        result = propose(db, current_user.id, payload.email)
    except StoreFailure:
        raise _store_failure()
    return FriendRequestResult(
        success=result.success,
        message=result.message,
        reason=result.reason,
        request_id=result.request_id,
    )


@router.get("/requests", response_model=List[FriendRequestOut])
def get_friend_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Ожидающие заявки текущего пользователя (входящие и исходящие), новые сверху."""
    requests = store.list_pending_for_user(db, current_user.id)
    profiles = _profiles_map(db, [r.sender_id for r in requests] + [r.receiver_id for r in requests])

    result: List[FriendRequestOut] = []
    for r in requests:
        sender = profiles.get(r.sender_id)
        receiver = profiles.get(r.receiver_id)
        result.append(
            FriendRequestOut(
                id=r.id,
                sender_id=r.sender_id,
                receiver_id=r.receiver_id,
                status=r.status.value,
                created_at=r.created_at,
                sender_profile=_profile(sender) if sender else None,
                receiver_profile=_profile(receiver) if receiver else None,
            )
        )
    return result


@router.post("/requests/{request_id}/respond", response_model=FriendRequestRespondOut)
def respond_to_friend_request(
    request_id: int,
    payload: FriendRequestRespond,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """
    Принять или отклонить заявку, адресованную текущему пользователю. 404, если
    заявки нет, она не наша или уже разрешена.
    """
    try:
        outcome = respond(db, request_id, current_user.id, payload.accept)
    except FriendRequestUnavailable:
        raise HTTPException(404, detail={"code": FriendRequestUnavailable.code})
    except StoreFailure:
        raise _store_failure()
    return FriendRequestRespondOut(
        success=True,
        status=outcome.status,
        friendship_ids=list(outcome.friendship_ids),
    )


# =========================
# ДРУЗЬЯ
# =========================

@router.get("/", response_model=List[FriendOut])
def get_friends(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Друзья текущего пользователя; каждая запись — его собственная строка."""
    links = store.list_friendships_for_user(db, current_user.id)
    profiles = _profiles_map(db, [l.friend_id for l in links])

    result: List[FriendOut] = []
    for link in links:
        friend = profiles.get(link.friend_id)
        if not friend:
            continue
        result.append(
            FriendOut(
                id=link.id,
                user_id=link.user_id,
                friend_id=link.friend_id,
                created_at=link.created_at,
                friend_profile=_profile(friend),
            )
        )
    return result


@router.delete("/{friendship_id}", response_model=FriendRemoveOut)
def remove_friend(
    friendship_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Удалить дружбу (оба направления). Удаление отсутствующей — успех."""
    try:
        outcome = remove(db, current_user.id, friendship_id)
    except NotAuthorized:
        raise HTTPException(403, detail={"code": NotAuthorized.code})
    except StoreFailure:
        raise _store_failure()
    return FriendRemoveOut(success=True, removed=outcome.removed)


@router.get("/{friend_id}/profile", response_model=FriendProfileOut)
def get_friend_profile(
    friend_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    """Профиль друга вместе с текстом мотивации. Только для друзей."""
    friend = _require_friend(db, current_user, friend_id)
    return FriendProfileOut.model_validate(friend)


@router.get("/{friend_id}/profile-picture", response_model=FriendPictureOut)
def get_friend_profile_picture(
    friend_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_telegram_user),
):
    friend = _require_friend(db, current_user, friend_id)
    return FriendPictureOut(photo_url=friend.photo_url)
