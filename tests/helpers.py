# tests/helpers.py
import hashlib
import hmac
import json
import time
from urllib.parse import urlencode

from sqlalchemy import func
from sqlalchemy.orm import Session
from telegram_webapp_auth.auth import generate_secret_key

from etoh.models.event import Event
from etoh.models.friend_request import FriendRequest
from etoh.models.friendship import Friendship


def as_user(user_id: int) -> dict:
    return {"x-test-user": str(user_id)}


def signed_init_data(bot_token: str, telegram_id: int, first_name: str = "Test") -> str:
    """initData signed with the bot token the way Telegram signs it."""
    fields = {
        "auth_date": str(int(time.time())),
        "query_id": "AAHtest",
        "user": json.dumps({"id": telegram_id, "first_name": first_name}, separators=(",", ":")),
    }
    check_string = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret = generate_secret_key(bot_token)
    fields["hash"] = hmac.new(secret, check_string.encode(), hashlib.sha256).hexdigest()
    return urlencode(fields)


def pending_count(db: Session, a: int, b: int) -> int:
    umin, umax = min(a, b), max(a, b)
    return db.query(func.count(FriendRequest.id)).filter(
        FriendRequest.user_min == umin, FriendRequest.user_max == umax
    ).scalar()


def direction_count(db: Session, a: int, b: int) -> int:
    return db.query(func.count(Friendship.id)).filter(
        Friendship.user_id == a, Friendship.friend_id == b
    ).scalar()


def assert_symmetric(db: Session, a: int, b: int) -> int:
    ab, ba = direction_count(db, a, b), direction_count(db, b, a)
    assert ab == ba, f"asymmetric pair {a}/{b}: {ab}/{ba}"
    return ab


def event_types(db: Session) -> list:
    return [e.type for e in db.query(Event).order_by(Event.id).all()]
