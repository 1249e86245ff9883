# tests/test_transitions.py
import threading

import pytest
from sqlalchemy.exc import OperationalError

from etoh.models.friend_request import FriendRequest, FriendRequestStatus
from etoh.models.friendship import Friendship
from etoh.services import relationship_store
from etoh.services.errors import (
    FriendRequestUnavailable,
    NotAuthorized,
    PairIntegrityError,
    StoreFailure,
)
from etoh.services.friend_requests import propose
from etoh.services.notifications import relay
from etoh.services.transitions import remove, respond

from helpers import assert_symmetric, direction_count, event_types, pending_count


@pytest.fixture
def users(make_user):
    a = make_user("anna@example.com")
    b = make_user("boris@example.com")
    c = make_user("clara@example.com")
    return a.id, b.id, c.id


@pytest.fixture
def pending(db, users):
    a, b, _ = users
    return propose(db, a, "boris@example.com").request_id


def _own_row(db, user_id, friend_id):
    return relationship_store.get_own_friendship(db, user_id, friend_id)


# =========================
# respond
# =========================

def test_accept_creates_pair_and_deletes_request(db, users, pending):
    a, b, _ = users

    outcome = respond(db, pending, b, accept=True)

    assert outcome.status == "accepted"
    assert (outcome.sender_id, outcome.receiver_id) == (a, b)
    assert len(outcome.friendship_ids) == 2
    assert db.get(FriendRequest, pending) is None
    assert direction_count(db, a, b) == 1
    assert direction_count(db, b, a) == 1
    assert event_types(db) == ["friend_request_sent", "friend_request_accepted", "friendship_created"]


def test_reject_deletes_request_without_friendship(db, users, pending):
    a, b, _ = users

    outcome = respond(db, pending, b, accept=False)

    assert outcome.status == "rejected"
    assert outcome.friendship_ids == ()
    assert db.get(FriendRequest, pending) is None
    assert assert_symmetric(db, a, b) == 0
    assert event_types(db)[-1] == "friend_request_rejected"


def test_sender_cannot_respond(db, users, pending):
    a, b, _ = users

    with pytest.raises(FriendRequestUnavailable):
        respond(db, pending, a, accept=True)

    req = db.get(FriendRequest, pending)
    assert req.status == FriendRequestStatus.pending
    assert assert_symmetric(db, a, b) == 0


def test_stranger_cannot_respond(db, users, pending):
    _, _, c = users
    with pytest.raises(FriendRequestUnavailable):
        respond(db, pending, c, accept=False)
    assert db.get(FriendRequest, pending) is not None


def test_unknown_request(db, users):
    _, b, _ = users
    with pytest.raises(FriendRequestUnavailable):
        respond(db, 424242, b, accept=True)


def test_second_respond_sees_resolved(db, users, pending):
    a, b, _ = users
    respond(db, pending, b, accept=True)

    with pytest.raises(FriendRequestUnavailable):
        respond(db, pending, b, accept=True)
    with pytest.raises(FriendRequestUnavailable):
        respond(db, pending, b, accept=False)
    assert assert_symmetric(db, a, b) == 1


def test_concurrent_accepts_have_exactly_one_winner(session_factory, users, pending):
    a, b, _ = users
    workers = 6
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def worker():
        session = session_factory()
        try:
            barrier.wait()
            try:
                respond(session, pending, b, accept=True)
                outcome = "won"
            except FriendRequestUnavailable:
                outcome = "conflict"
            except Exception as e:
                outcome = repr(e)
        finally:
            session.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(results) == ["conflict"] * (workers - 1) + ["won"]

    check = session_factory()
    try:
        assert check.query(Friendship).count() == 2
        assert assert_symmetric(check, a, b) == 1
        assert pending_count(check, a, b) == 0
    finally:
        check.close()


def test_failure_mid_accept_rolls_back_everything(db, users, pending, monkeypatch):
    a, b, _ = users

    def broken_delete(session, request_id):
        raise OperationalError("DELETE FROM friend_requests", {}, Exception("connection lost"))

    monkeypatch.setattr(relationship_store, "delete_request", broken_delete)

    with pytest.raises(StoreFailure):
        respond(db, pending, b, accept=True)

    assert assert_symmetric(db, a, b) == 0
    req = db.get(FriendRequest, pending)
    assert req.status == FriendRequestStatus.pending

    monkeypatch.undo()
    assert respond(db, pending, b, accept=True).status == "accepted"
    assert assert_symmetric(db, a, b) == 1


def test_half_written_pair_is_detected_and_rolled_back(db, users, pending, monkeypatch):
    a, b, _ = users

    def one_direction_only(session, x, y):
        row = Friendship(user_id=x, friend_id=y)
        session.add(row)
        session.flush()
        return row, row

    monkeypatch.setattr(relationship_store, "insert_friendship_pair", one_direction_only)

    with pytest.raises(PairIntegrityError):
        respond(db, pending, b, accept=True)

    assert direction_count(db, a, b) == 0
    assert direction_count(db, b, a) == 0
    assert db.get(FriendRequest, pending).status == FriendRequestStatus.pending


def test_accept_notifies_both_parties(db, users, pending):
    a, b, c = users
    seen = {a: [], b: [], c: []}
    for uid in seen:
        relay.subscribe(uid, seen[uid].append)

    respond(db, pending, b, accept=True)

    expected = ["friend_request_accepted", "friendship_created"]
    assert [e["type"] for e in seen[a]] == expected
    assert [e["type"] for e in seen[b]] == expected
    assert seen[c] == []


def test_lost_race_publishes_nothing(db, users, pending):
    _, b, _ = users
    respond(db, pending, b, accept=False)
    seen = []
    relay.subscribe(b, seen.append)

    with pytest.raises(FriendRequestUnavailable):
        respond(db, pending, b, accept=True)
    assert seen == []


# =========================
# remove
# =========================

@pytest.fixture
def friends(db, users, pending):
    a, b, _ = users
    respond(db, pending, b, accept=True)
    return a, b


def test_remove_deletes_both_directions(db, friends):
    a, b = friends
    row_id = _own_row(db, a, b).id

    outcome = remove(db, a, row_id)

    assert outcome.removed is True
    assert outcome.friend_id == b
    assert direction_count(db, a, b) == 0
    assert direction_count(db, b, a) == 0
    assert event_types(db)[-1] == "friendship_removed"


def test_remove_is_idempotent(db, friends):
    a, b = friends
    row_id = _own_row(db, a, b).id

    first = remove(db, a, row_id)
    second = remove(db, a, row_id)

    assert first.removed is True
    assert second.removed is False
    assert assert_symmetric(db, a, b) == 0
    assert event_types(db).count("friendship_removed") == 1


def test_either_party_can_remove_through_own_row(db, friends):
    a, b = friends
    row_id = _own_row(db, b, a).id

    assert remove(db, b, row_id).removed is True
    assert assert_symmetric(db, a, b) == 0


def test_cannot_remove_through_other_users_row(db, users, friends):
    a, b = friends
    _, _, c = users
    row_id = _own_row(db, a, b).id

    with pytest.raises(NotAuthorized):
        remove(db, b, row_id)
    with pytest.raises(NotAuthorized):
        remove(db, c, row_id)
    assert assert_symmetric(db, a, b) == 1


def test_propose_after_remove_starts_fresh(db, friends):
    a, b = friends
    remove(db, a, _own_row(db, a, b).id)

    result = propose(db, a, "boris@example.com")

    assert result.success is True
    assert pending_count(db, a, b) == 1
    assert assert_symmetric(db, a, b) == 0


def test_refriending_after_remove_logs_new_events(db, friends):
    a, b = friends
    remove(db, a, _own_row(db, a, b).id)
    req_id = propose(db, b, "anna@example.com").request_id

    respond(db, req_id, a, accept=True)

    assert assert_symmetric(db, a, b) == 1
    assert event_types(db).count("friendship_created") == 2
    assert event_types(db).count("friend_request_sent") == 2


def test_accepting_request_for_existing_pair_keeps_one_pair(db, users):
    a, b, _ = users
    ab, ba = relationship_store.insert_friendship_pair(db, a, b)
    pair_ids = {ab.id, ba.id}
    req = relationship_store.insert_request(db, a, b)
    req_id = req.id
    db.commit()

    outcome = respond(db, req_id, b, accept=True)

    assert outcome.status == "accepted"
    assert set(outcome.friendship_ids) == pair_ids
    assert db.get(FriendRequest, req_id) is None
    assert assert_symmetric(db, a, b) == 1
    assert event_types(db) == ["friend_request_accepted"]
