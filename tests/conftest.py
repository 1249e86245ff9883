# tests/conftest.py
import itertools
import os

# must be set before etoh.utils.telegram_dep / etoh.db are imported
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-token")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi import Depends, HTTPException, Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from etoh.db import Base, get_db
from etoh.models.user import User
from etoh.services.notifications import relay
from etoh.utils.telegram_dep import get_current_telegram_user
from etoh.utils.user import normalize_email


@pytest.fixture
def engine(tmp_path):
    # file-backed so several threads can share it
    eng = create_engine(
        f"sqlite:///{tmp_path / 'etoh-test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def clean_relay():
    relay.clear()
    yield
    relay.clear()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(email=None, name=None, **fields):
        n = next(counter)
        user = User(
            telegram_id=100000 + n,
            email=normalize_email(email) if email else None,
            name=name or f"User {n}",
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def client(session_factory, monkeypatch):
    from etoh.main import app
    from etoh.utils import telegram_dep

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _current_user(request: Request, db: Session = Depends(get_db)) -> User:
        raw = request.headers.get("x-test-user")
        user = db.get(User, int(raw)) if raw else None
        if user is None:
            raise HTTPException(status_code=401, detail="initData required")
        return user

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_telegram_user] = _current_user
    # websocket auth opens its own short-lived session
    monkeypatch.setattr(telegram_dep, "SessionLocal", session_factory)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()

