# etoh/main.py
# Главная точка входа FastAPI для бэкенда ETOH Tracker.

from __future__ import annotations

import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dotenv import load_dotenv
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from etoh.db import engine  # noqa: E402,F401  инициализация движка/пула

from etoh.routers.auth import router as auth_router  # noqa: E402
from etoh.routers.users import router as users_router  # noqa: E402
from etoh.routers.friends import router as friends_router  # noqa: E402
from etoh.routers.events import router as events_router  # noqa: E402

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8081",
    "http://localhost:19006",
    "http://127.0.0.1:3000",
]


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS")
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return [o.strip() for o in raw.split(",") if o.strip()]


app = FastAPI(
    title="ETOH Tracker Backend",
    description="Backend for ETOH Tracker: Telegram auth, accounts, friend requests and friendships.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router,    prefix="/api/auth",    tags=["Auth"])
app.include_router(users_router,   prefix="/api/users",   tags=["Users"])
app.include_router(friends_router, prefix="/api/friends", tags=["Friends"])
# у роутера событий свой prefix="/events"
app.include_router(events_router,  prefix="/api",         tags=["Events"])

@app.get("/")
def root():
    """Проверка живости."""
    return {"message": "ETOH Tracker backend is running", "docs": "/docs"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("etoh.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
