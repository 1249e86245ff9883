# etoh/services/notifications.py
"""
Внутрипроцессный ретранслятор уведомлений.

Подписчики регистрируются по user id и получают каждое событие, в котором
участвует этот пользователь. Публикация идёт после коммита мутации и работает
по принципу fire-and-forget: упавший подписчик логируется и пропускается, на
операцию это не влияет. Доставка не гарантирована (рестарт процесса, медленный
потребитель), клиенты догоняют состояние через списки или /api/events.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

log = logging.getLogger(__name__)

Callback = Callable[[Dict[str, Any]], None]

# сколько событий ждёт одного медленного websocket-потребителя
QUEUE_MAXSIZE = 100


class Subscription:
    """Ручка от NotificationRelay.subscribe. unsubscribe() можно звать сколько угодно раз."""

    def __init__(self, relay: "NotificationRelay", user_id: int, callback: Callback):
        self._relay = relay
        self.user_id = user_id
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._relay._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class NotificationRelay:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: Dict[int, List[Subscription]] = {}

    def subscribe(self, user_id: int, callback: Callback) -> Subscription:
        sub = Subscription(self, user_id, callback)
        with self._lock:
            self._subscribers.setdefault(user_id, []).append(sub)
        return sub

    def subscribe_queue(
        self,
        user_id: int,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        maxsize: int = QUEUE_MAXSIZE,
    ) -> "tuple[Subscription, asyncio.Queue]":
        """
        Подписывает asyncio.Queue, живущую на `loop`. Публиковать можно из
        рабочих потоков: события передаются через call_soon_threadsafe.
        Если очередь заполнена, событие отбрасывается с предупреждением в лог.
        """
        loop = loop or asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

        def _put(event: Dict[str, Any]) -> None:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                log.warning("Event queue of user %s is full, dropped %s", user_id, event.get("type"))

        def _deliver(event: Dict[str, Any]) -> None:
            loop.call_soon_threadsafe(_put, event)

        return self.subscribe(user_id, _deliver), queue

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.user_id)
            if not subs:
                return
            self._subscribers[sub.user_id] = [s for s in subs if s is not sub]
            if not self._subscribers[sub.user_id]:
                del self._subscribers[sub.user_id]

    def subscriber_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, []))

    def publish(self, user_ids: Iterable[Optional[int]], event: Dict[str, Any]) -> int:
        """
        Доставляет `event` по одному разу каждой активной подписке указанных
        пользователей. Возвращает число успешных доставок.
        """
        targets: List[Subscription] = []
        seen = set()
        with self._lock:
            for uid in user_ids:
                if uid is None or uid in seen:
                    continue
                seen.add(uid)
                targets.extend(self._subscribers.get(uid, []))

        delivered = 0
        for sub in targets:
            if not sub.active:
                continue
            try:
                sub.callback(event)
                delivered += 1
            except Exception:
                log.exception("Subscriber of user %s failed on event %s", sub.user_id, event.get("type"))
        return delivered

    def clear(self) -> None:
        with self._lock:
            for subs in self._subscribers.values():
                for sub in subs:
                    sub.active = False
            self._subscribers.clear()


relay = NotificationRelay()
