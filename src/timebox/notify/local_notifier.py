# src/timebox/notify/local_notifier.py

from __future__ import annotations

"""
In-process notifier.

Keeps scheduled notifications in memory and hands due ones to a delivery
callback from a polling loop. Nothing survives a restart: on startup the
expiration sweeper is the source of truth, a missed reminder is acceptable.
"""

import asyncio
import heapq
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..core.ports import NotificationPayload

logger = logging.getLogger(__name__)

DeliverFunc = Callable[[NotificationPayload], Awaitable[None]]


@dataclass(order=True, slots=True)
class _Scheduled:
    when_ts: float
    token: str
    payload: NotificationPayload = field(compare=False)


class LocalNotifier:
    def __init__(self) -> None:
        self._heap: list[_Scheduled] = []
        self._live: set[str] = set()

    def schedule_at(self, when_ts: float, payload: NotificationPayload) -> str:
        token = uuid.uuid4().hex
        heapq.heappush(self._heap, _Scheduled(when_ts=float(when_ts), token=token, payload=payload))
        self._live.add(token)
        logger.debug(
            "Notification scheduled token=%s task_id=%s kind=%s at=%s",
            token,
            payload.task_id,
            payload.kind,
            when_ts,
        )
        return token

    def cancel(self, token: str) -> None:
        # Lazy removal: the heap entry is dropped when it surfaces.
        if token in self._live:
            self._live.discard(token)
            logger.debug("Notification cancelled token=%s", token)

    def pending_count(self) -> int:
        return len(self._live)

    def pop_due(self, now_ts: float | None = None) -> list[NotificationPayload]:
        if now_ts is None:
            now_ts = time.time()
        due: list[NotificationPayload] = []
        while self._heap and self._heap[0].when_ts <= now_ts:
            item = heapq.heappop(self._heap)
            if item.token not in self._live:
                continue
            self._live.discard(item.token)
            due.append(item.payload)
        return due


async def run_notification_dispatcher(
        notifier: LocalNotifier,
        deliver: DeliverFunc,
        *,
        interval_seconds: float = 15.0,
) -> None:
    """
    Every interval_seconds hand all due notifications to deliver().

    A failed delivery is logged and dropped (notifications are fire-and-forget).
    To stop the dispatcher, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        for payload in notifier.pop_due():
            try:
                await deliver(payload)
            except Exception:
                logger.exception(
                    "deliver failed task_id=%s kind=%s",
                    payload.task_id,
                    payload.kind,
                )
        await asyncio.sleep(sleep_s)
