"""Best-effort delivery of in-app notifications.

A delivery persists a ``notifications`` row and, when a push gateway is
configured, forwards it there. Failures are logged and counted per recipient
and never raised into the operation that triggered them.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List

from flask import Flask, current_app, has_app_context

from tenderhub.db import close_db, format_timestamp, get_db, utc_now
from tenderhub.infrastructure.repositories import NotificationRepository
from tenderhub.notifications.push import PushError, WebhookPushTransport
from tenderhub.observability import (
    bind_request_id,
    current_request_id,
    observe_notification_delivery,
    observe_push_delivery,
)


logger = logging.getLogger("tenderhub.notifications")

DISPATCH_MODES = ("inline", "pool")


@dataclass(frozen=True)
class Notice:
    user_id: str
    title: str
    message: str
    url: str | None = None
    icon: str = "📋"
    type: str = "tender"
    priority: str = "normal"
    data: Dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher:
    def __init__(
        self,
        app: Flask,
        *,
        mode: str = "inline",
        max_workers: int = 4,
        push: WebhookPushTransport | None = None,
        repository: NotificationRepository | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.app = app
        self.mode = mode if mode in DISPATCH_MODES else "inline"
        self.max_workers = max(1, int(max_workers or 1))
        self.push = push
        self.repository = repository or NotificationRepository()
        self.clock = clock
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def notify(self, user_id: str, title: str, message: str, url: str | None = None, **extra: Any) -> None:
        self.dispatch([Notice(user_id=user_id, title=title, message=message, url=url, **extra)])

    def dispatch(self, notices: Iterable[Notice]) -> int:
        """Hand notices off for delivery; returns how many were accepted."""
        request_id = current_request_id(default="n/a")
        accepted = 0
        for notice in notices:
            if not notice.user_id:
                continue
            accepted += 1
            if self.mode == "pool":
                self._submit(notice, request_id)
            else:
                self.deliver(notice, request_id=request_id)
        return accepted

    def deliver(self, notice: Notice, *, request_id: str | None = None) -> bool:
        started = time.perf_counter()
        try:
            with bind_request_id(request_id):
                if has_app_context() and current_app._get_current_object() is self.app:
                    self._deliver(get_db(), notice)
                else:
                    with self.app.app_context():
                        try:
                            self._deliver(get_db(), notice)
                        finally:
                            close_db()
        except Exception:  # noqa: BLE001
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            observe_notification_delivery("failed", elapsed_ms)
            logger.exception(
                "notification_delivery_failed",
                extra={"user_id": notice.user_id, "notification_title": notice.title, "request_id": request_id},
            )
            return False

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        observe_notification_delivery("delivered", elapsed_ms)
        return True

    def _deliver(self, db, notice: Notice) -> None:
        with db.transaction():
            notification_id = self.repository.create(
                db,
                user_id=notice.user_id,
                notification_type=notice.type,
                title=notice.title,
                message=notice.message,
                icon=notice.icon,
                url=notice.url,
                priority=notice.priority,
                data=dict(notice.data),
                expires_at=None,
                now=format_timestamp(self.clock()),
            )
        if self.push is None:
            return

        try:
            self.push.send(
                {
                    "notification_id": notification_id,
                    "user_id": notice.user_id,
                    "title": notice.title,
                    "body": notice.message,
                    "url": notice.url,
                    "icon": notice.icon,
                    "priority": notice.priority,
                    "data": dict(notice.data),
                }
            )
        except PushError as exc:
            observe_push_delivery("failed")
            logger.warning(
                "push_delivery_failed",
                extra={"user_id": notice.user_id, "notification_id": notification_id, "details": str(exc)},
            )
            return

        with db.transaction():
            self.repository.mark_sent_via_push(db, notification_id)
        observe_push_delivery("delivered")

    def _submit(self, notice: Notice, request_id: str) -> None:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="notification-dispatch",
                )
            future = self._executor.submit(self.deliver, notice, request_id=request_id)
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for queued deliveries; True when none are left pending."""
        with self._lock:
            pending: List[Future] = list(self._pending)
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait_for_pending)

