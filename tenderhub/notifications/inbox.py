from __future__ import annotations

from typing import Dict, Iterable

from tenderhub.domain.contracts import Caller, Page
from tenderhub.errors import NotFoundError
from tenderhub.infrastructure.repositories import NotificationRepository
from tenderhub.policies import NOTIFICATION_READ, require


NOTIFICATION_TYPES = (
    "payment",
    "order",
    "message",
    "product",
    "transaction",
    "system",
    "engagement",
    "promotion",
    "tender",
)


class NotificationInbox:
    def __init__(self, repository: NotificationRepository | None = None) -> None:
        self.repository = repository or NotificationRepository()

    def list(
        self,
        db,
        caller: Caller,
        *,
        limit: int,
        page: int,
        notification_type: str | None = None,
        unread_only: bool = False,
    ) -> Page:
        docs, total = self.repository.find_for_user(
            db,
            caller.id,
            notification_type=notification_type,
            unread_only=unread_only,
            limit=limit,
            page=page,
        )
        return Page(docs=docs, total_docs=total, limit=limit, page=page)

    def counts(self, db, caller: Caller) -> Dict[str, int]:
        return {
            "unread": self.repository.count_for_user(db, caller.id, flag="read"),
            "unseen": self.repository.count_for_user(db, caller.id, flag="seen"),
        }

    def mark_as_read(self, db, caller: Caller, notification_id: int) -> dict:
        notification = self.repository.get_by_id(db, notification_id)
        if notification is None:
            raise NotFoundError(code="notification_not_found", message_key="notification_not_found", http_status=404)
        require(caller, notification, NOTIFICATION_READ)
        with db.transaction():
            self.repository.mark_read(db, notification["id"])
        return self.repository.get_by_id(db, notification["id"])

    def mark_as_seen(self, db, caller: Caller, notification_ids: Iterable[int] | None = None) -> int:
        """Marks the caller's unseen notifications (all of them, or only ``notification_ids``)."""
        with db.transaction():
            return self.repository.mark_seen(
                db,
                caller.id,
                list(notification_ids) if notification_ids is not None else None,
            )
