from __future__ import annotations

from typing import Any, Dict, Iterable

from tenderhub.infrastructure.filters import and_, equals, in_
from tenderhub.infrastructure.repositories.base import BaseRepository


class NotificationRepository(BaseRepository):
    table = "notifications"
    filter_fields = ("id", "user_id", "type", "read", "seen")

    def to_record(self, row: Dict[str, Any] | None) -> dict | None:
        if not row:
            return None
        row = dict(row)
        return {
            "id": int(row["id"]),
            "user_id": row["user_id"],
            "type": row["type"],
            "title": row["title"],
            "message": row["message"],
            "icon": row.get("icon"),
            "url": row.get("url"),
            "priority": row["priority"],
            "data": self.load_json(row.get("data"), {}) or {},
            "seen": bool(row.get("seen")),
            "read": bool(row.get("read")),
            "sent_via_push": bool(row.get("sent_via_push")),
            "expires_at": self.timestamp(row.get("expires_at")),
            "created_at": self.timestamp(row.get("created_at")),
        }

    def create(
        self,
        db,
        *,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        icon: str | None,
        url: str | None,
        priority: str,
        data: Dict[str, Any],
        expires_at: str | None,
        now: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO notifications (
                user_id, type, title, message, icon, url, priority, data,
                seen, read, sent_via_push, expires_at, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                user_id,
                notification_type,
                title,
                message,
                icon,
                url,
                priority,
                self.dump_json(data or {}),
                False,
                False,
                False,
                expires_at,
                now,
            ),
        )
        return self.inserted_id(cursor)

    def mark_sent_via_push(self, db, notification_id: int) -> None:
        db.execute("UPDATE notifications SET sent_via_push = ? WHERE id = ?", (True, notification_id))

    def get_by_id(self, db, notification_id: int) -> dict | None:
        row = db.execute("SELECT * FROM notifications WHERE id = ? LIMIT 1", (notification_id,)).fetchone()
        return self.to_record(row)

    def find_for_user(
        self,
        db,
        user_id: str,
        *,
        notification_type: str | None,
        unread_only: bool,
        limit: int,
        page: int,
    ) -> tuple[list[dict], int]:
        predicate = and_(
            equals("user_id", user_id),
            equals("type", notification_type) if notification_type else None,
            equals("read", False) if unread_only else None,
        )
        rows, total = self.paginate(db, predicate, limit=limit, page=page)
        return [self.to_record(row) for row in rows], total

    def count_for_user(self, db, user_id: str, *, flag: str) -> int:
        return self.count(db, and_(equals("user_id", user_id), equals(flag, False)))

    def mark_read(self, db, notification_id: int) -> None:
        db.execute(
            "UPDATE notifications SET read = ?, seen = ? WHERE id = ?",
            (True, True, notification_id),
        )

    def mark_seen(self, db, user_id: str, notification_ids: Iterable[int] | None = None) -> int:
        predicate = and_(
            equals("user_id", user_id),
            equals("seen", False),
            in_("id", notification_ids) if notification_ids is not None else None,
        )
        clause, params = self.where(predicate)
        cursor = db.execute(f"UPDATE notifications SET seen = ? WHERE {clause}", [True, *params])
        return int(cursor.rowcount or 0)
