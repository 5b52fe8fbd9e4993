from __future__ import annotations

from typing import Any, Dict, List

from tenderhub.infrastructure.filters import Predicate
from tenderhub.infrastructure.repositories.base import BaseRepository


class BidRepository(BaseRepository):
    table = "tender_bids"
    filter_fields = ("id", "tender_id", "submitted_by", "status")

    def to_record(self, row: Dict[str, Any] | None) -> dict | None:
        if not row:
            return None
        row = dict(row)
        amount = row.get("amount")
        return {
            "id": int(row["id"]),
            "tender": int(row["tender_id"]),
            "submitted_by": row["submitted_by"],
            "status": row["status"],
            "message": self.load_json(row.get("message")),
            "documents": list(self.load_json(row.get("documents"), []) or []),
            "amount": float(amount) if amount is not None else None,
            "currency": row["currency"],
            "valid_until": row.get("valid_until"),
            "created_at": self.timestamp(row.get("created_at")),
            "updated_at": self.timestamp(row.get("updated_at")),
        }

    def create(
        self,
        db,
        *,
        tender_id: int,
        submitted_by: str,
        status: str,
        message: Any,
        documents: List[Any],
        amount: float | None,
        currency: str,
        valid_until: str | None,
        now: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO tender_bids (
                tender_id, submitted_by, status, message, documents,
                amount, currency, valid_until, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                tender_id,
                submitted_by,
                status,
                self.dump_json(message),
                self.dump_json(list(documents)),
                amount,
                currency,
                valid_until,
                now,
                now,
            ),
        )
        return self.inserted_id(cursor)

    def get_by_id(self, db, bid_id: int) -> dict | None:
        row = db.execute("SELECT * FROM tender_bids WHERE id = ? LIMIT 1", (bid_id,)).fetchone()
        return self.to_record(row)

    def exists_for(self, db, *, tender_id: int, submitted_by: str) -> bool:
        row = db.execute(
            """
            SELECT 1 AS found
            FROM tender_bids
            WHERE tender_id = ? AND submitted_by = ?
            LIMIT 1
            """,
            (tender_id, submitted_by),
        ).fetchone()
        return row is not None

    def find(self, db, predicate: Predicate, *, limit: int, page: int) -> tuple[list[dict], int]:
        rows, total = self.paginate(db, predicate, limit=limit, page=page)
        return [self.to_record(row) for row in rows], total

    def update_status(self, db, bid_id: int, *, from_status: str, to_status: str, now: str) -> bool:
        cursor = db.execute(
            """
            UPDATE tender_bids
            SET status = ?, updated_at = ?
            WHERE id = ? AND status = ?
            """,
            (to_status, now, bid_id, from_status),
        )
        return int(cursor.rowcount or 0) == 1

    def bidder_ids(self, db, tender_id: int) -> list[str]:
        rows = db.execute(
            """
            SELECT DISTINCT submitted_by
            FROM tender_bids
            WHERE tender_id = ?
            ORDER BY submitted_by
            """,
            (tender_id,),
        ).fetchall()
        return [str(row["submitted_by"]) for row in rows]
