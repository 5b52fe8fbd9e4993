from __future__ import annotations

from typing import Any, Dict, List

from tenderhub.infrastructure.filters import Predicate
from tenderhub.infrastructure.repositories.base import BaseRepository


_UPDATABLE_COLUMNS = {
    "title",
    "description",
    "type",
    "category_ids",
    "response_deadline",
    "contact_preference",
    "documents",
}
_JSON_COLUMNS = {"description", "category_ids", "documents"}


class TenderRepository(BaseRepository):
    table = "tenders"
    filter_fields = ("id", "tender_number", "status", "type", "tenant_id", "created_by")

    def to_record(self, row: Dict[str, Any] | None) -> dict | None:
        if not row:
            return None
        row = dict(row)
        return {
            "id": int(row["id"]),
            "tender_number": row["tender_number"],
            "title": row["title"],
            "description": self.load_json(row.get("description")),
            "type": row["type"],
            "status": row["status"],
            "category": list(self.load_json(row.get("category_ids"), []) or []),
            "response_deadline": self.timestamp(row.get("response_deadline")),
            "contact_preference": row["contact_preference"],
            "bid_count": int(row.get("bid_count") or 0),
            "documents": list(self.load_json(row.get("documents"), []) or []),
            "tenant": row.get("tenant_id"),
            "created_by": row["created_by"],
            "created_at": self.timestamp(row.get("created_at")),
            "updated_at": self.timestamp(row.get("updated_at")),
        }

    def create(
        self,
        db,
        *,
        tender_number: str,
        title: str,
        description: Any,
        tender_type: str,
        status: str,
        category_ids: List[str],
        response_deadline: str | None,
        contact_preference: str,
        documents: List[Any],
        tenant_id: str | None,
        created_by: str,
        now: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO tenders (
                tender_number, title, description, type, status, category_ids,
                response_deadline, contact_preference, bid_count, documents,
                tenant_id, created_by, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                tender_number,
                title,
                self.dump_json(description),
                tender_type,
                status,
                self.dump_json(list(category_ids)),
                response_deadline,
                contact_preference,
                self.dump_json(list(documents)),
                tenant_id,
                created_by,
                now,
                now,
            ),
        )
        return self.inserted_id(cursor)

    def get_by_id(self, db, tender_id: int) -> dict | None:
        row = db.execute("SELECT * FROM tenders WHERE id = ? LIMIT 1", (tender_id,)).fetchone()
        return self.to_record(row)

    def tender_number_exists(self, db, tender_number: str) -> bool:
        row = db.execute(
            "SELECT 1 AS found FROM tenders WHERE tender_number = ? LIMIT 1",
            (tender_number,),
        ).fetchone()
        return row is not None

    def find(self, db, predicate: Predicate, *, limit: int, page: int) -> tuple[list[dict], int]:
        rows, total = self.paginate(db, predicate, limit=limit, page=page)
        return [self.to_record(row) for row in rows], total

    def update_fields(self, db, tender_id: int, changes: Dict[str, Any], *, now: str) -> None:
        assignments = []
        params: List[Any] = []
        for column, value in changes.items():
            if column not in _UPDATABLE_COLUMNS:
                raise ValueError(f"column not updatable: {column}")
            assignments.append(f"{column} = ?")
            params.append(self.dump_json(value) if column in _JSON_COLUMNS else value)
        if not assignments:
            return
        assignments.append("updated_at = ?")
        params.extend([now, tender_id])
        db.execute(f"UPDATE tenders SET {', '.join(assignments)} WHERE id = ?", params)

    def update_status(self, db, tender_id: int, *, from_status: str, to_status: str, now: str) -> bool:
        cursor = db.execute(
            """
            UPDATE tenders
            SET status = ?, updated_at = ?
            WHERE id = ? AND status = ?
            """,
            (to_status, now, tender_id, from_status),
        )
        return int(cursor.rowcount or 0) == 1

    def increment_bid_count(self, db, tender_id: int) -> None:
        db.execute("UPDATE tenders SET bid_count = bid_count + 1 WHERE id = ?", (tender_id,))

    def list_expired_open(self, db, *, now: str, limit: int = 200) -> list[dict]:
        rows = db.execute(
            """
            SELECT *
            FROM tenders
            WHERE status = 'open'
              AND response_deadline IS NOT NULL
              AND response_deadline <= ?
            ORDER BY response_deadline, id
            LIMIT ?
            """,
            (now, int(limit)),
        ).fetchall()
        return [self.to_record(row) for row in rows]

    def recount_bid_counts(self, db) -> list[dict]:
        rows = db.execute(
            """
            SELECT t.id, t.tender_number, t.bid_count, COUNT(b.id) AS actual
            FROM tenders t
            LEFT JOIN tender_bids b ON b.tender_id = t.id
            GROUP BY t.id, t.tender_number, t.bid_count
            HAVING t.bid_count <> COUNT(b.id)
            ORDER BY t.id
            """
        ).fetchall()
        corrections = self.rows_to_dicts(rows)
        for item in corrections:
            db.execute(
                "UPDATE tenders SET bid_count = ? WHERE id = ?",
                (int(item["actual"]), int(item["id"])),
            )
        return corrections

    def get_many(self, db, tender_ids: List[int]) -> Dict[int, dict]:
        if not tender_ids:
            return {}
        placeholders = ", ".join("?" for _ in tender_ids)
        rows = db.execute(f"SELECT * FROM tenders WHERE id IN ({placeholders})", list(tender_ids)).fetchall()
        records = [self.to_record(row) for row in rows]
        return {record["id"]: record for record in records}
