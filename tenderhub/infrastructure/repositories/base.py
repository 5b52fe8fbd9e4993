from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Iterable, List, Tuple

from tenderhub.db import format_timestamp
from tenderhub.infrastructure.filters import Predicate, compile_predicate


class BaseRepository:
    table: str = ""
    filter_fields: Tuple[str, ...] = ()
    default_order: str = "created_at DESC, id DESC"

    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]

    @staticmethod
    def inserted_id(cursor) -> int:
        row = cursor.fetchone()
        return int(row["id"] if isinstance(row, dict) else row[0])

    @staticmethod
    def dump_json(value: Any) -> str | None:
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False)

    @staticmethod
    def load_json(value: Any, default: Any = None) -> Any:
        if value is None or value == "":
            return default
        if not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except ValueError:
            return default

    @staticmethod
    def timestamp(value: Any) -> str | None:
        if isinstance(value, datetime):
            return format_timestamp(value)
        return value

    def where(self, predicate: Predicate) -> Tuple[str, List[Any]]:
        return compile_predicate(predicate, self.filter_fields)

    def count(self, db, predicate: Predicate) -> int:
        clause, params = self.where(predicate)
        row = db.execute(f"SELECT COUNT(*) AS total FROM {self.table} WHERE {clause}", params).fetchone()
        return int(row["total"] if row else 0)

    def paginate(self, db, predicate: Predicate, *, limit: int, page: int) -> Tuple[list[dict], int]:
        total = self.count(db, predicate)
        clause, params = self.where(predicate)
        offset = max(0, (int(page) - 1) * int(limit))
        rows = db.execute(
            f"""
            SELECT *
            FROM {self.table}
            WHERE {clause}
            ORDER BY {self.default_order}
            LIMIT ? OFFSET ?
            """,
            [*params, int(limit), offset],
        ).fetchall()
        return self.rows_to_dicts(rows), total
