from __future__ import annotations

from typing import Dict, Iterable, List

from tenderhub.domain.contracts import Caller
from tenderhub.infrastructure.filters import compile_predicate, in_
from tenderhub.infrastructure.repositories.base import BaseRepository
from tenderhub.policies import normalize_roles


class DirectoryRepository(BaseRepository):
    """Read access to users, tenants, categories and products."""

    def load_caller(self, db, user_id: str) -> Caller | None:
        user = db.execute(
            "SELECT id, email, username FROM users WHERE id = ? LIMIT 1",
            (user_id,),
        ).fetchone()
        if not user:
            return None
        role_rows = db.execute(
            "SELECT role FROM user_roles WHERE user_id = ? ORDER BY role",
            (user_id,),
        ).fetchall()
        tenant_rows = db.execute(
            """
            SELECT tenant_id
            FROM user_tenants
            WHERE user_id = ?
            ORDER BY position, tenant_id
            """,
            (user_id,),
        ).fetchall()
        return Caller(
            id=str(user["id"]),
            roles=normalize_roles(row["role"] for row in role_rows),
            tenants=tuple(str(row["tenant_id"]) for row in tenant_rows),
            email=user["email"],
            username=user["username"],
        )

    def tenant_exists(self, db, tenant_id: str) -> bool:
        row = db.execute("SELECT 1 AS found FROM tenants WHERE id = ? LIMIT 1", (tenant_id,)).fetchone()
        return row is not None

    def tenant_ids_for_categories(self, db, category_ids: Iterable[str]) -> List[str]:
        clause, params = compile_predicate(in_("category_id", category_ids), ("category_id",))
        rows = db.execute(
            f"SELECT DISTINCT tenant_id FROM products WHERE {clause} ORDER BY tenant_id",
            params,
        ).fetchall()
        return [str(row["tenant_id"]) for row in rows if row["tenant_id"]]

    def user_ids_for_tenants(
        self,
        db,
        tenant_ids: Iterable[str],
        *,
        exclude_user_ids: Iterable[str] = (),
        limit: int,
    ) -> List[str]:
        clause, params = compile_predicate(in_("tenant_id", tenant_ids), ("tenant_id",))
        exclude_clause, exclude_params = _exclusion("user_id", exclude_user_ids)
        rows = db.execute(
            f"""
            SELECT DISTINCT user_id
            FROM user_tenants
            WHERE {clause}{exclude_clause}
            ORDER BY user_id
            LIMIT ?
            """,
            [*params, *exclude_params, int(limit)],
        ).fetchall()
        return [str(row["user_id"]) for row in rows]

    def user_ids_with_role(
        self,
        db,
        role: str,
        *,
        exclude_user_ids: Iterable[str] = (),
        limit: int,
    ) -> List[str]:
        exclude_clause, exclude_params = _exclusion("user_id", exclude_user_ids)
        rows = db.execute(
            f"""
            SELECT DISTINCT user_id
            FROM user_roles
            WHERE role = ?{exclude_clause}
            ORDER BY user_id
            LIMIT ?
            """,
            [role, *exclude_params, int(limit)],
        ).fetchall()
        return [str(row["user_id"]) for row in rows]

    def users_by_ids(self, db, user_ids: Iterable[str]) -> Dict[str, dict]:
        return self._by_ids(db, "users", "id, email, username", user_ids)

    def tenants_by_ids(self, db, tenant_ids: Iterable[str]) -> Dict[str, dict]:
        return self._by_ids(db, "tenants", "id, name, slug", tenant_ids)

    def categories_by_ids(self, db, category_ids: Iterable[str]) -> Dict[str, dict]:
        return self._by_ids(db, "categories", "id, name, slug, parent_id", category_ids)

    def _by_ids(self, db, table: str, columns: str, ids: Iterable[str]) -> Dict[str, dict]:
        wanted = [str(value) for value in ids if value]
        if not wanted:
            return {}
        clause, params = compile_predicate(in_("id", wanted), ("id",))
        rows = db.execute(f"SELECT {columns} FROM {table} WHERE {clause}", params).fetchall()
        return {str(row["id"]): dict(row) for row in rows}


def _exclusion(column: str, values: Iterable[str]) -> tuple[str, list]:
    excluded = [str(value) for value in dict.fromkeys(values) if value]
    if not excluded:
        return "", []
    placeholders = ", ".join("?" for _ in excluded)
    return f" AND {column} NOT IN ({placeholders})", excluded
