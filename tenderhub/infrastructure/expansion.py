"""Depth-limited reference expansion for tender and bid records.

Depth 0 leaves references as ids. Depth 1 inlines users, tenants and
categories (and the parent tender of a bid). Depth 2 additionally expands the
references of an inlined tender.
"""

from __future__ import annotations

from typing import List

from tenderhub.infrastructure.repositories.directory_repository import DirectoryRepository
from tenderhub.infrastructure.repositories.tender_repository import TenderRepository


MAX_DEPTH = 2


def clamp_depth(depth: int | None) -> int:
    try:
        value = int(depth if depth is not None else 0)
    except (TypeError, ValueError):
        value = 0
    return max(0, min(value, MAX_DEPTH))


def expand_tenders(db, tenders: List[dict], depth: int, directory: DirectoryRepository | None = None) -> List[dict]:
    depth = clamp_depth(depth)
    records = [dict(tender) for tender in tenders]
    if depth == 0 or not records:
        return records

    directory = directory or DirectoryRepository()
    users = directory.users_by_ids(db, {tender["created_by"] for tender in records})
    tenants = directory.tenants_by_ids(db, {tender["tenant"] for tender in records if tender.get("tenant")})
    category_ids = {category_id for tender in records for category_id in tender.get("category") or []}
    categories = directory.categories_by_ids(db, category_ids)

    for tender in records:
        tender["created_by"] = users.get(str(tender["created_by"]), tender["created_by"])
        if tender.get("tenant"):
            tender["tenant"] = tenants.get(str(tender["tenant"]), tender["tenant"])
        tender["category"] = [categories.get(str(value), value) for value in tender.get("category") or []]
    return records


def expand_bids(db, bids: List[dict], depth: int, directory: DirectoryRepository | None = None) -> List[dict]:
    depth = clamp_depth(depth)
    records = [dict(bid) for bid in bids]
    if depth == 0 or not records:
        return records

    directory = directory or DirectoryRepository()
    users = directory.users_by_ids(db, {bid["submitted_by"] for bid in records})
    tenders = TenderRepository().get_many(db, sorted({int(bid["tender"]) for bid in records}))
    expanded = {
        tender["id"]: tender
        for tender in expand_tenders(db, list(tenders.values()), depth - 1, directory)
    }

    for bid in records:
        bid["submitted_by"] = users.get(str(bid["submitted_by"]), bid["submitted_by"])
        bid["tender"] = expanded.get(int(bid["tender"]), bid["tender"])
    return records
