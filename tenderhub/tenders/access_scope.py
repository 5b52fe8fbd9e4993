from __future__ import annotations

from typing import Any, Mapping

from tenderhub.domain.contracts import Caller
from tenderhub.errors import NotFoundError
from tenderhub.infrastructure.filters import MATCH_ALL, Predicate, and_, equals, or_
from tenderhub.policies import TENDER_READ, is_privileged, require


def tender_visibility(caller: Caller, *, mine: bool = False) -> Predicate:
    if mine:
        return equals("created_by", caller.id)
    if is_privileged(caller):
        return MATCH_ALL
    return or_(equals("status", "open"), equals("created_by", caller.id))


def tender_list_scope(
    caller: Caller,
    *,
    mine: bool = False,
    status: str | None = None,
    tender_type: str | None = None,
    tenant_id: str | None = None,
) -> Predicate:
    """Visibility first, then the optional narrowing filters."""
    return and_(
        tender_visibility(caller, mine=mine),
        equals("status", status) if status else None,
        equals("type", tender_type) if tender_type else None,
        equals("tenant_id", tenant_id) if tenant_id else None,
    )


def bids_for_tender_scope(tender_id: int, *, status: str | None = None) -> Predicate:
    return and_(equals("tender_id", tender_id), equals("status", status) if status else None)


def my_bids_scope(caller: Caller) -> Predicate:
    return equals("submitted_by", caller.id)


def require_tender(tender: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if tender is None:
        raise NotFoundError(code="tender_not_found", message_key="tender_not_found", http_status=404)
    return tender


def ensure_tender_visible(caller: Caller, tender: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Single-document read: NotFound when missing, Forbidden when hidden."""
    tender = require_tender(tender)
    require(caller, tender, TENDER_READ)
    return tender
