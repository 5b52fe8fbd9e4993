from __future__ import annotations

from typing import Any, Iterable, Mapping, Set, Tuple

from tenderhub.domain.contracts import Caller
from tenderhub.errors import PermissionError as AppPermissionError


VALID_ROLES: Set[str] = {"super-admin", "tenant", "client"}
PRIVILEGED_ROLES: Set[str] = {"super-admin"}

TENDER_READ = "tender:read"
TENDER_UPDATE = "tender:update"
TENDER_UPDATE_STATUS = "tender:update_status"
TENDER_LIST_BIDS = "tender:list_bids"
BID_UPDATE_STATUS = "bid:update_status"
BID_WITHDRAW = "bid:withdraw"
NOTIFICATION_READ = "notification:read"

_OWNER_ACTIONS = {TENDER_UPDATE, TENDER_UPDATE_STATUS, TENDER_LIST_BIDS, BID_UPDATE_STATUS}


def normalize_roles(roles: Iterable[str] | None) -> Tuple[str, ...]:
    normalized = []
    for role in roles or ():
        value = str(role or "").strip().lower()
        if value in VALID_ROLES and value not in normalized:
            normalized.append(value)
    return tuple(normalized)


def is_privileged(caller: Caller | None) -> bool:
    if caller is None:
        return False
    return any(caller.has_role(role) for role in PRIVILEGED_ROLES)


def ref_id(value: Any) -> str:
    """Reference id of a field that may hold an id or an expanded record."""
    if isinstance(value, Mapping):
        value = value.get("id")
    return "" if value is None else str(value)


def is_owner(caller: Caller | None, tender: Mapping[str, Any]) -> bool:
    if caller is None:
        return False
    return ref_id(tender.get("created_by")) == str(caller.id)


def authorize(caller: Caller | None, resource: Mapping[str, Any], action: str) -> bool:
    """Allow/deny for (caller, resource, action).

    Tender actions take the tender record; ``bid:update_status`` takes the
    parent tender since ownership is checked against it; ``bid:withdraw``
    takes the bid; ``notification:read`` takes the notification.
    """
    if caller is None:
        return False

    if action == BID_WITHDRAW:
        return ref_id(resource.get("submitted_by")) == str(caller.id)
    if action == NOTIFICATION_READ:
        return ref_id(resource.get("user_id")) == str(caller.id)

    if is_privileged(caller):
        return True
    if action == TENDER_READ:
        return resource.get("status") == "open" or is_owner(caller, resource)
    if action in _OWNER_ACTIONS:
        return is_owner(caller, resource)
    return False


def require(
    caller: Caller | None,
    resource: Mapping[str, Any],
    action: str,
    *,
    code: str = "permission_denied",
) -> None:
    if authorize(caller, resource, action):
        return
    raise AppPermissionError(
        code=code,
        message_key=code,
        http_status=403,
        critical=False,
        details=f"{action} denied for {getattr(caller, 'id', None)}",
    )
