from __future__ import annotations

from typing import Dict, List, Tuple


TENDER_TYPES: Tuple[str, ...] = ("rfq", "rfp")
CONTACT_PREFERENCES: Tuple[str, ...] = ("email", "phone", "chat")
TENDER_STATUSES: Tuple[str, ...] = ("draft", "open", "closed", "cancelled")
BID_STATUSES: Tuple[str, ...] = ("submitted", "shortlisted", "rejected", "withdrawn")

INITIAL_TENDER_STATUS = "draft"
INITIAL_BID_STATUS = "submitted"

# Statuses reachable through updateStatus; draft is only ever the initial state.
TENDER_TARGET_STATUSES: Tuple[str, ...] = ("open", "closed", "cancelled")
# Statuses the tender owner may assign; withdrawn belongs to the bidder.
OWNER_BID_STATUSES: Tuple[str, ...] = ("shortlisted", "rejected")

EDITABLE_TENDER_STATUSES: Tuple[str, ...] = ("draft", "open")
BIDDABLE_TENDER_STATUSES: Tuple[str, ...] = ("open",)

TENDER_TRANSITIONS: Dict[str, List[str]] = {
    "draft": ["open", "cancelled"],
    "open": ["closed", "cancelled"],
    "closed": [],
    "cancelled": [],
}

BID_TRANSITIONS: Dict[str, List[str]] = {
    "submitted": ["shortlisted", "rejected", "withdrawn"],
    "shortlisted": ["rejected", "withdrawn"],
    "rejected": [],
    "withdrawn": [],
}


def allowed_tender_transitions(status: str | None) -> List[str]:
    return list(TENDER_TRANSITIONS.get(str(status or ""), []))


def can_transition_tender(current: str | None, requested: str | None) -> bool:
    if not requested:
        return False
    return requested in allowed_tender_transitions(current)


def allowed_bid_transitions(status: str | None) -> List[str]:
    return list(BID_TRANSITIONS.get(str(status or ""), []))


def can_transition_bid(current: str | None, requested: str | None) -> bool:
    if not requested:
        return False
    return requested in allowed_bid_transitions(current)


def is_terminal_tender_status(status: str | None) -> bool:
    return str(status or "") in TENDER_TRANSITIONS and not allowed_tender_transitions(status)


def is_tender_editable(status: str | None) -> bool:
    return str(status or "") in EDITABLE_TENDER_STATUSES


def accepts_bids(status: str | None) -> bool:
    return str(status or "") in BIDDABLE_TENDER_STATUSES


def flow_meta(status: str | None) -> Dict[str, object]:
    return {
        "status": status,
        "allowed_transitions": allowed_tender_transitions(status),
        "editable": is_tender_editable(status),
        "accepts_bids": accepts_bids(status),
        "terminal": is_terminal_tender_status(status),
    }


def frontend_bundle() -> Dict[str, object]:
    return {
        "tender_transitions": TENDER_TRANSITIONS,
        "bid_transitions": BID_TRANSITIONS,
        "editable_statuses": list(EDITABLE_TENDER_STATUSES),
    }
