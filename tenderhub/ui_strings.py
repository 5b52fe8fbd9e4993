from __future__ import annotations

from typing import Dict, List

from tenderhub.tenders.flow_policy import frontend_bundle as flow_frontend_bundle


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "TenderHub",
    "tender": "Tender",
    "bid": "Bid",
    "rfq": "Request for Quotation",
    "rfp": "Request for Proposal",
    "tenant": "Store",
    "notification": "Notification",
}


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "tender": [
        {"key": "draft", "label": "Draft", "description": "Tender being prepared, not visible to vendors."},
        {"key": "open", "label": "Open", "description": "Tender published and accepting bids."},
        {"key": "closed", "label": "Closed", "description": "Bidding window finished."},
        {"key": "cancelled", "label": "Cancelled", "description": "Tender withdrawn by its owner."},
    ],
    "bid": [
        {"key": "submitted", "label": "Submitted", "description": "Bid received, awaiting review."},
        {"key": "shortlisted", "label": "Shortlisted", "description": "Bid selected for further discussion."},
        {"key": "rejected", "label": "Rejected", "description": "Bid declined by the tender owner."},
        {"key": "withdrawn", "label": "Withdrawn", "description": "Bid retracted by the bidder."},
    ],
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "unexpected_error": "The operation could not be completed.",
        "action_invalid": "This action is not allowed.",
        "validation_error": "The request is invalid.",
        "permission_denied": "You are not authorized to perform this action.",
        "auth_required": "Authentication required.",
        "not_found": "The requested resource was not found.",
        "conflict": "The request conflicts with the current state.",
        "rate_limit_exceeded": "Too many requests. Try again shortly.",
        "tender_not_found": "Tender not found.",
        "bid_not_found": "Bid not found.",
        "tenant_not_found": "Store not found.",
        "notification_not_found": "Notification not found.",
        "title_invalid": "Title must be between {min_length} and {max_length} characters.",
        "description_required": "Description is required.",
        "type_invalid": "Tender type must be one of: {allowed}.",
        "status_invalid": "Status must be one of: {allowed}.",
        "contact_preference_invalid": "Contact preference must be one of: {allowed}.",
        "category_invalid": "Category must be a list of category ids.",
        "documents_invalid": "Documents must be a list of attachment references.",
        "documents_limit_exceeded": "At most {max_documents} documents can be attached.",
        "date_invalid": "Field {field} must be an ISO 8601 date.",
        "amount_invalid": "Amount must be a non-negative number.",
        "currency_invalid": "Currency must be a 3 letter code.",
        "pagination_invalid": "Field {field} must be an integer between {min_value} and {max_value}.",
        "field_required": "Field {field} is required.",
        "tenant_membership_required": "You can only create tenders for stores you belong to.",
        "tender_not_editable": "Tender is no longer editable.",
        "bad_transition": 'Cannot transition from "{current}" to "{requested}".',
        "bad_bid_transition": 'Cannot move bid from "{current}" to "{requested}".',
        "tender_not_accepting_bids": "This tender is not accepting bids.",
        "own_tender_bid": "You cannot bid on your own tender.",
        "bid_deadline_passed": "The bid deadline has passed.",
        "bid_already_withdrawn": "Bid is already withdrawn.",
        "duplicate_bid": "You already submitted a bid for this tender.",
        "bid_withdraw_forbidden": "Only the bidder can withdraw.",
        "bids_owner_only": "Only the tender owner can view all bids.",
        "tender_number_exhausted": "Could not allocate a tender number. Try again.",
    },
    "notification": {
        "tender_published.title": "New Tender Published",
        "tender_published.message": '"{title}" is now open for bids.',
        "tender_closed.title": "Tender Closed",
        "tender_closed.message": 'The tender "{title}" has been closed.',
        "tender_cancelled.title": "Tender Cancelled",
        "tender_cancelled.message": 'The tender "{title}" has been cancelled.',
        "bid_received.title": "New Bid Received",
        "bid_received.message": '{bidder} submitted a bid on "{title}".',
        "bid_shortlisted.title": "Bid Shortlisted",
        "bid_shortlisted.message": 'Your bid on "{title}" has been shortlisted.',
        "bid_rejected.title": "Bid Rejected",
        "bid_rejected.message": 'Your bid on "{title}" has been rejected.',
        "bid_withdrawn.title": "Bid Withdrawn",
        "bid_withdrawn.message": 'A bid on "{title}" has been withdrawn.',
    },
}


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message is not None:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def notification_text(key: str, **params: object) -> str:
    template = get_message("notification", key)
    return template.format(**params) if params else template


def frontend_bundle() -> Dict[str, object]:
    return {
        "terms": FRIENDLY_TERMS,
        "status_groups": STATUS_GROUPS,
        "messages": MESSAGES,
        "flow": flow_frontend_bundle(),
    }
