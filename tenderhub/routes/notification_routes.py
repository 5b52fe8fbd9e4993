from __future__ import annotations

from flask import Blueprint, jsonify, request

from tenderhub.auth import current_caller
from tenderhub.db import get_db
from tenderhub.errors import ValidationError
from tenderhub.notifications.inbox import NOTIFICATION_TYPES, NotificationInbox
from tenderhub.tenders.validation import parse_bool, parse_choice, parse_pagination


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")

_INBOX = NotificationInbox()


@notifications_bp.route("", methods=["GET"])
def list_notifications():
    limit, page = parse_pagination(request.args)
    raw_type = (request.args.get("type") or "").strip()
    notification_type = parse_choice(raw_type, NOTIFICATION_TYPES, "type_invalid") if raw_type else None
    result = _INBOX.list(
        get_db(),
        current_caller(),
        limit=limit,
        page=page,
        notification_type=notification_type,
        unread_only=parse_bool(request.args.get("unread_only")),
    )
    return jsonify(result.to_payload("notifications"))


@notifications_bp.route("/counts", methods=["GET"])
def notification_counts():
    return jsonify(_INBOX.counts(get_db(), current_caller()))


@notifications_bp.route("/<int:notification_id>/read", methods=["POST"])
def mark_notification_read(notification_id: int):
    notification = _INBOX.mark_as_read(get_db(), current_caller(), notification_id)
    return jsonify({"success": True, "notification": notification})


@notifications_bp.route("/seen", methods=["POST"])
def mark_notifications_seen():
    payload = request.get_json(silent=True)
    raw_ids = payload.get("ids") if isinstance(payload, dict) else None
    ids = None
    if raw_ids is not None:
        if not isinstance(raw_ids, list) or not all(isinstance(value, int) and not isinstance(value, bool) for value in raw_ids):
            raise ValidationError(code="validation_error", message_key="validation_error", details="ids must be integers")
        ids = raw_ids
    updated = _INBOX.mark_as_seen(get_db(), current_caller(), ids)
    return jsonify({"success": True, "updated": updated})
