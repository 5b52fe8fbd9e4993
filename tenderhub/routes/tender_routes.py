from __future__ import annotations

from flask import Blueprint, jsonify, request

from tenderhub.auth import current_caller
from tenderhub.db import get_db
from tenderhub.domain.contracts import BidListInput, TenderListInput
from tenderhub.infrastructure.expansion import clamp_depth
from tenderhub.tenders.flow_policy import BID_STATUSES, TENDER_STATUSES, TENDER_TYPES, flow_meta
from tenderhub.tenders.validation import (
    parse_bid_submit,
    parse_bool,
    parse_choice,
    parse_pagination,
    parse_tender_create,
    parse_tender_update,
)
from tenderhub.tenders.workflow import get_workflow
from tenderhub.ui_strings import frontend_bundle


tenders_bp = Blueprint("tenders", __name__, url_prefix="/api")


def _json_payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _optional_choice(value, allowed, code: str) -> str | None:
    if value is None or str(value).strip() == "":
        return None
    return parse_choice(value, allowed, code)


def _depth() -> int:
    return clamp_depth(request.args.get("depth", 1))


@tenders_bp.route("/tenders", methods=["GET"])
def list_tenders():
    limit, page = parse_pagination(request.args)
    data = TenderListInput(
        status=_optional_choice(request.args.get("status"), TENDER_STATUSES, "status_invalid"),
        type=_optional_choice(request.args.get("type"), TENDER_TYPES, "type_invalid"),
        tenant_id=(request.args.get("tenant_id") or "").strip() or None,
        mine=parse_bool(request.args.get("mine")),
        limit=limit,
        page=page,
        depth=_depth(),
    )
    result = get_workflow().list(get_db(), current_caller(), data)
    return jsonify(result.to_payload("tenders"))


@tenders_bp.route("/tenders", methods=["POST"])
def create_tender():
    data = parse_tender_create(_json_payload())
    tender = get_workflow().create(get_db(), current_caller(), data)
    return jsonify({"tender": tender}), 201


@tenders_bp.route("/tenders/<int:tender_id>", methods=["GET"])
def get_tender(tender_id: int):
    tender = get_workflow().get_by_id(get_db(), current_caller(), tender_id, depth=_depth())
    return jsonify({"tender": tender, "flow": flow_meta(tender["status"])})


@tenders_bp.route("/tenders/<int:tender_id>", methods=["PATCH"])
def update_tender(tender_id: int):
    data = parse_tender_update(tender_id, _json_payload())
    tender = get_workflow().update(get_db(), current_caller(), data)
    return jsonify({"tender": tender})


@tenders_bp.route("/tenders/<int:tender_id>/status", methods=["POST"])
def update_tender_status(tender_id: int):
    payload = _json_payload()
    tender = get_workflow().update_status(get_db(), current_caller(), tender_id, payload.get("status"))
    return jsonify({"tender": tender})


@tenders_bp.route("/tenders/<int:tender_id>/bids", methods=["GET"])
def list_tender_bids(tender_id: int):
    limit, page = parse_pagination(request.args, default_limit=50)
    data = BidListInput(
        tender_id=tender_id,
        status=_optional_choice(request.args.get("status"), BID_STATUSES, "status_invalid"),
        limit=limit,
        page=page,
        depth=_depth(),
    )
    result = get_workflow().list_bids(get_db(), current_caller(), data)
    return jsonify(result.to_payload("bids"))


@tenders_bp.route("/tenders/<int:tender_id>/bids", methods=["POST"])
def submit_bid(tender_id: int):
    data = parse_bid_submit(tender_id, _json_payload())
    bid = get_workflow().submit_bid(get_db(), current_caller(), data)
    return jsonify({"bid": bid}), 201


@tenders_bp.route("/bids/mine", methods=["GET"])
def my_bids():
    limit, page = parse_pagination(request.args)
    result = get_workflow().get_my_bids(get_db(), current_caller(), limit=limit, page=page, depth=_depth())
    return jsonify(result.to_payload("bids"))


@tenders_bp.route("/bids/<int:bid_id>/status", methods=["POST"])
def update_bid_status(bid_id: int):
    payload = _json_payload()
    bid = get_workflow().update_bid_status(get_db(), current_caller(), bid_id, payload.get("status"))
    return jsonify({"bid": bid})


@tenders_bp.route("/bids/<int:bid_id>/withdraw", methods=["POST"])
def withdraw_bid(bid_id: int):
    bid = get_workflow().withdraw_bid(get_db(), current_caller(), bid_id)
    return jsonify({"bid": bid})


@tenders_bp.route("/meta", methods=["GET"])
def ui_meta():
    return jsonify(frontend_bundle())
