from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Tuple

from tenderhub.db import INTEGRITY_ERRORS, format_timestamp, parse_timestamp, utc_now
from tenderhub.domain.contracts import BidListInput, BidSubmitInput, Caller, Page
from tenderhub.errors import ConflictError, NotFoundError, UserActionError, ValidationError
from tenderhub.infrastructure.repositories import BidRepository, TenderRepository
from tenderhub.policies import BID_UPDATE_STATUS, BID_WITHDRAW, TENDER_LIST_BIDS, is_owner, require
from tenderhub.tenders.access_scope import bids_for_tender_scope, my_bids_scope, require_tender
from tenderhub.tenders.flow_policy import (
    INITIAL_BID_STATUS,
    OWNER_BID_STATUSES,
    accepts_bids,
    can_transition_bid,
)


logger = logging.getLogger("tenderhub.bids")

WITHDRAWN = "withdrawn"


def bad_bid_transition(current: str, requested: str) -> UserActionError:
    return UserActionError(
        code="bad_bid_transition",
        message_key="bad_bid_transition",
        http_status=400,
        payload={"current_status": current, "requested_status": requested},
        message_params={"current": current, "requested": requested},
    )


def duplicate_bid() -> ConflictError:
    return ConflictError(code="duplicate_bid", message_key="duplicate_bid", http_status=409)


class BidManager:
    def __init__(
        self,
        *,
        tenders: TenderRepository | None = None,
        bids: BidRepository | None = None,
        clock: Callable[[], datetime] = utc_now,
        default_currency: str = "RWF",
    ) -> None:
        self.tenders = tenders or TenderRepository()
        self.bids = bids or BidRepository()
        self.clock = clock
        self.default_currency = (default_currency or "RWF").upper()

    def get(self, db, bid_id: int) -> dict:
        bid = self.bids.get_by_id(db, bid_id)
        if bid is None:
            raise NotFoundError(code="bid_not_found", message_key="bid_not_found", http_status=404)
        return bid

    def _tender(self, db, tender_id: int) -> dict:
        return dict(require_tender(self.tenders.get_by_id(db, tender_id)))

    def submit(self, db, caller: Caller, data: BidSubmitInput) -> Tuple[dict, dict]:
        tender = self._tender(db, data.tender_id)
        if not accepts_bids(tender["status"]):
            raise UserActionError(
                code="tender_not_accepting_bids",
                message_key="tender_not_accepting_bids",
                http_status=400,
                payload={"current_status": tender["status"]},
            )
        if is_owner(caller, tender):
            raise UserActionError(code="own_tender_bid", message_key="own_tender_bid", http_status=400)

        now = self.clock()
        deadline = parse_timestamp(tender.get("response_deadline"))
        if deadline is not None and deadline <= now:
            raise UserActionError(code="bid_deadline_passed", message_key="bid_deadline_passed", http_status=400)

        if self.bids.exists_for(db, tender_id=tender["id"], submitted_by=caller.id):
            raise duplicate_bid()

        stamp = format_timestamp(now)
        try:
            with db.transaction():
                bid_id = self.bids.create(
                    db,
                    tender_id=tender["id"],
                    submitted_by=caller.id,
                    status=INITIAL_BID_STATUS,
                    message=data.message,
                    documents=list(data.documents),
                    amount=data.amount,
                    currency=data.currency or self.default_currency,
                    valid_until=data.valid_until,
                    now=stamp,
                )
                self.tenders.increment_bid_count(db, tender["id"])
        except INTEGRITY_ERRORS as exc:
            # UNIQUE(tender_id, submitted_by) caught a concurrent duplicate.
            logger.warning(
                "duplicate_bid_rejected_by_storage",
                extra={"tender_id": tender["id"], "submitted_by": caller.id},
            )
            raise duplicate_bid() from exc

        logger.info(
            "bid_submitted",
            extra={"bid_id": bid_id, "tender_id": tender["id"], "submitted_by": caller.id},
        )
        return self.get(db, bid_id), tender

    def update_status(self, db, caller: Caller, bid_id: int, status: str) -> Tuple[dict, dict, str]:
        requested = str(status or "").strip().lower()
        if requested not in OWNER_BID_STATUSES:
            raise ValidationError(
                code="status_invalid",
                message_key="status_invalid",
                message_params={"allowed": ", ".join(OWNER_BID_STATUSES)},
            )

        bid = self.get(db, bid_id)
        tender = self._tender(db, bid["tender"])
        require(caller, tender, BID_UPDATE_STATUS)

        current = bid["status"]
        if not can_transition_bid(current, requested):
            raise bad_bid_transition(current, requested)
        self._apply_status(db, bid, current, requested)

        logger.info(
            "bid_status_changed",
            extra={"bid_id": bid["id"], "from_status": current, "to_status": requested, "actor_id": caller.id},
        )
        return self.get(db, bid["id"]), tender, current

    def withdraw(self, db, caller: Caller, bid_id: int) -> Tuple[dict, dict]:
        bid = self.get(db, bid_id)
        require(caller, bid, BID_WITHDRAW, code="bid_withdraw_forbidden")

        current = bid["status"]
        if current == WITHDRAWN:
            raise UserActionError(code="bid_already_withdrawn", message_key="bid_already_withdrawn", http_status=400)
        if not can_transition_bid(current, WITHDRAWN):
            raise bad_bid_transition(current, WITHDRAWN)
        self._apply_status(db, bid, current, WITHDRAWN)

        logger.info("bid_withdrawn", extra={"bid_id": bid["id"], "tender_id": bid["tender"]})
        return self.get(db, bid["id"]), self._tender(db, bid["tender"])

    def _apply_status(self, db, bid: dict, current: str, requested: str) -> None:
        updated = self.bids.update_status(
            db,
            bid["id"],
            from_status=current,
            to_status=requested,
            now=format_timestamp(self.clock()),
        )
        if updated:
            return
        fresh = self.get(db, bid["id"])
        if requested == WITHDRAWN and fresh["status"] == WITHDRAWN:
            raise UserActionError(code="bid_already_withdrawn", message_key="bid_already_withdrawn", http_status=400)
        raise bad_bid_transition(fresh["status"], requested)

    def list_for_tender(self, db, caller: Caller, data: BidListInput) -> Page:
        tender = self._tender(db, data.tender_id)
        require(caller, tender, TENDER_LIST_BIDS, code="bids_owner_only")
        docs, total = self.bids.find(
            db,
            bids_for_tender_scope(tender["id"], status=data.status),
            limit=data.limit,
            page=data.page,
        )
        return Page(docs=docs, total_docs=total, limit=data.limit, page=data.page)

    def list_mine(self, db, caller: Caller, *, limit: int, page: int) -> Page:
        docs, total = self.bids.find(db, my_bids_scope(caller), limit=limit, page=page)
        return Page(docs=docs, total_docs=total, limit=limit, page=page)
