from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List

from flask import Flask, current_app

from tenderhub.core import (
    BidStatusChanged,
    BidSubmitted,
    BidWithdrawn,
    EventBus,
    TenderCreated,
    TenderStatusChanged,
    TenderUpdated,
    get_event_bus,
)
from tenderhub.db import INTEGRITY_ERRORS, utc_now
from tenderhub.domain.contracts import (
    SYSTEM_CALLER,
    BidListInput,
    BidSubmitInput,
    Caller,
    Page,
    TenderCreateInput,
    TenderListInput,
    TenderUpdateInput,
)
from tenderhub.errors import AppError
from tenderhub.infrastructure.expansion import expand_bids, expand_tenders
from tenderhub.tenders.access_scope import ensure_tender_visible, tender_list_scope
from tenderhub.tenders.bids import BidManager
from tenderhub.tenders.lifecycle import TENDER_NUMBER_ATTEMPTS, TenderLifecycleManager, tender_number_exhausted


logger = logging.getLogger("tenderhub.tenders")


class TenderWorkflow:
    """Externally callable tender and bid operations.

    Each mutation runs in one transaction; domain events are published only
    after it has committed.
    """

    def __init__(
        self,
        *,
        lifecycle: TenderLifecycleManager | None = None,
        bids: BidManager | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.lifecycle = lifecycle or TenderLifecycleManager()
        self.bids = bids or BidManager(tenders=self.lifecycle.tenders)
        self._event_bus = event_bus

    @classmethod
    def from_app(cls, app: Flask, *, clock: Callable[[], datetime] = utc_now) -> "TenderWorkflow":
        lifecycle = TenderLifecycleManager(
            clock=clock,
            fanout_limit=int(app.config.get("NOTIFICATION_FANOUT_LIMIT", 500) or 500),
        )
        bids = BidManager(
            tenders=lifecycle.tenders,
            bids=lifecycle.bids,
            clock=clock,
            default_currency=str(app.config.get("DEFAULT_BID_CURRENCY") or "RWF"),
        )
        return cls(lifecycle=lifecycle, bids=bids, event_bus=app.extensions.get("event_bus"))

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus or get_event_bus()

    def _publish(self, event) -> None:
        self.event_bus.publish(event)

    def list(self, db, caller: Caller, data: TenderListInput) -> Page:
        predicate = tender_list_scope(
            caller,
            mine=data.mine,
            status=data.status,
            tender_type=data.type,
            tenant_id=data.tenant_id,
        )
        docs, total = self.lifecycle.tenders.find(db, predicate, limit=data.limit, page=data.page)
        return Page(
            docs=expand_tenders(db, docs, data.depth, self.lifecycle.directory),
            total_docs=total,
            limit=data.limit,
            page=data.page,
        )

    def get_by_id(self, db, caller: Caller, tender_id: int, *, depth: int = 1) -> dict:
        tender = ensure_tender_visible(caller, self.lifecycle.tenders.get_by_id(db, tender_id))
        return expand_tenders(db, [dict(tender)], depth, self.lifecycle.directory)[0]

    def create(self, db, caller: Caller, data: TenderCreateInput) -> dict:
        for attempt in range(1, TENDER_NUMBER_ATTEMPTS + 1):
            try:
                with db.transaction():
                    tender = self.lifecycle.create(db, caller, data)
                break
            except INTEGRITY_ERRORS:
                # UNIQUE(tender_number) lost a race with another insert.
                logger.warning("tender_number_collision", extra={"attempt": attempt, "actor_id": caller.id})
        else:
            raise tender_number_exhausted()
        self._publish(
            TenderCreated(
                actor_id=caller.id,
                tender_id=tender["id"],
                tender_number=tender["tender_number"],
                title=tender["title"],
            )
        )
        return tender

    def update(self, db, caller: Caller, data: TenderUpdateInput) -> dict:
        with db.transaction():
            tender, changed = self.lifecycle.update(db, caller, data)
        if changed:
            self._publish(TenderUpdated(actor_id=caller.id, tender_id=tender["id"], changed_fields=changed))
        return tender

    def update_status(self, db, caller: Caller, tender_id: int, status: str) -> dict:
        with db.transaction():
            tender, from_status = self.lifecycle.update_status(db, caller, tender_id, status)
        self._publish(
            TenderStatusChanged(
                actor_id=caller.id,
                tender_id=tender["id"],
                title=tender["title"],
                owner_id=str(tender["created_by"]),
                from_status=from_status,
                to_status=tender["status"],
            )
        )
        return tender

    def list_bids(self, db, caller: Caller, data: BidListInput) -> Page:
        page = self.bids.list_for_tender(db, caller, data)
        return Page(
            docs=expand_bids(db, page.docs, data.depth, self.lifecycle.directory),
            total_docs=page.total_docs,
            limit=page.limit,
            page=page.page,
        )

    def get_my_bids(self, db, caller: Caller, *, limit: int, page: int, depth: int = 1) -> Page:
        result = self.bids.list_mine(db, caller, limit=limit, page=page)
        return Page(
            docs=expand_bids(db, result.docs, depth, self.lifecycle.directory),
            total_docs=result.total_docs,
            limit=result.limit,
            page=result.page,
        )

    def submit_bid(self, db, caller: Caller, data: BidSubmitInput) -> dict:
        with db.transaction():
            bid, tender = self.bids.submit(db, caller, data)
        self._publish(
            BidSubmitted(
                actor_id=caller.id,
                bid_id=bid["id"],
                tender_id=tender["id"],
                tender_title=tender["title"],
                owner_id=str(tender["created_by"]),
                bidder_id=caller.id,
                bidder_name=caller.display_name,
            )
        )
        return bid

    def update_bid_status(self, db, caller: Caller, bid_id: int, status: str) -> dict:
        with db.transaction():
            bid, tender, from_status = self.bids.update_status(db, caller, bid_id, status)
        self._publish(
            BidStatusChanged(
                actor_id=caller.id,
                bid_id=bid["id"],
                tender_id=tender["id"],
                tender_title=tender["title"],
                bidder_id=str(bid["submitted_by"]),
                from_status=from_status,
                to_status=bid["status"],
            )
        )
        return bid

    def withdraw_bid(self, db, caller: Caller, bid_id: int) -> dict:
        with db.transaction():
            bid, tender = self.bids.withdraw(db, caller, bid_id)
        self._publish(
            BidWithdrawn(
                actor_id=caller.id,
                bid_id=bid["id"],
                tender_id=tender["id"],
                tender_title=tender["title"],
                owner_id=str(tender["created_by"]),
                bidder_id=caller.id,
                bidder_name=caller.display_name,
            )
        )
        return bid

    def close_expired(self, db, *, limit: int = 200) -> List[dict]:
        """Close open tenders whose response deadline has been reached, as the system actor."""
        closed: List[dict] = []
        for tender in self.lifecycle.expired_open_tenders(db, limit=limit):
            try:
                closed.append(self.update_status(db, SYSTEM_CALLER, tender["id"], "closed"))
            except AppError as exc:
                logger.warning(
                    "tender_auto_close_skipped",
                    extra={"tender_id": tender["id"], "error_code": exc.code},
                )
        return closed

    def recount_bids(self, db) -> List[dict]:
        with db.transaction():
            corrections = self.lifecycle.tenders.recount_bid_counts(db)
        for item in corrections:
            logger.warning(
                "tender_bid_count_corrected",
                extra={"tender_id": item["id"], "stored": item["bid_count"], "actual": item["actual"]},
            )
        return corrections


def get_workflow() -> TenderWorkflow:
    return current_app.extensions["tender_workflow"]
