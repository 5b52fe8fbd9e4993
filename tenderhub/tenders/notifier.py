from __future__ import annotations

import logging
from typing import Iterable, List

from tenderhub.core import BidStatusChanged, BidSubmitted, BidWithdrawn, EventBus, TenderStatusChanged
from tenderhub.db import get_db
from tenderhub.notifications.dispatcher import Notice, NotificationDispatcher
from tenderhub.tenders.lifecycle import TenderLifecycleManager
from tenderhub.ui_strings import notification_text


logger = logging.getLogger("tenderhub.notifications")

_STATUS_MESSAGE_KEYS = {
    "open": "tender_published",
    "closed": "tender_closed",
    "cancelled": "tender_cancelled",
}


def tender_url(tender_id: int) -> str:
    return f"/tenders/{tender_id}"


def tender_bids_url(tender_id: int) -> str:
    return f"/tenders/{tender_id}/bids"


class TenderNotifier:
    """Turns tender and bid events into notices for the interested users."""

    def __init__(self, dispatcher: NotificationDispatcher, lifecycle: TenderLifecycleManager) -> None:
        self.dispatcher = dispatcher
        self.lifecycle = lifecycle

    def register(self, bus: EventBus) -> None:
        bus.subscribe(TenderStatusChanged, self.on_tender_status_changed)
        bus.subscribe(BidSubmitted, self.on_bid_submitted)
        bus.subscribe(BidStatusChanged, self.on_bid_status_changed)
        bus.subscribe(BidWithdrawn, self.on_bid_withdrawn)

    def _notices(self, recipients: Iterable[str], key: str, url: str, data: dict, **params) -> List[Notice]:
        title = notification_text(f"{key}.title")
        message = notification_text(f"{key}.message", **params)
        return [
            Notice(user_id=user_id, title=title, message=message, url=url, data=dict(data))
            for user_id in dict.fromkeys(recipients)
            if user_id
        ]

    def on_tender_status_changed(self, event: TenderStatusChanged) -> None:
        key = _STATUS_MESSAGE_KEYS.get(event.to_status)
        if key is None:
            return

        db = get_db()
        if event.to_status == "open":
            tender = self.lifecycle.tenders.get_by_id(db, event.tender_id)
            if tender is None:
                return
            recipients = self.lifecycle.publish_recipients(db, tender, actor_id=event.actor_id)
        else:
            recipients = self.lifecycle.bidder_recipients(db, event.tender_id)

        notices = self._notices(
            recipients,
            key,
            tender_url(event.tender_id),
            {"tender_id": event.tender_id, "status": event.to_status},
            title=event.title,
        )
        accepted = self.dispatcher.dispatch(notices)
        logger.info(
            "tender_fanout_dispatched",
            extra={"tender_id": event.tender_id, "to_status": event.to_status, "recipients": accepted},
        )

    def on_bid_submitted(self, event: BidSubmitted) -> None:
        self.dispatcher.dispatch(
            self._notices(
                [event.owner_id],
                "bid_received",
                tender_bids_url(event.tender_id),
                {"tender_id": event.tender_id, "bid_id": event.bid_id},
                bidder=event.bidder_name or event.bidder_id,
                title=event.tender_title,
            )
        )

    def on_bid_status_changed(self, event: BidStatusChanged) -> None:
        key = f"bid_{event.to_status}"
        if event.to_status not in ("shortlisted", "rejected"):
            return
        self.dispatcher.dispatch(
            self._notices(
                [event.bidder_id],
                key,
                tender_url(event.tender_id),
                {"tender_id": event.tender_id, "bid_id": event.bid_id, "status": event.to_status},
                title=event.tender_title,
            )
        )

    def on_bid_withdrawn(self, event: BidWithdrawn) -> None:
        self.dispatcher.dispatch(
            self._notices(
                [event.owner_id],
                "bid_withdrawn",
                tender_bids_url(event.tender_id),
                {"tender_id": event.tender_id, "bid_id": event.bid_id},
                title=event.tender_title,
            )
        )
