from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, List, Tuple, Type

from tenderhub.observability import observe_domain_event_emitted


EventHandler = Callable[["DomainEvent"], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=_utc_now)
    actor_id: str = ""

    def __post_init__(self) -> None:
        normalized_event_id = str(self.event_id or "").strip() or uuid.uuid4().hex
        normalized_occurred_at = self.occurred_at if isinstance(self.occurred_at, datetime) else _utc_now()
        if normalized_occurred_at.tzinfo is None:
            normalized_occurred_at = normalized_occurred_at.replace(tzinfo=timezone.utc)
        object.__setattr__(self, "event_id", normalized_event_id)
        object.__setattr__(self, "occurred_at", normalized_occurred_at.astimezone(timezone.utc))
        object.__setattr__(self, "actor_id", str(self.actor_id or "").strip())


@dataclass(frozen=True, kw_only=True)
class TenderCreated(DomainEvent):
    tender_id: int
    tender_number: str
    title: str = ""


@dataclass(frozen=True, kw_only=True)
class TenderUpdated(DomainEvent):
    tender_id: int
    changed_fields: Tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class TenderStatusChanged(DomainEvent):
    tender_id: int
    title: str
    owner_id: str
    from_status: str
    to_status: str


@dataclass(frozen=True, kw_only=True)
class BidSubmitted(DomainEvent):
    bid_id: int
    tender_id: int
    tender_title: str
    owner_id: str
    bidder_id: str
    bidder_name: str = ""


@dataclass(frozen=True, kw_only=True)
class BidStatusChanged(DomainEvent):
    bid_id: int
    tender_id: int
    tender_title: str
    bidder_id: str
    from_status: str
    to_status: str


@dataclass(frozen=True, kw_only=True)
class BidWithdrawn(DomainEvent):
    bid_id: int
    tender_id: int
    tender_title: str
    owner_id: str
    bidder_id: str
    bidder_name: str = ""


class EventBus:
    def __init__(self) -> None:
        self._lock = RLock()
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}
        self._logger = logging.getLogger("tenderhub")

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.setdefault(event_type, [])
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        observe_domain_event_emitted(type(event).__name__)
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                self._logger.exception(
                    "event_handler_failed",
                    extra={"event_type": type(event).__name__, "event_id": event.event_id},
                )

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


_DEFAULT_EVENT_BUS = EventBus()


def get_event_bus() -> EventBus:
    """The current app's bus when inside an app context, else the process default."""
    from flask import current_app, has_app_context

    if has_app_context():
        bus = current_app.extensions.get("event_bus")
        if bus is not None:
            return bus
    return _DEFAULT_EVENT_BUS


def reset_event_bus_for_tests() -> None:
    _DEFAULT_EVENT_BUS.clear()
