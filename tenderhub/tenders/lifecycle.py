from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import datetime
from typing import Callable, List, Tuple

from tenderhub.db import format_timestamp, utc_now
from tenderhub.domain.contracts import Caller, TenderCreateInput, TenderUpdateInput
from tenderhub.errors import NotFoundError, UserActionError, ValidationError
from tenderhub.errors import PermissionError as AppPermissionError
from tenderhub.errors import SystemError as AppSystemError
from tenderhub.infrastructure.repositories import BidRepository, DirectoryRepository, TenderRepository
from tenderhub.policies import TENDER_UPDATE, TENDER_UPDATE_STATUS, is_privileged, require
from tenderhub.tenders.access_scope import require_tender
from tenderhub.tenders.flow_policy import (
    INITIAL_TENDER_STATUS,
    TENDER_TARGET_STATUSES,
    can_transition_tender,
    is_tender_editable,
)


logger = logging.getLogger("tenderhub.tenders")

TENDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
TENDER_NUMBER_ATTEMPTS = 5
VENDOR_ROLE = "tenant"


def generate_tender_number(now_ms: int | None = None, rng=None) -> str:
    """``TND-<last 8 digits of the epoch millis>-<4 random [A-Z0-9]>``."""
    millis = int(time.time() * 1000) if now_ms is None else int(now_ms)
    chooser = rng or secrets.SystemRandom()
    code = "".join(chooser.choice(TENDER_NUMBER_ALPHABET) for _ in range(4))
    return f"TND-{str(millis)[-8:].zfill(8)}-{code}"


def tender_number_exhausted() -> AppSystemError:
    return AppSystemError(
        code="tender_number_exhausted",
        message_key="tender_number_exhausted",
        details="could not allocate a unique tender number",
    )


def bad_transition(current: str, requested: str) -> UserActionError:
    return UserActionError(
        code="bad_transition",
        message_key="bad_transition",
        http_status=400,
        critical=False,
        payload={"current_status": current, "requested_status": requested},
        message_params={"current": current, "requested": requested},
    )


class TenderLifecycleManager:
    def __init__(
        self,
        *,
        tenders: TenderRepository | None = None,
        bids: BidRepository | None = None,
        directory: DirectoryRepository | None = None,
        clock: Callable[[], datetime] = utc_now,
        fanout_limit: int = 500,
        number_factory: Callable[[], str] = generate_tender_number,
    ) -> None:
        self.tenders = tenders or TenderRepository()
        self.bids = bids or BidRepository()
        self.directory = directory or DirectoryRepository()
        self.clock = clock
        self.fanout_limit = max(1, int(fanout_limit))
        self.number_factory = number_factory

    def _now(self) -> str:
        return format_timestamp(self.clock())

    def get(self, db, tender_id: int) -> dict:
        return dict(require_tender(self.tenders.get_by_id(db, tender_id)))

    def _resolve_tenant(self, db, caller: Caller, requested: str | None) -> str | None:
        if not requested:
            return caller.primary_tenant
        if not is_privileged(caller) and requested not in caller.tenants:
            raise AppPermissionError(
                code="tenant_membership_required",
                message_key="tenant_membership_required",
                http_status=403,
            )
        if not self.directory.tenant_exists(db, requested):
            raise NotFoundError(code="tenant_not_found", message_key="tenant_not_found", http_status=404)
        return requested

    def _next_tender_number(self, db) -> str:
        for _ in range(TENDER_NUMBER_ATTEMPTS):
            candidate = self.number_factory()
            if not self.tenders.tender_number_exists(db, candidate):
                return candidate
        raise tender_number_exhausted()

    def create(self, db, caller: Caller, data: TenderCreateInput) -> dict:
        tenant_id = self._resolve_tenant(db, caller, data.tenant_id)
        now = self._now()
        tender_id = self.tenders.create(
            db,
            tender_number=self._next_tender_number(db),
            title=data.title,
            description=data.description,
            tender_type=data.type,
            status=INITIAL_TENDER_STATUS,
            category_ids=list(data.category_ids),
            response_deadline=data.response_deadline,
            contact_preference=data.contact_preference,
            documents=list(data.documents),
            tenant_id=tenant_id,
            created_by=caller.id,
            now=now,
        )
        logger.info(
            "tender_created",
            extra={"tender_id": tender_id, "actor_id": caller.id, "tenant_id": tenant_id},
        )
        return self.get(db, tender_id)

    def update(self, db, caller: Caller, data: TenderUpdateInput) -> Tuple[dict, Tuple[str, ...]]:
        tender = self.get(db, data.tender_id)
        if not is_tender_editable(tender["status"]):
            raise UserActionError(
                code="tender_not_editable",
                message_key="tender_not_editable",
                http_status=400,
                payload={"current_status": tender["status"]},
            )
        require(caller, tender, TENDER_UPDATE)
        if not data.changes:
            return tender, ()

        self.tenders.update_fields(db, tender["id"], data.changes, now=self._now())
        changed = tuple(sorted(data.changes))
        logger.info("tender_updated", extra={"tender_id": tender["id"], "fields": list(changed)})
        return self.get(db, tender["id"]), changed

    def update_status(self, db, caller: Caller, tender_id: int, status: str) -> Tuple[dict, str]:
        requested = str(status or "").strip().lower()
        if requested not in TENDER_TARGET_STATUSES:
            raise ValidationError(
                code="status_invalid",
                message_key="status_invalid",
                message_params={"allowed": ", ".join(TENDER_TARGET_STATUSES)},
            )

        tender = self.get(db, tender_id)
        require(caller, tender, TENDER_UPDATE_STATUS)
        current = tender["status"]
        if not can_transition_tender(current, requested):
            raise bad_transition(current, requested)

        updated = self.tenders.update_status(
            db,
            tender["id"],
            from_status=current,
            to_status=requested,
            now=self._now(),
        )
        if not updated:
            # A concurrent writer moved the tender first.
            fresh = self.get(db, tender["id"])
            raise bad_transition(fresh["status"], requested)

        logger.info(
            "tender_status_changed",
            extra={"tender_id": tender["id"], "from_status": current, "to_status": requested, "actor_id": caller.id},
        )
        return self.get(db, tender["id"]), current

    def publish_recipients(self, db, tender: dict, *, actor_id: str | None) -> List[str]:
        """Vendors matching the tender's categories, or every vendor when it has none.

        The actor and the tender owner are never among the recipients.
        """
        exclude = [value for value in (actor_id, tender.get("created_by")) if value]
        categories = list(tender.get("category") or [])
        if not categories:
            return self.directory.user_ids_with_role(
                db,
                VENDOR_ROLE,
                exclude_user_ids=exclude,
                limit=self.fanout_limit,
            )
        tenant_ids = self.directory.tenant_ids_for_categories(db, categories)
        if not tenant_ids:
            return []
        return self.directory.user_ids_for_tenants(
            db,
            tenant_ids,
            exclude_user_ids=exclude,
            limit=self.fanout_limit,
        )

    def bidder_recipients(self, db, tender_id: int) -> List[str]:
        return self.bids.bidder_ids(db, tender_id)

    def expired_open_tenders(self, db, *, limit: int = 200) -> List[dict]:
        return self.tenders.list_expired_open(db, now=self._now(), limit=limit)
