from __future__ import annotations

import math
from typing import Any, Dict, Iterable, Mapping, Tuple

from tenderhub.db import format_timestamp, parse_timestamp
from tenderhub.domain.contracts import BidSubmitInput, TenderCreateInput, TenderUpdateInput
from tenderhub.errors import ValidationError
from tenderhub.tenders.flow_policy import CONTACT_PREFERENCES, TENDER_TYPES


TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
MAX_DOCUMENTS = 10
MAX_PAGE_LIMIT = 100


def _invalid(code: str, **params: Any) -> ValidationError:
    return ValidationError(
        code=code,
        message_key=code,
        http_status=400,
        critical=False,
        payload={"field": params.get("field")} if params.get("field") else None,
        message_params=params,
    )


def parse_title(value: Any) -> str:
    title = str(value or "").strip() if isinstance(value, str) else ""
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise _invalid("title_invalid", min_length=TITLE_MIN_LENGTH, max_length=TITLE_MAX_LENGTH)
    return title


def parse_choice(value: Any, allowed: Iterable[str], code: str) -> str:
    options = tuple(allowed)
    normalized = str(value or "").strip().lower()
    if normalized not in options:
        raise _invalid(code, allowed=", ".join(options))
    return normalized


def parse_timestamp_field(value: Any, field: str) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise _invalid("date_invalid", field=field)
    parsed = parse_timestamp(value)
    if parsed is None:
        raise _invalid("date_invalid", field=field)
    return format_timestamp(parsed)


def parse_category_ids(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, (str, int)) for item in value):
        raise _invalid("category_invalid")
    return tuple(dict.fromkeys(str(item).strip() for item in value if str(item).strip()))


def parse_documents(value: Any) -> Tuple[Any, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise _invalid("documents_invalid")
    if len(value) > MAX_DOCUMENTS:
        raise _invalid("documents_limit_exceeded", max_documents=MAX_DOCUMENTS)
    return tuple(value)


def parse_amount(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _invalid("amount_invalid")
    amount = float(value)
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        raise _invalid("amount_invalid")
    return amount


def parse_currency(value: Any) -> str | None:
    if value is None or value == "":
        return None
    currency = str(value).strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise _invalid("currency_invalid")
    return currency


def parse_bounded_int(value: Any, field: str, *, default: int, min_value: int, max_value: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise _invalid("pagination_invalid", field=field, min_value=min_value, max_value=max_value)
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise _invalid("pagination_invalid", field=field, min_value=min_value, max_value=max_value) from None
    if not min_value <= parsed <= max_value:
        raise _invalid("pagination_invalid", field=field, min_value=min_value, max_value=max_value)
    return parsed


def parse_pagination(args: Mapping[str, Any], *, default_limit: int = 20) -> Tuple[int, int]:
    limit = parse_bounded_int(args.get("limit"), "limit", default=default_limit, min_value=1, max_value=MAX_PAGE_LIMIT)
    page = parse_bounded_int(args.get("page"), "page", default=1, min_value=1, max_value=1_000_000)
    return limit, page


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def parse_tender_create(payload: Mapping[str, Any]) -> TenderCreateInput:
    if "type" not in payload:
        raise _invalid("field_required", field="type")
    tenant = payload.get("tenant")
    contact_preference = payload.get("contact_preference")
    return TenderCreateInput(
        title=parse_title(payload.get("title")),
        description=payload.get("description"),
        type=parse_choice(payload.get("type"), TENDER_TYPES, "type_invalid"),
        tenant_id=str(tenant).strip() if tenant else None,
        category_ids=parse_category_ids(payload.get("category")),
        response_deadline=parse_timestamp_field(payload.get("response_deadline"), "response_deadline"),
        contact_preference=(
            parse_choice(contact_preference, CONTACT_PREFERENCES, "contact_preference_invalid")
            if contact_preference is not None
            else "email"
        ),
        documents=parse_documents(payload.get("documents")),
    )


def parse_tender_update(tender_id: int, payload: Mapping[str, Any]) -> TenderUpdateInput:
    """Only editable fields are taken; status and bid_count are never read here."""
    changes: Dict[str, Any] = {}
    if "title" in payload:
        changes["title"] = parse_title(payload.get("title"))
    if "description" in payload:
        changes["description"] = payload.get("description")
    if "type" in payload:
        changes["type"] = parse_choice(payload.get("type"), TENDER_TYPES, "type_invalid")
    if "category" in payload:
        changes["category_ids"] = list(parse_category_ids(payload.get("category")))
    if "response_deadline" in payload:
        changes["response_deadline"] = parse_timestamp_field(payload.get("response_deadline"), "response_deadline")
    if "contact_preference" in payload:
        changes["contact_preference"] = parse_choice(
            payload.get("contact_preference"),
            CONTACT_PREFERENCES,
            "contact_preference_invalid",
        )
    if "documents" in payload:
        changes["documents"] = list(parse_documents(payload.get("documents")))
    return TenderUpdateInput(tender_id=tender_id, changes=changes)


def parse_bid_submit(tender_id: int, payload: Mapping[str, Any]) -> BidSubmitInput:
    return BidSubmitInput(
        tender_id=tender_id,
        message=payload.get("message"),
        amount=parse_amount(payload.get("amount")),
        currency=parse_currency(payload.get("currency")),
        valid_until=parse_timestamp_field(payload.get("valid_until"), "valid_until"),
        documents=parse_documents(payload.get("documents")),
    )
