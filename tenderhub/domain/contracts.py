from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class Caller:
    id: str
    roles: Tuple[str, ...] = ()
    tenants: Tuple[str, ...] = ()
    email: str | None = None
    username: str | None = None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def primary_tenant(self) -> str | None:
        return self.tenants[0] if self.tenants else None

    @property
    def display_name(self) -> str:
        return self.username or self.email or self.id


SYSTEM_CALLER = Caller(id="system", roles=("super-admin",), username="system")


@dataclass(frozen=True)
class TenderCreateInput:
    title: str
    description: Any = None
    type: str = "rfq"
    tenant_id: str | None = None
    category_ids: Tuple[str, ...] = ()
    response_deadline: str | None = None
    contact_preference: str = "email"
    documents: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class TenderUpdateInput:
    tender_id: int
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TenderListInput:
    status: str | None = None
    type: str | None = None
    tenant_id: str | None = None
    mine: bool = False
    limit: int = 20
    page: int = 1
    depth: int = 1


@dataclass(frozen=True)
class BidSubmitInput:
    tender_id: int
    message: Any = None
    amount: float | None = None
    currency: str | None = None
    valid_until: str | None = None
    documents: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class BidListInput:
    tender_id: int | None = None
    status: str | None = None
    limit: int = 50
    page: int = 1
    depth: int = 1


@dataclass(frozen=True)
class Page:
    docs: List[Dict[str, Any]]
    total_docs: int
    limit: int
    page: int

    @property
    def total_pages(self) -> int:
        if self.total_docs <= 0:
            return 0
        return int(math.ceil(self.total_docs / float(self.limit)))

    def to_payload(self, key: str) -> Dict[str, Any]:
        return {
            key: self.docs,
            "total_docs": self.total_docs,
            "total_pages": self.total_pages,
            "page": self.page,
            "limit": self.limit,
        }
