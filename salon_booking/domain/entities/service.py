from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    price: Decimal
    duration_minutes: int
    discount_percent: Decimal | None = None
    category_id: str | None = None

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> "Service":
        discount = payload.get("discount_percent", payload.get("discount"))
        return Service(
            id=str(payload["id"]),
            name=(payload.get("name") or "").strip(),
            price=Decimal(str(payload.get("price", 0))),
            duration_minutes=int(payload.get("duration_minutes", payload.get("duration", 0))),
            discount_percent=Decimal(str(discount)) if discount not in (None, "") else None,
            category_id=str(payload["category_id"]) if payload.get("category_id") is not None else None,
        )
