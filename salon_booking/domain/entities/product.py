from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: Decimal
    discount_percent: Decimal | None = None
    stock_quantity: int = 0

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> "Product":
        discount = payload.get("discount_percent", payload.get("discount"))
        stock = int(payload.get("stock_quantity", payload.get("stock", 0)) or 0)
        return Product(
            id=str(payload["id"]),
            name=(payload.get("name") or "").strip(),
            price=Decimal(str(payload.get("price", 0))),
            discount_percent=Decimal(str(discount)) if discount not in (None, "") else None,
            stock_quantity=max(stock, 0),
        )
