from __future__ import annotations

import logging
import threading

from salon_booking.application.exceptions import InsufficientStock
from salon_booking.application.ports.inventory import InventoryPort


class MemoryInventory(InventoryPort):
    def __init__(self, stock: dict[str, int] | None = None) -> None:
        self._stock: dict[str, int] = {k: max(int(v), 0) for k, v in (stock or {}).items()}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def available_quantity(self, product_id: str) -> int:
        with self._lock:
            return self._stock.get(product_id, 0)

    def decrement_stock(self, product_id: str, quantity: int) -> None:
        with self._lock:
            available = self._stock.get(product_id, 0)
            if quantity > available:
                raise InsufficientStock({product_id: (quantity, available)})
            self._stock[product_id] = available - quantity
        self._logger.debug("Stock decremented", extra={"reason": f"{product_id} -{quantity}"})

    def restock(self, product_id: str, quantity: int) -> None:
        if quantity < 0:
            raise ValueError("Restock quantity must be non-negative")
        with self._lock:
            self._stock[product_id] = self._stock.get(product_id, 0) + quantity
