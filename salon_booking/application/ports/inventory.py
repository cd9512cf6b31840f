from __future__ import annotations

from abc import ABC, abstractmethod


class InventoryPort(ABC):
    @abstractmethod
    def available_quantity(self, product_id: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> None:
        """Raises InsufficientStock if quantity exceeds current stock."""
        raise NotImplementedError

    @abstractmethod
    def restock(self, product_id: str, quantity: int) -> None:
        raise NotImplementedError
