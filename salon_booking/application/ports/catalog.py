from __future__ import annotations

from abc import ABC, abstractmethod

from salon_booking.domain.entities.product import Product
from salon_booking.domain.entities.service import Service
from salon_booking.domain.entities.staff import StaffMember


class CatalogPort(ABC):
    @abstractmethod
    def get_service(self, service_id: str) -> Service | None:
        """Get service by id. Returns None if not found."""
        raise NotImplementedError

    @abstractmethod
    def get_product(self, product_id: str) -> Product | None:
        """Get product by id. Returns None if not found."""
        raise NotImplementedError

    @abstractmethod
    def list_staff(self) -> list[StaffMember]:
        """Snapshot of the full staff roster."""
        raise NotImplementedError
