from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from salon_booking.application.ports.catalog import CatalogPort
from salon_booking.domain.entities.product import Product
from salon_booking.domain.entities.service import Service
from salon_booking.domain.entities.staff import StaffMember


class CatalogStore(CatalogPort):
    def __init__(
        self,
        services: list[Service] | None = None,
        products: list[Product] | None = None,
        staff: list[StaffMember] | None = None,
    ) -> None:
        self._services = {s.id: s for s in services or []}
        self._products = {p.id: p for p in products or []}
        self._staff = list(staff or [])

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> "CatalogStore":
        return CatalogStore(
            services=[Service.from_payload(item) for item in payload.get("services") or []],
            products=[Product.from_payload(item) for item in payload.get("products") or []],
            staff=[StaffMember.from_payload(item) for item in payload.get("staff") or []],
        )

    @staticmethod
    def from_json_file(path: str | Path) -> "CatalogStore":
        with open(path, "r", encoding="utf-8") as f:
            return CatalogStore.from_payload(json.load(f))

    def get_service(self, service_id: str) -> Service | None:
        return self._services.get(str(service_id).strip())

    def get_product(self, product_id: str) -> Product | None:
        return self._products.get(str(product_id).strip())

    def list_staff(self) -> list[StaffMember]:
        return list(self._staff)

    def list_products(self) -> list[Product]:
        return list(self._products.values())
