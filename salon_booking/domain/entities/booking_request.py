from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Any

from salon_booking.domain.entities.segment import AppointmentSegment

PAYMENT_METHODS = ("cash", "card", "bank", "pos")
GENDERS = ("male", "female", "other")


@dataclass(frozen=True)
class CustomerInfo:
    full_name: str
    gender: str  # "male" | "female" | "other"
    email: str
    phone: str
    note: str = ""
    customer_id: str | None = None


@dataclass(frozen=True)
class RequestInfo:
    ip: str = "unknown"
    device: str = "unknown"
    os: str = "unknown"
    browser: str = "unknown"
    entry_time: str | None = None
    page: str = "booking"


@dataclass(frozen=True)
class ProductLine:
    product_id: str
    name: str
    price: Decimal
    quantity: int
    discount_percent: Decimal | None = None


@dataclass(frozen=True)
class PriceTotals:
    original: Decimal
    discounted: Decimal
    savings: Decimal


@dataclass(frozen=True)
class BookingRequest:
    customer: CustomerInfo
    day: date
    start: time
    segments: tuple[AppointmentSegment, ...]
    products: tuple[ProductLine, ...]
    payment_method: str
    totals: PriceTotals
    invoice_number: str
    request_info: RequestInfo = RequestInfo()
    paid_amount: Decimal = Decimal("0")

    @property
    def is_fully_staffed(self) -> bool:
        return bool(self.segments) and all(s.staff_id for s in self.segments)

    def to_snapshot(self) -> dict[str, Any]:
        """JSON-compatible payload stored with the appointment record."""
        return {
            "invoice_number": self.invoice_number,
            "customer_info": {
                "full_name": self.customer.full_name,
                "gender": self.customer.gender,
                "email": self.customer.email,
                "number": self.customer.phone,
                "note": self.customer.note,
                "customer_id": self.customer.customer_id,
                "date": self.day.isoformat(),
                "time": self.start.strftime("%H:%M"),
            },
            "services": [
                {
                    "id": s.service_id,
                    "name": s.service_name,
                    "date": s.day.isoformat(),
                    "start": s.start.strftime("%H:%M"),
                    "duration": s.duration_minutes,
                    "price": str(s.original_price),
                    "discount": _opt_str(s.discount_percent),
                    "discounted_price": str(s.price),
                    "user_id": s.staff_id,
                }
                for s in self.segments
            ],
            "products": [
                {
                    "id": p.product_id,
                    "name": p.name,
                    "price": str(p.price),
                    "quantity": p.quantity,
                    "discount": _opt_str(p.discount_percent),
                }
                for p in self.products
            ],
            "payment_details": {
                "method": self.payment_method,
                "total_amount": str(self.totals.discounted),
                "original_amount": str(self.totals.original),
                "discount_amount": str(self.totals.savings),
                "paid_amount": str(self.paid_amount),
            },
            "request_info": {
                "ip": self.request_info.ip,
                "device": self.request_info.device,
                "os": self.request_info.os,
                "browser": self.request_info.browser,
                "entry_time": self.request_info.entry_time,
                "page": self.request_info.page,
            },
        }

    @staticmethod
    def from_snapshot(data: dict[str, Any]) -> "BookingRequest":
        customer = data.get("customer_info") or {}
        payment = data.get("payment_details") or {}
        request_info = data.get("request_info") or {}
        return BookingRequest(
            customer=CustomerInfo(
                full_name=customer.get("full_name", ""),
                gender=customer.get("gender", "other"),
                email=customer.get("email", ""),
                phone=customer.get("number", ""),
                note=customer.get("note") or "",
                customer_id=customer.get("customer_id"),
            ),
            day=date.fromisoformat(customer["date"]),
            start=time.fromisoformat(customer["time"]),
            segments=tuple(
                AppointmentSegment(
                    service_id=str(s["id"]),
                    service_name=s.get("name", ""),
                    day=date.fromisoformat(s.get("date") or customer["date"]),
                    start=time.fromisoformat(s.get("start") or customer["time"]),
                    duration_minutes=int(s.get("duration", 0)),
                    price=Decimal(str(s.get("discounted_price", s.get("price", 0)))),
                    original_price=Decimal(str(s.get("price", 0))),
                    discount_percent=_opt_decimal(s.get("discount")),
                    staff_id=s.get("user_id"),
                )
                for s in data.get("services") or []
            ),
            products=tuple(
                ProductLine(
                    product_id=str(p["id"]),
                    name=p.get("name", ""),
                    price=Decimal(str(p.get("price", 0))),
                    quantity=int(p.get("quantity", 1)),
                    discount_percent=_opt_decimal(p.get("discount")),
                )
                for p in data.get("products") or []
            ),
            payment_method=payment.get("method", ""),
            totals=PriceTotals(
                original=Decimal(str(payment.get("original_amount", payment.get("total_amount", 0)))),
                discounted=Decimal(str(payment.get("total_amount", 0))),
                savings=Decimal(str(payment.get("discount_amount", 0))),
            ),
            invoice_number=data.get("invoice_number", ""),
            request_info=RequestInfo(
                ip=request_info.get("ip") or "unknown",
                device=request_info.get("device") or "unknown",
                os=request_info.get("os") or "unknown",
                browser=request_info.get("browser") or "unknown",
                entry_time=request_info.get("entry_time"),
                page=request_info.get("page") or "booking",
            ),
            paid_amount=Decimal(str(payment.get("paid_amount", 0))),
        )


def _opt_str(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _opt_decimal(value: Any) -> Decimal | None:
    if value in (None, ""):
        return None
    return Decimal(str(value))
