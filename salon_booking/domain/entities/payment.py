from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class PaymentRecord:
    appointment_id: str
    amount: Decimal
    method: str
    status: str = "pending"  # "pending", "settled", "void"
    created_at: datetime | None = None
    settled_at: datetime | None = None
