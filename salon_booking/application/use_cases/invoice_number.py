from __future__ import annotations

import random
import re
import threading
from typing import Iterable

from salon_booking.application.ports.appointment_repository import AppointmentRepositoryPort
from salon_booking.application.ports.clock import ClockPort

DATE_SCOPE = "date"
SEQUENCE_SCOPE = "sequence"

SEQUENCE_PATTERN = re.compile(r"^INV-(\d{6,})$")


class InvoiceNumberGenerator:
    """
    INV-YYYYMMDD-NNN (date scope, random suffix; callers re-roll on a
    uniqueness violation) or INV-NNNNNN (sequence scope).
    """

    def __init__(
        self,
        clock: ClockPort,
        scope: str = DATE_SCOPE,
        rng: random.Random | None = None,
        sequence_start: int = 1,
    ) -> None:
        if scope not in (DATE_SCOPE, SEQUENCE_SCOPE):
            raise ValueError(f"Unknown invoice number scope: {scope}")
        self._clock = clock
        self._scope = scope
        self._rng = rng or random.SystemRandom()
        self._next_sequence = sequence_start
        self._lock = threading.Lock()

    @staticmethod
    def resuming(
        clock: ClockPort,
        repository: AppointmentRepositoryPort,
        scope: str = DATE_SCOPE,
        rng: random.Random | None = None,
        sequence_start: int = 1,
    ) -> "InvoiceNumberGenerator":
        """Continue the sequence after the highest invoice number already stored."""
        start = sequence_start
        if scope == SEQUENCE_SCOPE:
            start = max(sequence_start, repository.max_invoice_sequence() + 1)
        return InvoiceNumberGenerator(clock=clock, scope=scope, rng=rng, sequence_start=start)

    @property
    def scope(self) -> str:
        return self._scope

    def generate(self) -> str:
        if self._scope == SEQUENCE_SCOPE:
            return self._sequence_number()
        return self._date_number()

    def _date_number(self) -> str:
        day = self._clock.today()
        suffix = self._rng.randint(0, 999)
        return f"INV-{day:%Y%m%d}-{suffix:03d}"

    def _sequence_number(self) -> str:
        with self._lock:
            value = self._next_sequence
            self._next_sequence += 1
        return f"INV-{value:06d}"


def highest_sequence(invoice_numbers: Iterable[str]) -> int:
    """Largest INV-NNNNNN sequence among the given numbers; date-scoped numbers are ignored."""
    highest = 0
    for number in invoice_numbers:
        match = SEQUENCE_PATTERN.match(number or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return highest
