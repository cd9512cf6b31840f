from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator

from salon_booking.domain.entities.segment import BookedSegment, TimeInterval
from salon_booking.domain.entities.status import RELEASED_STATUSES, AppointmentStatus

SlotKey = tuple[str, date]


def intervals_overlap(a: TimeInterval, b: TimeInterval) -> bool:
    """Half-open overlap test. Touching endpoints do not conflict."""
    return a.start < b.end and b.start < a.end


class ConflictGuard:
    """
    Decides whether a [start, end) interval collides with a staff member's
    existing segments, and serialises writers per (staff_id, day).

    Buffer-agnostic: callers pad the interval before asking.
    """

    def __init__(self) -> None:
        # entries vanish once no writer holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[SlotKey, threading.Lock] = weakref.WeakValueDictionary()
        self._lock_lock = threading.Lock()  # guards the locks dict
        self._logger = logging.getLogger(__name__)

    def find_conflicts(
        self,
        interval: TimeInterval,
        existing: Iterable[BookedSegment],
        ignore_appointment_id: str | None = None,
        statuses: frozenset[AppointmentStatus] | None = None,
    ) -> list[BookedSegment]:
        """
        Segments in existing that overlap interval. Released (rejected/cancelled)
        segments never count. If statuses is given, only those statuses count.
        """
        conflicts: list[BookedSegment] = []
        for segment in existing:
            if segment.status in RELEASED_STATUSES:
                continue
            if statuses is not None and segment.status not in statuses:
                continue
            if ignore_appointment_id is not None and segment.appointment_id == ignore_appointment_id:
                continue
            if intervals_overlap(interval, segment.interval):
                conflicts.append(segment)
        return conflicts

    def has_conflict(
        self,
        interval: TimeInterval,
        existing: Iterable[BookedSegment],
        ignore_appointment_id: str | None = None,
        statuses: frozenset[AppointmentStatus] | None = None,
    ) -> bool:
        return bool(self.find_conflicts(interval, existing, ignore_appointment_id, statuses))

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    def _get_lock(self, key: SlotKey) -> threading.Lock:
        with self._lock_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def slot_lock(self, keys: Iterable[SlotKey]) -> Iterator[None]:
        """
        Hold the per-(staff_id, day) locks for every key.
        Locks are taken in sorted order so two writers never deadlock.
        """
        ordered = sorted(set(keys), key=lambda k: (k[0], k[1].isoformat()))
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._get_lock(key)
                lock.acquire()
                acquired.append(lock)
            self._logger.debug("Slot locks acquired", extra={"staff_id": ",".join(k[0] for k in ordered)})
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
