from enum import Enum


class AppointmentStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    rejected = "rejected"
    cancelled = "cancelled"  # set externally by archival; never by the lifecycle

    @property
    def is_terminal(self) -> bool:
        return self in (AppointmentStatus.completed, AppointmentStatus.rejected)


# pending -> confirmed -> completed, pending -> rejected
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.pending: frozenset({AppointmentStatus.confirmed, AppointmentStatus.rejected}),
    AppointmentStatus.confirmed: frozenset({AppointmentStatus.completed}),
    AppointmentStatus.completed: frozenset(),
    AppointmentStatus.rejected: frozenset(),
    AppointmentStatus.cancelled: frozenset(),
}

# Statuses whose segments never block a slot.
RELEASED_STATUSES = frozenset({AppointmentStatus.rejected, AppointmentStatus.cancelled})

# Statuses whose segments durably claim a slot.
CLAIMING_STATUSES = frozenset({AppointmentStatus.confirmed, AppointmentStatus.completed})
