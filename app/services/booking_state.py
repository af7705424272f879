"""Booking lifecycle: the closed set of statuses and the forward-only transition table."""
from app.core.errors import Conflict, ValidationError
from app.models.booking import BookingStatus

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.ASSIGNED, BookingStatus.CANCELLED}),
    BookingStatus.ASSIGNED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)
CANCELLABLE_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if BookingStatus.CANCELLED in targets)
# statuses from which a decorator may be (re)assigned
ASSIGNABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ASSIGNED})
# owner edits are refused once work has started
EDITABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.ASSIGNED})


def parse_status(value) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in BookingStatus)
        raise ValidationError(f"Unknown booking status '{value}'. Expected one of: {allowed}")


def can_transition(current, target) -> bool:
    return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]


def ensure_transition(current, target) -> BookingStatus:
    cur, tgt = parse_status(current), parse_status(target)
    if tgt not in ALLOWED_TRANSITIONS[cur]:
        raise Conflict(f"Cannot move booking from '{cur.value}' to '{tgt.value}'")
    return tgt
