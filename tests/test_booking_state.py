import pytest

from app.core.errors import Conflict, ValidationError
from app.models.booking import BookingStatus
from app.services.booking_state import (
    ALLOWED_TRANSITIONS,
    CANCELLABLE_STATUSES,
    TERMINAL_STATUSES,
    can_transition,
    ensure_transition,
    parse_status,
)


def test_parse_status_accepts_enum_and_strings():
    assert parse_status(BookingStatus.ASSIGNED) is BookingStatus.ASSIGNED
    assert parse_status("in_progress") is BookingStatus.IN_PROGRESS
    assert parse_status(" Completed ") is BookingStatus.COMPLETED


def test_parse_status_rejects_unknown_value():
    with pytest.raises(ValidationError) as exc:
        parse_status("shipped")
    assert "shipped" in exc.value.message


@pytest.mark.parametrize("current,target", [
    ("pending", "assigned"),
    ("assigned", "in_progress"),
    ("in_progress", "completed"),
    ("pending", "cancelled"),
    ("assigned", "cancelled"),
])
def test_forward_transitions_are_allowed(current, target):
    assert can_transition(current, target)
    assert ensure_transition(current, target) is BookingStatus(target)


@pytest.mark.parametrize("current,target", [
    ("completed", "in_progress"),
    ("in_progress", "assigned"),
    ("assigned", "pending"),
    ("pending", "completed"),
    ("in_progress", "cancelled"),
    ("cancelled", "pending"),
])
def test_backward_and_skipping_transitions_conflict(current, target):
    assert not can_transition(current, target)
    with pytest.raises(Conflict):
        ensure_transition(current, target)


def test_terminal_and_cancellable_sets():
    assert TERMINAL_STATUSES == {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
    assert CANCELLABLE_STATUSES == {BookingStatus.PENDING, BookingStatus.ASSIGNED}
    assert set(ALLOWED_TRANSITIONS) == set(BookingStatus)
