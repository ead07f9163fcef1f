"""Reservation lifecycle rules

status and payment_status are independent fields; only cancellation moves
both at once.
"""
import logging

from domain.enums import ReservationStatus, PaymentStatus
from domain.errors import StateError

logger = logging.getLogger(__name__)

# Fields reservation_date, people_count and notes may change only here
EDITABLE_STATUSES = frozenset({ReservationStatus.PENDING})
CANCELLABLE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({ReservationStatus.COMPLETED, ReservationStatus.CANCELLED})

INITIAL_STATUS = ReservationStatus.PENDING
INITIAL_PAYMENT_STATUS = PaymentStatus.PENDING


def is_editable(status: ReservationStatus) -> bool:
    return status in EDITABLE_STATUSES


def is_cancellable(status: ReservationStatus) -> bool:
    return status in CANCELLABLE_STATUSES


def ensure_editable(status: ReservationStatus) -> None:
    if not is_editable(status):
        raise StateError(f"Cannot update a reservation in status {status.value}")


def ensure_cancellable(status: ReservationStatus) -> None:
    if not is_cancellable(status):
        raise StateError(f"Cannot cancel a reservation with status {status.value}")


def check_status_change(current: ReservationStatus, target: ReservationStatus) -> None:
    """Admin status changes accept any target value.

    Leaving a terminal state is allowed but logged so it can be audited.
    """
    if current in TERMINAL_STATUSES and target != current:
        logger.warning("Reservation status moved out of terminal state %s to %s",
                       current.value, target.value)
