"""Single source of booking status transitions.

Creation, payments, gateway callbacks, edits, front-desk actions and the
scheduled jobs all ask ``next_status`` instead of deciding inline.
"""
from hippobuck.core.constants import BookingStatus as S
from hippobuck.core.exceptions import InvalidStatusTransition


class BookingEvent:
    PAYMENT_SETTLED = "PAYMENT_SETTLED"  # paid_amount reached total_amount
    STAFF_CONFIRM = "STAFF_CONFIRM"
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"
    CANCEL = "CANCEL"
    NO_SHOW = "NO_SHOW"
    EXPIRE = "EXPIRE"  # PENDING past its check-in date


TRANSITIONS: dict[tuple[str, str], str] = {
    (S.PENDING, BookingEvent.PAYMENT_SETTLED): S.CONFIRMED,
    (S.PENDING, BookingEvent.STAFF_CONFIRM): S.CONFIRMED,
    (S.CONFIRMED, BookingEvent.CHECK_IN): S.CHECKED_IN,
    (S.CHECKED_IN, BookingEvent.CHECK_OUT): S.CHECKED_OUT,
    (S.PENDING, BookingEvent.CANCEL): S.CANCELLED,
    (S.CONFIRMED, BookingEvent.CANCEL): S.CANCELLED,
    (S.CHECKED_IN, BookingEvent.CANCEL): S.CANCELLED,
    (S.PENDING, BookingEvent.NO_SHOW): S.NO_SHOW,
    (S.CONFIRMED, BookingEvent.NO_SHOW): S.NO_SHOW,
    (S.PENDING, BookingEvent.EXPIRE): S.CANCELLED,
}

# settling the balance later in the stay leaves the status alone
NO_OP: set[tuple[str, str]] = {
    (S.CONFIRMED, BookingEvent.PAYMENT_SETTLED),
    (S.CHECKED_IN, BookingEvent.PAYMENT_SETTLED),
    (S.CHECKED_OUT, BookingEvent.PAYMENT_SETTLED),
}


def next_status(current: str, event: str) -> str:
    if (current, event) in NO_OP:
        return current
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidStatusTransition(current, event)


def can_apply(current: str, event: str) -> bool:
    return (current, event) in TRANSITIONS or (current, event) in NO_OP


def initial_status(total_amount, paid_amount, staff_confirm: bool) -> str:
    """Status a brand-new booking starts in."""
    status = S.PENDING
    if staff_confirm:
        status = next_status(status, BookingEvent.STAFF_CONFIRM)
    elif paid_amount >= total_amount:
        status = next_status(status, BookingEvent.PAYMENT_SETTLED)
    return status
