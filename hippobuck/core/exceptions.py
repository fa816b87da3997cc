"""Business errors raised by the booking engine.

Routes never build these responses by hand; the handlers registered in
``hippobuck.main`` turn them into ``{"detail": ..., "code": ...}`` bodies.
"""
from decimal import Decimal
from typing import Any


class BookingEngineError(Exception):
    status_code = 400
    code = "BOOKING_ERROR"
    retryable = False

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        out = {"detail": self.message, "code": self.code}
        for k, v in self.extra.items():
            out[k] = float(v) if isinstance(v, Decimal) else v
        return out


class ValidationError(BookingEngineError):
    """Malformed or out-of-policy input. Never retried."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, rule: str = "", **extra: Any):
        super().__init__(message, rule=rule, **extra)
        self.rule = rule


class NotFound(BookingEngineError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} {key} not found", entity=entity, key=key)
        self.entity = entity
        self.key = key


class InsufficientAvailability(BookingEngineError):
    """Supply shortage: the caller has to change the request."""
    status_code = 409
    code = "INSUFFICIENT_AVAILABILITY"

    def __init__(self, message: str, room_type_id: str | None = None, available: int = 0,
                 requested: int = 0, room_id: str | None = None):
        super().__init__(message, roomTypeId=room_type_id, available=available,
                         requested=requested, roomId=room_id)
        self.room_type_id = room_type_id
        self.available = available
        self.requested = requested
        self.room_id = room_id

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.available, 0)


class OverpaymentError(BookingEngineError):
    code = "OVERPAYMENT"

    def __init__(self, amount: Decimal, remaining_balance: Decimal):
        super().__init__(
            f"Payment amount ({amount}) exceeds remaining balance ({remaining_balance})",
            remainingBalance=remaining_balance,
        )
        self.amount = amount
        self.remaining_balance = remaining_balance


class BookingConflict(BookingEngineError):
    """Lost a race against a concurrent writer; safe to re-run allocation."""
    status_code = 409
    code = "BOOKING_CONFLICT"
    retryable = True


class InvalidStatusTransition(BookingEngineError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, event: str):
        super().__init__(f"Cannot apply {event} to a booking in status {current}",
                         status=current, event=event)
        self.current = current
        self.event = event


class PriceChangeNotConfirmed(BookingEngineError):
    status_code = 409
    code = "PRICE_CHANGE_NOT_CONFIRMED"

    def __init__(self, preview: dict):
        super().__init__(
            f"Price changes by {preview['difference']}; confirm the new total to apply",
            preview=_jsonable(preview),
        )
        self.preview = preview


def _jsonable(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
