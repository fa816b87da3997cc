class UserRole:
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    HOUSEKEEPING = "HOUSEKEEPING"

    ALL = (ADMIN, MANAGER, STAFF, HOUSEKEEPING)
    # Roles allowed to take bookings and payments at the front desk.
    FRONT_DESK = (ADMIN, MANAGER, STAFF)


class RoomStatus:
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    OCCUPIED = "OCCUPIED"
    CLEANING = "CLEANING"
    MAINTENANCE = "MAINTENANCE"

    ALL = (AVAILABLE, RESERVED, OCCUPIED, CLEANING, MAINTENANCE)
    # Operational filter for the candidate pool; date overlap is still authoritative.
    BOOKABLE = (AVAILABLE, RESERVED)


class BookingStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    ALL = (PENDING, CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED, NO_SHOW)
    EDITABLE = (PENDING, CONFIRMED)


class PaymentMethod:
    CASH = "CASH"
    MPESA = "MPESA"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"

    ALL = (CASH, MPESA, CREDIT_CARD, DEBIT_CARD, BANK_TRANSFER, CHEQUE)


class PaymentStatus:
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIAL = "PARTIAL"

    ALL = (PENDING, COMPLETED, FAILED, REFUNDED, PARTIAL)


class Region:
    DOMESTIC = "DOMESTIC"
    INTERNATIONAL = "INTERNATIONAL"

    ALL = (DOMESTIC, INTERNATIONAL)


class Occupancy:
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"

    ALL = (SINGLE, DOUBLE)
