# Import every model so Base.metadata is complete (Alembic, create_all in tests).
from hippobuck.db.session import Base  # noqa: F401
from hippobuck.models.user import User  # noqa: F401
from hippobuck.models.room import RoomType, Room  # noqa: F401
from hippobuck.models.seasonal_pricing import SeasonalPricing  # noqa: F401
from hippobuck.models.booking import Booking, BookingRoom  # noqa: F401
from hippobuck.models.payment import Payment  # noqa: F401
from hippobuck.models.audit_log import AuditLog  # noqa: F401
from hippobuck.models.email_log import EmailLog  # noqa: F401
