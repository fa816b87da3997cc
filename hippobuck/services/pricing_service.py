"""Nightly rate resolution for a room type.

The same ``calculate_room_price`` is used when quoting availability, when
creating a booking and when previewing or applying an edit, so a guest is
always charged what they were shown.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from hippobuck.core.config import settings
from hippobuck.core.constants import Region, Occupancy
from hippobuck.core.exceptions import NotFound, ValidationError
from hippobuck.models.room import RoomType
from hippobuck.models.seasonal_pricing import SeasonalPricing

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class PriceQuote:
    room_type_id: str
    price_per_night: Decimal
    total_price: Decimal
    nights: int
    currency: str
    region: str
    occupancy: str
    seasonal_pricing_id: str | None = None

    def as_dict(self) -> dict:
        return {
            "roomTypeId": self.room_type_id,
            "pricePerNight": self.price_per_night,
            "totalPrice": self.total_price,
            "nights": self.nights,
            "currency": self.currency,
            "region": self.region,
            "occupancy": self.occupancy,
            "seasonalPricingId": self.seasonal_pricing_id,
        }


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def count_nights(check_in: date | datetime, check_out: date | datetime) -> int:
    """Whole nights between two dates; partial days round up."""
    if isinstance(check_in, datetime) or isinstance(check_out, datetime):
        seconds = (_as_datetime(check_out) - _as_datetime(check_in)).total_seconds()
        return math.ceil(seconds / 86400)
    return (check_out - check_in).days


def _as_datetime(d: date | datetime) -> datetime:
    if isinstance(d, datetime):
        return d
    return datetime(d.year, d.month, d.day)


def resolve_region(country: str | None) -> str:
    c = (country or settings.DEFAULT_GUEST_COUNTRY).strip().lower()
    return Region.DOMESTIC if c in settings.domestic_countries else Region.INTERNATIONAL


def resolve_occupancy(adults: int) -> str:
    return Occupancy.SINGLE if adults == 1 else Occupancy.DOUBLE


def currency_for(region: str) -> str:
    return settings.DOMESTIC_CURRENCY if region == Region.DOMESTIC else settings.INTL_CURRENCY


def base_rate(room_type: RoomType, region: str, occupancy: str) -> Decimal:
    if region not in Region.ALL:
        raise ValidationError(f"Unknown region {region}", rule="region")
    if occupancy not in Occupancy.ALL:
        raise ValidationError(f"Unknown occupancy {occupancy}", rule="occupancy")
    table = {
        (Region.DOMESTIC, Occupancy.SINGLE): room_type.single_price_domestic,
        (Region.DOMESTIC, Occupancy.DOUBLE): room_type.double_price_domestic,
        (Region.INTERNATIONAL, Occupancy.SINGLE): room_type.single_price_intl,
        (Region.INTERNATIONAL, Occupancy.DOUBLE): room_type.double_price_intl,
    }
    return Decimal(table[(region, occupancy)])


def get_applicable_seasonal_pricing(db: Session, room_type_id: str, check_in: date, check_out: date) -> SeasonalPricing | None:
    """Active entry whose [start, end] touches the stay [check_in, check_out).

    Highest multiplier wins; equal multipliers fall back to the most recent
    start date, then creation time.
    """
    return db.execute(
        select(SeasonalPricing)
        .where(
            SeasonalPricing.room_type_id == room_type_id,
            SeasonalPricing.is_active == True,  # noqa: E712
            SeasonalPricing.start_date < check_out,
            SeasonalPricing.end_date >= check_in,
        )
        .order_by(
            SeasonalPricing.price_multiplier.desc(),
            SeasonalPricing.start_date.desc(),
            SeasonalPricing.created_at.desc(),
        )
        .limit(1)
    ).scalar_one_or_none()


def apply_seasonal(rate: Decimal, season: SeasonalPricing | None) -> Decimal:
    if season is None:
        return rate
    # fixed price replaces the rate outright, it does not compose with the multiplier
    if season.fixed_price is not None:
        return Decimal(season.fixed_price)
    return rate * Decimal(season.price_multiplier)


def calculate_room_price(db: Session, room_type_id: str, check_in: date, check_out: date,
                         region: str, occupancy: str) -> PriceQuote:
    room_type = db.get(RoomType, room_type_id)
    if not room_type:
        raise NotFound("RoomType", room_type_id)

    nights = count_nights(check_in, check_out)
    if nights <= 0:
        raise ValidationError("Check-out date must be after check-in date", rule="check_out_after_check_in")

    season = get_applicable_seasonal_pricing(db, room_type_id, check_in, check_out)
    price_per_night = money(apply_seasonal(base_rate(room_type, region, occupancy), season))
    if season is not None:
        logger.debug("room type %s priced with seasonal entry %s", room_type_id, season.id)

    return PriceQuote(
        room_type_id=room_type_id,
        price_per_night=price_per_night,
        total_price=money(price_per_night * nights),
        nights=nights,
        currency=currency_for(region),
        region=region,
        occupancy=occupancy,
        seasonal_pricing_id=season.id if season else None,
    )
