from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class RoomTypeOut(BaseModel):
    id: str
    name: str
    slug: str
    description: str = ""
    bedType: str = ""
    sizeSqm: Optional[int] = None
    maxOccupancy: int
    singleDomesticPrice: Decimal
    doubleDomesticPrice: Decimal
    singleInternationalPrice: Decimal
    doubleInternationalPrice: Decimal
    amenities: List[str] = []
    imageUrls: List[str] = []


class PriceCheckRequest(BaseModel):
    roomTypeId: str
    checkIn: date
    checkOut: date
    region: str = "DOMESTIC"
    occupancy: str = "DOUBLE"


class SeasonalPricingIn(BaseModel):
    roomTypeId: str
    name: str
    startDate: date
    endDate: date
    priceMultiplier: Decimal = Field(default=Decimal("1.00"), gt=0)
    fixedPrice: Optional[Decimal] = Field(default=None, gt=0)
    isActive: bool = True


class RoomStatusUpdate(BaseModel):
    status: str


class RoomTypeIn(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1, max_length=100)
    description: str = ""
    bedType: str = ""
    sizeSqm: Optional[int] = Field(default=None, gt=0)
    maxOccupancy: int = Field(default=2, ge=1)
    singleDomesticPrice: Decimal = Field(gt=0)
    doubleDomesticPrice: Decimal = Field(gt=0)
    singleInternationalPrice: Decimal = Field(gt=0)
    doubleInternationalPrice: Decimal = Field(gt=0)
    amenities: List[str] = []
    imageUrls: List[str] = []
    isActive: bool = True


class RoomTypeUpdate(BaseModel):
    # price changes apply to new quotes only; booked lines keep their frozen rates
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    bedType: Optional[str] = None
    sizeSqm: Optional[int] = Field(default=None, gt=0)
    maxOccupancy: Optional[int] = Field(default=None, ge=1)
    singleDomesticPrice: Optional[Decimal] = Field(default=None, gt=0)
    doubleDomesticPrice: Optional[Decimal] = Field(default=None, gt=0)
    singleInternationalPrice: Optional[Decimal] = Field(default=None, gt=0)
    doubleInternationalPrice: Optional[Decimal] = Field(default=None, gt=0)
    amenities: Optional[List[str]] = None
    imageUrls: Optional[List[str]] = None
    isActive: Optional[bool] = None


class RoomIn(BaseModel):
    roomNumber: str = Field(min_length=1, max_length=20)
    roomTypeId: str
    floor: Optional[int] = None
    status: str = "AVAILABLE"
    isActive: bool = True


class RoomUpdate(BaseModel):
    roomNumber: Optional[str] = Field(default=None, min_length=1, max_length=20)
    roomTypeId: Optional[str] = None
    floor: Optional[int] = None
    isActive: Optional[bool] = None
