"""Pydantic schemas shared across the services.

Request bodies accept the camelCase field names the browser client sends;
responses are serialized from ORM objects.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from .models import BookingStatus, RoleEnum

# Kept as Decimal in Python; written to JSON as a number.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class HotelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=500)
    contact: str = Field(..., min_length=1, max_length=50)
    city: str = Field(..., min_length=1, max_length=100)


class HotelSummary(BaseModel):
    id: int
    name: str
    address: str
    city: str

    model_config = {"from_attributes": True}


class HotelRead(HotelSummary):
    contact: str
    owner_id: str
    created_at: datetime


class RoomCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_type: str = Field(..., alias="roomType", min_length=1, max_length=100)
    price_per_night: Decimal = Field(..., alias="pricePerNight", gt=0, decimal_places=2)
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)


class RoomSummary(BaseModel):
    id: int
    room_type: str
    price_per_night: Money
    images: List[str]

    model_config = {"from_attributes": True}


class RoomRead(RoomSummary):
    hotel_id: int
    amenities: List[str]
    is_available: bool
    created_at: datetime
    hotel: HotelSummary


class RoomToggle(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int = Field(..., alias="roomId")


class AvailabilityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int = Field(..., alias="room")
    check_in_date: date = Field(..., alias="checkInDate")
    check_out_date: date = Field(..., alias="checkOutDate")


class BookingCreate(AvailabilityRequest):
    # Range checks happen in the booking core so they surface as ValidationError.
    guests: int = 1


class PaymentUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_paid: bool = Field(True, alias="isPaid")


class BookingRead(BaseModel):
    id: int
    user_id: str
    room_id: int
    hotel_id: int
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    total_price: Money
    status: BookingStatus
    payment_method: str
    is_paid: bool
    created_at: datetime
    room: RoomSummary
    hotel: HotelSummary

    model_config = {"from_attributes": True}


class DashboardRead(BaseModel):
    total_bookings: int = Field(..., serialization_alias="totalBookings")
    total_revenue: Money = Field(..., serialization_alias="totalRevenue")
    bookings: List[BookingRead]


class UserData(BaseModel):
    role: RoleEnum
    recent_searched_cities: List[str] = Field(default_factory=list, serialization_alias="recentSearchedCities")


class RecentSearch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recent_searched_city: str = Field(..., alias="recentSearchedCity", min_length=1, max_length=100)
