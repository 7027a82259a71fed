"""
Flight schemas for request/response validation.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from ..models.flight import CabinClass, FlightStatus
from .common import PaginationInfo, RequestModel, UTCDateTime


class FlightCreate(RequestModel):
    """Schema for creating a new flight."""

    flight_number: str = Field(..., min_length=3, max_length=20, description="Carrier flight number")
    airline: str = Field(..., min_length=1, max_length=100)
    from_location: str = Field("", max_length=255, description="Departure city")
    from_airport: str = Field(..., min_length=1, max_length=10, description="Departure airport code")
    to_location: str = Field("", max_length=255, description="Arrival city")
    to_airport: str = Field(..., min_length=1, max_length=10, description="Arrival airport code")
    departure_time: UTCDateTime
    arrival_time: UTCDateTime
    duration: int = Field(..., ge=1, description="Duration in minutes")
    price: Decimal = Field(..., ge=0, decimal_places=2)
    total_seats: int = Field(
        ...,
        ge=1,
        validation_alias=AliasChoices("seats", "totalSeats", "total_seats"),
        description="Seat capacity"
    )
    cabin_class: CabinClass = Field(
        CabinClass.ECONOMY,
        validation_alias=AliasChoices("class", "cabinClass", "cabin_class")
    )

    @model_validator(mode="after")
    def arrival_after_departure(self):
        if self.arrival_time <= self.departure_time:
            raise ValueError("arrival_time must be after departure_time")
        return self


class FlightUpdate(RequestModel):
    """Schema for a partial flight update."""

    flight_number: Optional[str] = Field(None, min_length=3, max_length=20)
    airline: Optional[str] = Field(None, min_length=1, max_length=100)
    from_location: Optional[str] = Field(None, max_length=255)
    from_airport: Optional[str] = Field(None, min_length=1, max_length=10)
    to_location: Optional[str] = Field(None, max_length=255)
    to_airport: Optional[str] = Field(None, min_length=1, max_length=10)
    departure_time: Optional[UTCDateTime] = None
    arrival_time: Optional[UTCDateTime] = None
    duration: Optional[int] = Field(None, ge=1)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    total_seats: Optional[int] = Field(
        None,
        ge=1,
        validation_alias=AliasChoices("seats", "totalSeats", "total_seats")
    )
    available_seats: Optional[int] = Field(None, ge=0)
    cabin_class: Optional[CabinClass] = Field(
        None,
        validation_alias=AliasChoices("class", "cabinClass", "cabin_class")
    )
    status: Optional[FlightStatus] = None


class FlightResponse(BaseModel):
    """Schema for flight response."""

    id: UUID
    flight_number: str
    airline: str
    from_location: str
    from_airport: str
    to_location: str
    to_airport: str
    departure_time: UTCDateTime
    arrival_time: UTCDateTime
    duration: int
    cabin_class: CabinClass
    price: Decimal
    total_seats: int
    available_seats: int
    status: FlightStatus
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = ConfigDict(from_attributes=True)


class FlightSummary(BaseModel):
    """Flight fields embedded in booking listings."""

    id: UUID
    flight_number: str
    airline: str
    from_location: str
    from_airport: str
    to_location: str
    to_airport: str
    departure_time: UTCDateTime
    arrival_time: UTCDateTime
    duration: int
    cabin_class: CabinClass
    price: Decimal
    status: FlightStatus

    model_config = ConfigDict(from_attributes=True)


class SortField(str, Enum):
    """Columns flight search results may be ordered by."""
    DEPARTURE_TIME = "departure_time"
    ARRIVAL_TIME = "arrival_time"
    PRICE = "price"
    DURATION = "duration"
    AVAILABLE_SEATS = "available_seats"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FlightFilters(BaseModel):
    """Schema for flight search parameters."""

    from_airport: Optional[str] = Field(None, description="Departure airport, substring match")
    to_airport: Optional[str] = Field(None, description="Arrival airport, substring match")
    departure_date: Optional[date] = Field(None, description="Departure day (UTC)")
    return_date: Optional[date] = Field(None, description="Return departure day (UTC)")
    passengers: int = Field(1, ge=1, le=10, description="Seats required")
    cabin_class: Optional[CabinClass] = None
    sort: SortField = SortField.DEPARTURE_TIME
    order: SortOrder = SortOrder.ASC


class FlightSearchResponse(BaseModel):
    """Schema for flight search results."""

    flights: List[FlightResponse]
    return_flights: List[FlightResponse] = Field(default_factory=list, serialization_alias="returnFlights")
    pagination: PaginationInfo


class FlightEnvelope(BaseModel):
    """Single flight response."""

    message: Optional[str] = None
    flight: FlightResponse


class PopularRoute(BaseModel):
    route: str
    count: int


class PopularRoutesResponse(BaseModel):
    popular_routes: List[PopularRoute] = Field(serialization_alias="popularRoutes")
