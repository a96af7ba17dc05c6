from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class ScreeningIn(BaseModel):
    hall_id: int
    movie_title: Optional[str] = None
    start_time: datetime
    end_time: datetime
    base_price: Decimal = Field(..., ge=0, decimal_places=2)
    promotion_percent: Optional[int] = Field(None, ge=0, le=100)


class ScreeningOut(BaseModel):
    id: int
    hall_id: int
    movie_title: Optional[str] = None
    start_time: datetime
    end_time: datetime
    base_price: Decimal
    promotion_percent: Optional[int] = None


class AvailableSeatOut(BaseModel):
    id: int
    seat_number: str
    seat_type: str
    price: Decimal


class OccupancyOut(BaseModel):
    session_id: int
    total_seats: int
    booked_seats: int
    available_seats: int
    occupancy_percentage: float
