from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class ReserveRequest(BaseModel):
    session_id: int
    user_id: int
    seat_ids: List[int] = Field(..., min_length=1, description="Seats of the session's hall to reserve")


class BookingSeatOut(BaseModel):
    seat_id: int
    price: Decimal


class BookingResponse(BaseModel):
    booking_id: int
    session_id: int
    user_id: Optional[int] = None
    status: str
    total_amount: Decimal
    created_at: datetime
    expires_at: datetime
    seats: List[BookingSeatOut]
