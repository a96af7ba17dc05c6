from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal


class PaymentInitiateRequest(BaseModel):
    booking_id: int
    voucher_code: Optional[str] = Field(None, max_length=16)


class PaymentInitiateResponse(BaseModel):
    booking_id: int
    payment_id: int
    intent_id: str
    client_secret: str
    amount: Decimal
    currency: str
    voucher_code: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    intent_id: str
    booking_id: int
    status: str
    provider_status: Optional[str] = None
    booking_confirmed: bool = False


class WebhookAck(BaseModel):
    received: bool
    status: Optional[str] = None
