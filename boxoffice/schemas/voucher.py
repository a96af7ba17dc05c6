from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal


class VoucherCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=16)
    value: Decimal = Field(..., decimal_places=2, description="Fraction of the amount taken off, 0.01 to 0.99")
    valid_until: datetime
    max_usages: int = Field(..., ge=1)


class VoucherOut(BaseModel):
    id: int
    code: str
    value: Decimal
    valid_until: datetime
    max_usages: int
    usages: int


class VoucherApplyRequest(BaseModel):
    code: str
    amount: Decimal = Field(..., gt=0)


class VoucherApplyResponse(BaseModel):
    code: str
    discount: Decimal
    discounted_amount: Decimal
