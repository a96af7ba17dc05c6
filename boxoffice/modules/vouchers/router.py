from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_session
from boxoffice.deps import get_engine
from boxoffice.http_errors import unwrap_or_raise
from boxoffice.models.models import Voucher
from boxoffice.schemas.voucher import VoucherApplyRequest, VoucherApplyResponse, VoucherCreate, VoucherOut
from boxoffice.services import vouchers
from boxoffice.services.engine import BookingEngine, guard

router = APIRouter()


def to_out(voucher: Voucher) -> VoucherOut:
    return VoucherOut(
        id=voucher.id,
        code=voucher.code,
        value=voucher.value,
        valid_until=voucher.valid_until,
        max_usages=voucher.max_usages,
        usages=voucher.usages,
    )


@router.post("/", response_model=VoucherOut, status_code=status.HTTP_201_CREATED)
async def create_voucher(req: VoucherCreate, engine: BookingEngine = Depends(get_engine)):
    voucher = unwrap_or_raise(await engine.create_voucher(req.code, req.value, req.valid_until, req.max_usages))
    return to_out(voucher)


@router.post("/generate", response_model=VoucherOut, status_code=status.HTTP_201_CREATED)
async def generate_voucher(engine: BookingEngine = Depends(get_engine)):
    return to_out(unwrap_or_raise(await engine.generate_voucher()))


@router.post("/apply", response_model=VoucherApplyResponse)
async def preview_voucher(req: VoucherApplyRequest, db: AsyncSession = Depends(get_session)):
    """Price an amount with a voucher without consuming a usage."""
    application = unwrap_or_raise(await guard("apply_voucher", vouchers.apply_voucher(db, req.amount, req.code)))
    return VoucherApplyResponse(code=application.code, discount=application.discount, discounted_amount=application.discounted_amount)


@router.get("/performance")
async def voucher_performance(db: AsyncSession = Depends(get_session)):
    return unwrap_or_raise(await guard("voucher_performance", vouchers.voucher_performance(db)))
