import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.clock import as_utc, utcnow
from boxoffice.db.transaction import SessionFactory, run_atomic
from boxoffice.metrics import VOUCHER_USAGES
from boxoffice.models.models import Voucher
from boxoffice.services.errors import EngineError, ErrorKind
from boxoffice.services.pricing import round_money

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_letters + string.digits
CODE_LENGTH = 12
# the value column is Numeric(5, 2)
MIN_VALUE = Decimal("0.01")
MAX_VALUE = Decimal("0.99")


@dataclass(frozen=True)
class VoucherApplication:
    voucher_id: int
    code: str
    discount: Decimal
    discounted_amount: Decimal


def discount_for(amount: Decimal, value: Decimal) -> Decimal:
    return round_money(Decimal(amount) * Decimal(value))


def check_usable(voucher: Optional[Voucher], now: datetime) -> Voucher:
    """Validate a voucher in the order: exists, not expired, not depleted, sane value."""
    if voucher is None:
        raise EngineError(ErrorKind.VOUCHER_NOT_FOUND, "Voucher was not found")
    if as_utc(voucher.valid_until) < now:
        raise EngineError(ErrorKind.VOUCHER_EXPIRED, "Voucher is expired", {"code": voucher.code})
    if voucher.usages >= voucher.max_usages:
        raise EngineError(ErrorKind.VOUCHER_DEPLETED, "Voucher has no usages left", {"code": voucher.code})
    if not Decimal(0) < Decimal(voucher.value) < Decimal(1):
        raise EngineError(ErrorKind.INVALID_VOUCHER_VALUE, "Stored voucher value is outside (0, 1)", {"code": voucher.code})
    return voucher


async def find_by_code(db: AsyncSession, code: str) -> Optional[Voucher]:
    res = await db.execute(sa_select(Voucher).where(Voucher.code == code))
    return res.scalars().first()


async def apply_voucher(db: AsyncSession, amount: Decimal, code: str, now: Optional[datetime] = None) -> VoucherApplication:
    """Compute the discounted amount for ``code``. Does not consume a usage."""
    if not code or not code.strip():
        raise EngineError(ErrorKind.VALIDATION, "Voucher code is required")
    now = now or utcnow()
    voucher = check_usable(await find_by_code(db, code.strip()), now)
    discount = discount_for(amount, voucher.value)
    return VoucherApplication(
        voucher_id=voucher.id,
        code=voucher.code,
        discount=discount,
        discounted_amount=Decimal(amount) - discount,
    )


async def confirm_usage(db: AsyncSession, voucher_id: int) -> bool:
    """Consume one usage. Must run inside the payment transition's transaction.

    Returns False when the voucher was depleted in the meantime; usages never
    exceed max_usages.
    """
    stmt = (
        sa_update(Voucher)
        .where(Voucher.id == voucher_id)
        .where(Voucher.usages < Voucher.max_usages)
        .values(usages=Voucher.usages + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    consumed = res.rowcount == 1
    VOUCHER_USAGES.labels(result="consumed" if consumed else "depleted").inc()
    if not consumed:
        logger.warning("voucher %s could not be consumed: no usages left", voucher_id)
    return consumed


def validate_fields(code: str, value: Decimal, valid_until: datetime, max_usages: int, now: datetime) -> None:
    if not code or len(code) > 16:
        raise EngineError(ErrorKind.VALIDATION, "Voucher code must be 1..16 characters")
    value = Decimal(value)
    if not MIN_VALUE <= value <= MAX_VALUE or value != value.quantize(MIN_VALUE):
        raise EngineError(
            ErrorKind.INVALID_VOUCHER_VALUE,
            "Voucher value must be between 0.01 and 0.99 with at most two decimals",
            {"value": str(value)},
        )
    if as_utc(valid_until) <= now:
        raise EngineError(ErrorKind.VALIDATION, "The expiration date must be in the future")
    if max_usages < 1:
        raise EngineError(ErrorKind.VALIDATION, "A voucher needs at least one usage")


async def create_voucher(
    session_factory: SessionFactory,
    code: str,
    value: Decimal,
    valid_until: datetime,
    max_usages: int,
    now: Optional[datetime] = None,
) -> Voucher:
    now = now or utcnow()
    value = Decimal(value)
    validate_fields(code, value, valid_until, max_usages, now)

    async def _work(db: AsyncSession) -> Voucher:
        if await find_by_code(db, code) is not None:
            raise EngineError(ErrorKind.VALIDATION, "A voucher with this code already exists", {"code": code})
        voucher = Voucher(code=code, value=value, valid_until=valid_until, max_usages=max_usages, usages=0, created_at=now, updated_at=now)
        db.add(voucher)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise EngineError(ErrorKind.VALIDATION, "A voucher with this code already exists", {"code": code}) from exc
        return voucher

    voucher = await run_atomic(session_factory, _work, name="create_voucher")
    logger.info("created voucher %s value=%s max_usages=%s", voucher.code, voucher.value, voucher.max_usages)
    return voucher


def random_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


async def generate_voucher(session_factory: SessionFactory, now: Optional[datetime] = None) -> Voucher:
    """Issue a random promotional voucher: 5-15% off, valid for a month, 1-5 usages."""
    now = now or utcnow()
    value = Decimal(5 + secrets.randbelow(11)) / Decimal(100)
    return await create_voucher(
        session_factory,
        code=random_code(),
        value=value,
        valid_until=now + timedelta(days=30),
        max_usages=1 + secrets.randbelow(5),
        now=now,
    )


async def voucher_performance(db: AsyncSession) -> List[Dict]:
    res = await db.execute(sa_select(Voucher))
    rows = []
    for v in res.scalars().all():
        pct = round(v.usages / v.max_usages * 100, 1) if v.max_usages > 0 else 0.0
        rows.append({
            "code": v.code,
            "usages": v.usages,
            "max_usages": v.max_usages,
            "usage_percentage": pct,
            "is_depleted": v.usages >= v.max_usages,
        })
    rows.sort(key=lambda r: r["usage_percentage"], reverse=True)
    return rows
