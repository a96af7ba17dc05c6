from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from boxoffice.models.models import SeatType


MINOR_UNIT = Decimal("0.01")

SEAT_MULTIPLIERS: Dict[str, Decimal] = {
    SeatType.NORMAL.value: Decimal("1.0"),
    SeatType.VIP.value: Decimal("1.5"),
    SeatType.REDUCED.value: Decimal("1.25"),
}


def round_money(amount: Decimal) -> Decimal:
    """Round to the currency minor unit, halves away from zero."""
    sign = -1 if amount < 0 else 1
    return (abs(amount).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)) * sign


def multiplier_for(seat_type: str) -> Decimal:
    for name, factor in SEAT_MULTIPLIERS.items():
        if name.lower() == (seat_type or "").lower():
            return factor
    raise ValueError(f"Unknown seat type: {seat_type!r}")


@dataclass(frozen=True)
class SeatQuote:
    seat_id: int
    seat_type: str
    price: Decimal


@dataclass(frozen=True)
class PriceQuote:
    seats: List[SeatQuote]
    total: Decimal


def seat_price(base_price: Decimal, seat_type: str, promotion_percent: Optional[int] = None) -> Decimal:
    price = Decimal(base_price) * multiplier_for(seat_type)
    if promotion_percent:
        price -= price * Decimal(promotion_percent) / Decimal(100)
    return round_money(price)


def quote(base_price: Decimal, promotion_percent: Optional[int], seats: Iterable) -> PriceQuote:
    """Price each seat (anything with ``id`` and ``seat_type``) for one screening.

    Negative base prices and promotions outside 0..100 are rejected; those are
    stored invariants of a screening, not user input.
    """
    base_price = Decimal(base_price)
    if base_price < 0:
        raise ValueError("base price must not be negative")
    if promotion_percent is not None and not 0 <= promotion_percent <= 100:
        raise ValueError("promotion must be within 0..100")

    quotes = [SeatQuote(seat.id, seat.seat_type, seat_price(base_price, seat.seat_type, promotion_percent)) for seat in seats]
    total = round_money(sum((q.price for q in quotes), Decimal("0")))
    return PriceQuote(seats=quotes, total=total)
