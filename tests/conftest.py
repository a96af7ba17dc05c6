import os

# settings are read at import time; point them at throwaway targets before boxoffice loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./boxoffice-test.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Dict
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from boxoffice.clock import utcnow
from boxoffice.models import Base, Hall, Screening, Seat, SeatType, User, Voucher
from boxoffice.services.engine import BookingEngine
from boxoffice.services.payment_gateway import SimulatedAdapter


@dataclass
class Cinema:
    user_id: int
    other_user_id: int
    hall_id: int
    screening_id: int
    seats: Dict[str, int]


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'boxoffice.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.fixture
def gateway():
    return SimulatedAdapter(secret="whsec_test")


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.booking_confirmed = AsyncMock()
    return mock


@pytest.fixture
def engine(session_factory, gateway, notifier):
    return BookingEngine(session_factory, gateway, notifier)


@pytest_asyncio.fixture(scope="function")
async def cinema(session_factory) -> Cinema:
    """One hall with four seats (A1, A2 Normal; A3 VIP; A4 Reduced) and a screening priced at 10."""
    start = utcnow() + timedelta(days=1)
    async with session_factory() as db:
        async with db.begin():
            user = User(email="ana@example.com", full_name="Ana Lopes")
            other = User(email="rui@example.com", full_name="Rui Costa")
            hall = Hall(name="Sala 1", cinema_name="Cinema Central")
            db.add_all([user, other, hall])
            await db.flush()
            seats = [
                Seat(hall_id=hall.id, seat_number="A1", seat_type=SeatType.NORMAL.value),
                Seat(hall_id=hall.id, seat_number="A2", seat_type=SeatType.NORMAL.value),
                Seat(hall_id=hall.id, seat_number="A3", seat_type=SeatType.VIP.value),
                Seat(hall_id=hall.id, seat_number="A4", seat_type=SeatType.REDUCED.value),
            ]
            screening = Screening(
                hall_id=hall.id,
                movie_title="Arrival",
                start_time=start,
                end_time=start + timedelta(hours=2),
                base_price=Decimal("10.00"),
            )
            db.add_all(seats + [screening])
            await db.flush()
            return Cinema(
                user_id=user.id,
                other_user_id=other.id,
                hall_id=hall.id,
                screening_id=screening.id,
                seats={s.seat_number: s.id for s in seats},
            )


@pytest.fixture
def make_voucher(session_factory):
    async def _make(code="SPRING10", value="0.10", max_usages=5, usages=0, valid_for=timedelta(days=30)) -> int:
        async with session_factory() as db:
            async with db.begin():
                voucher = Voucher(
                    code=code,
                    value=Decimal(value),
                    valid_until=utcnow() + valid_for,
                    max_usages=max_usages,
                    usages=usages,
                )
                db.add(voucher)
                await db.flush()
                return voucher.id

    return _make
