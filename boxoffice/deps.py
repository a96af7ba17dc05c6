from fastapi import Depends

from boxoffice.config import settings
from boxoffice.db.session import async_session
from boxoffice.db.transaction import SessionFactory
from boxoffice.services.confirmation import BookingNotifier, CeleryNotifier
from boxoffice.services.engine import BookingEngine
from boxoffice.services.payment_gateway import BaseAdapter, get_adapter


def get_session_factory() -> SessionFactory:
    return async_session


def get_gateway() -> BaseAdapter:
    return get_adapter(settings.PAYMENT_PROVIDER)


def get_notifier() -> BookingNotifier:
    return CeleryNotifier()


def get_engine(
    session_factory: SessionFactory = Depends(get_session_factory),
    gateway: BaseAdapter = Depends(get_gateway),
    notifier: BookingNotifier = Depends(get_notifier),
) -> BookingEngine:
    return BookingEngine(session_factory, gateway, notifier)
