"""Menu and canteen settings lookups used by the order service."""

from sqlmodel import Session, select

from .models import CanteenSettings, MenuItem
from .settings import settings


def find_menu_item(session: Session, menu_item_id: int) -> MenuItem | None:
    return session.get(MenuItem, menu_item_id)


def get_current_settings(session: Session) -> CanteenSettings:
    """Return the settings record, creating the default one on first use."""
    current = session.exec(select(CanteenSettings).order_by(CanteenSettings.id)).first()
    if current is None:
        current = CanteenSettings(
            canteen_name=settings.default_canteen_name,
            upi_id=settings.default_upi_id,
        )
        session.add(current)
        session.commit()
        session.refresh(current)
    return current
