from typing import Annotated

from fastapi import APIRouter, Depends
from sqlmodel import Session

from . import models
from .catalog import get_current_settings
from .db import get_session
from .security import require_admin

router = APIRouter()


@router.get("")
def get_settings(session: Session = Depends(get_session)) -> models.CanteenSettings:
    """Public: the payment screen needs the UPI id and QR code."""
    return get_current_settings(session)


@router.put("")
def update_settings(
    settings_update: models.SettingsUpdate,
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session)
) -> models.CanteenSettings:
    current = get_current_settings(session)

    # Name and UPI id are required; empty values keep the existing ones
    if settings_update.canteen_name and settings_update.canteen_name.strip():
        current.canteen_name = settings_update.canteen_name.strip()
    if settings_update.upi_id and settings_update.upi_id.strip():
        current.upi_id = settings_update.upi_id.strip()
    if settings_update.upi_qr_code is not None:
        current.upi_qr_code = settings_update.upi_qr_code
    if settings_update.contact_phone is not None:
        current.contact_phone = settings_update.contact_phone.strip()
    current.updated_at = models.utcnow()

    session.add(current)
    session.commit()
    session.refresh(current)
    return current
