from typing import Annotated

from fastapi import APIRouter, Depends
from sqlmodel import Session

from . import models, order_service
from .db import get_session
from .notifier import Notifier, get_notifier
from .order_store import serialize_order
from .security import require_kitchen

router = APIRouter()


@router.get("/orders")
def list_kitchen_orders(
    current_user: Annotated[models.User, Depends(require_kitchen)],
    session: Session = Depends(get_session),
) -> list[dict]:
    """Paid orders still to be handed out, oldest first."""
    orders = order_service.list_kitchen_queue(session)
    return [serialize_order(order) for order in orders]


@router.put("/orders/{order_id}/status")
def update_kitchen_order_status(
    order_id: str,
    status_update: models.OrderStatusUpdate,
    current_user: Annotated[models.User, Depends(require_kitchen)],
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    order = order_service.set_order_status(
        session, notifier, order_id, status_update.status, current_user
    )
    return serialize_order(order)
