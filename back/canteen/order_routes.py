"""
Public order API used by the student-facing app:
placing an order, tracking it, and attesting the UPI payment.
"""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from . import models, order_service
from .db import get_session
from .notifier import Notifier, get_notifier
from .order_store import require_order, serialize_order

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: models.OrderCreate,
    session: Session = Depends(get_session),
) -> dict:
    order = order_service.create_order(session, order_data)
    return serialize_order(order)


@router.get("/phone/{phone}")
def list_orders_by_phone(
    phone: str,
    session: Session = Depends(get_session),
) -> list[dict]:
    """Most recent orders placed with this phone number."""
    orders = order_service.list_orders_by_phone(session, phone)
    return [serialize_order(order) for order in orders]


@router.get("/{order_id}")
def get_order(
    order_id: str,
    session: Session = Depends(get_session),
) -> dict:
    return serialize_order(require_order(session, order_id))


@router.put("/{order_id}/submit-payment")
def submit_payment(
    order_id: str,
    payment: models.PaymentSubmit | None = None,
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    """Student confirms the UPI transfer was made; an admin verifies it later."""
    order = order_service.submit_payment(
        session, notifier, order_id, payment.payment_proof if payment else None
    )
    return serialize_order(order)
