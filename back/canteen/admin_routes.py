"""
Admin API: payment verification, status overrides, order search and reports.
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from . import models, order_service, report_service
from .db import get_session
from .errors import ValidationError
from .notifier import Notifier, get_notifier
from .order_store import list_orders as query_orders, serialize_order
from .security import require_admin
from .state_machine import parse_status

router = APIRouter()


@router.get("/orders")
def list_orders(
    current_user: Annotated[models.User, Depends(require_admin)],
    status: str | None = Query(None),
    start_date: date | None = Query(None, description="First day, inclusive"),
    end_date: date | None = Query(None, description="Last day, inclusive"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    session: Session = Depends(get_session),
) -> dict:
    status_filter = None
    if status:
        status_filter = parse_status(status)
        if status_filter is None:
            raise ValidationError(
                f"Invalid status. Options: {[s.value for s in models.OrderStatus]}"
            )

    start = report_service.day_bounds(start_date)[0] if start_date else None
    end = report_service.day_bounds(end_date)[1] if end_date else None

    result = query_orders(
        session,
        status=status_filter,
        start=start,
        end=end,
        page=page,
        limit=limit,
    )
    return {
        "orders": [serialize_order(order) for order in result.orders],
        "total_pages": result.total_pages,
        "current_page": result.page,
        "total": result.total,
    }


@router.get("/orders/pending-verification")
def list_pending_verification(
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session),
) -> list[dict]:
    """Orders waiting for payment verification, oldest first."""
    orders = order_service.list_pending_verification(session)
    return [serialize_order(order) for order in orders]


@router.put("/orders/{order_id}/verify-payment")
def verify_payment(
    order_id: str,
    verification: models.PaymentVerification,
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    """Approve or reject a submitted payment after checking the bank app."""
    order = order_service.verify_payment(
        session,
        notifier,
        order_id,
        verification.action,
        current_user,
        rejection_reason=verification.rejection_reason,
    )
    return serialize_order(order)


@router.put("/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    status_update: models.OrderStatusUpdate,
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    order = order_service.set_order_status(
        session, notifier, order_id, status_update.status, current_user
    )
    return serialize_order(order)


@router.get("/reports/daily")
def daily_report(
    current_user: Annotated[models.User, Depends(require_admin)],
    day: date | None = Query(None, alias="date", description="Report day, defaults to today"),
    session: Session = Depends(get_session),
) -> dict:
    return report_service.daily_report(session, day)


@router.get("/reports/summary")
def summary_report(
    current_user: Annotated[models.User, Depends(require_admin)],
    session: Session = Depends(get_session),
) -> dict:
    return report_service.summary_report(session)
