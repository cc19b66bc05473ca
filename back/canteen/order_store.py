"""
Order persistence.

The store is the single source of truth for order state. Status changes are
applied with `compare_and_set_status`, a conditional UPDATE that only touches
the row while it is still in one of the expected statuses, so two racing
transitions on the same order cannot both apply.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy import func, update
from sqlalchemy.orm import selectinload
from sqlmodel import Session, col, select

from .errors import NotFoundError
from .models import Order, OrderItem, OrderStatus, utcnow


@dataclass
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _with_items(statement):
    return statement.options(selectinload(Order.items))


def insert_order(session: Session, order: Order, items: list[OrderItem]) -> Order:
    """Stage an order with its line items; the caller commits."""
    session.add(order)
    session.flush()  # Assigns order.id and surfaces duplicate order_id early
    for item in items:
        item.order_pk = order.id
        session.add(item)
    session.flush()
    return order


def get_order(session: Session, order_id: str) -> Order | None:
    statement = _with_items(select(Order).where(Order.order_id == order_id))
    return session.exec(statement).first()


def require_order(session: Session, order_id: str) -> Order:
    order = get_order(session, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def find_by_phone(session: Session, phone: str, limit: int) -> list[Order]:
    statement = _with_items(
        select(Order)
        .where(Order.student_phone == phone)
        .order_by(col(Order.created_at).desc(), col(Order.id).desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())


def list_by_statuses(session: Session, statuses: Iterable[OrderStatus]) -> list[Order]:
    """Orders in any of `statuses`, oldest first (queue order)."""
    statement = _with_items(
        select(Order)
        .where(col(Order.status).in_(list(statuses)))
        .order_by(col(Order.created_at).asc(), col(Order.id).asc())
    )
    return list(session.exec(statement).all())


def list_created_between(
    session: Session,
    start: datetime,
    end: datetime,
    statuses: Iterable[OrderStatus],
) -> list[Order]:
    statement = _with_items(
        select(Order)
        .where(Order.created_at >= start, Order.created_at <= end)
        .where(col(Order.status).in_(list(statuses)))
        .order_by(col(Order.created_at).asc(), col(Order.id).asc())
    )
    return list(session.exec(statement).all())


def list_orders(
    session: Session,
    status: OrderStatus | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> OrderPage:
    """Newest-first page of orders matching the optional filters."""
    filters = []
    if status is not None:
        filters.append(Order.status == status)
    if start is not None:
        filters.append(Order.created_at >= start)
    if end is not None:
        filters.append(Order.created_at <= end)

    count_statement = select(func.count(Order.id))
    statement = select(Order)
    if filters:
        count_statement = count_statement.where(*filters)
        statement = statement.where(*filters)

    total = session.exec(count_statement).one()
    statement = _with_items(
        statement
        .order_by(col(Order.created_at).desc(), col(Order.id).desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    orders = list(session.exec(statement).all())
    return OrderPage(orders=orders, total=total, page=page, limit=limit)


def count_by_statuses(session: Session, statuses: Iterable[OrderStatus] | None = None) -> int:
    statement = select(func.count(Order.id))
    if statuses is not None:
        statement = statement.where(col(Order.status).in_(list(statuses)))
    return session.exec(statement).one()


def sum_totals(session: Session, statuses: Iterable[OrderStatus]) -> int:
    statement = select(func.coalesce(func.sum(Order.total_cents), 0)).where(
        col(Order.status).in_(list(statuses))
    )
    return int(session.exec(statement).one())


def compare_and_set_status(
    session: Session,
    order_id: str,
    expected: Iterable[OrderStatus],
    target: OrderStatus,
    **fields: Any,
) -> bool:
    """
    Move `order_id` to `target` only if its status is one of `expected`.

    Extra `fields` are written in the same statement and `updated_at` is
    always refreshed. Commits and returns whether the row was updated.
    """
    result = session.execute(
        update(Order)
        .where(Order.order_id == order_id)
        .where(col(Order.status).in_(list(expected)))
        .values(status=target, updated_at=utcnow(), **fields)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1


def _as_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def serialize_order(order: Order) -> dict:
    return {
        "order_id": order.order_id,
        "student_name": order.student_name,
        "student_phone": order.student_phone,
        "items": [
            {
                "menu_item_id": item.menu_item_id,
                "name": item.name,
                "price_cents": item.price_cents,
                "quantity": item.quantity,
            }
            for item in sorted(order.items, key=lambda i: i.id or 0)
        ],
        "total_cents": order.total_cents,
        "special_instructions": order.special_instructions,
        "status": order.status.value,
        "payment_details": {
            "upi_id": order.payment_upi_id,
            "payment_proof": order.payment_proof,
            "verified_by": order.verified_by,
            "verification_time": _as_utc(order.verification_time),
            "rejection_reason": order.rejection_reason,
        },
        "created_at": _as_utc(order.created_at),
        "updated_at": _as_utc(order.updated_at),
    }
