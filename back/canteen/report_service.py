"""
Sales reporting over paid orders.

An order counts towards revenue once its payment is verified: statuses
verified, preparing, ready and completed. Unpaid, rejected and cancelled
orders are left out.
"""

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from sqlmodel import Session

from .models import OrderStatus
from .order_ids import canteen_today
from .order_store import count_by_statuses, list_created_between, serialize_order, sum_totals
from .settings import settings
from .state_machine import KITCHEN_QUEUE_STATUSES, PAID_STATUSES

POPULAR_ITEMS_LIMIT = 10


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """First and last instant of `day` in the canteen timezone, as UTC."""
    tz = ZoneInfo(settings.canteen_timezone)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def daily_report(session: Session, day: date | None = None) -> dict:
    day = day or canteen_today()
    start, end = day_bounds(day)
    orders = list_created_between(session, start, end, PAID_STATUSES)

    total_orders = len(orders)
    total_revenue = sum(order.total_cents for order in orders)
    # Whole cents, i.e. two decimals of the currency
    avg_order_value = round(total_revenue / total_orders) if total_orders else 0

    # Insertion order breaks ties: first item seen ranks first among equals
    item_stats: dict[str, dict] = {}
    for order in orders:
        for item in sorted(order.items, key=lambda i: i.id or 0):
            stats = item_stats.setdefault(item.name, {"quantity": 0, "revenue_cents": 0})
            stats["quantity"] += item.quantity
            stats["revenue_cents"] += item.price_cents * item.quantity

    popular_items = sorted(
        ({"name": name, **stats} for name, stats in item_stats.items()),
        key=lambda entry: entry["quantity"],
        reverse=True,
    )[:POPULAR_ITEMS_LIMIT]

    return {
        "date": day.isoformat(),
        "total_orders": total_orders,
        "total_revenue_cents": total_revenue,
        "avg_order_value_cents": avg_order_value,
        "popular_items": popular_items,
        "orders": [serialize_order(order) for order in orders],
    }


def summary_report(session: Session) -> dict:
    return {
        "total_orders": count_by_statuses(session),
        "pending_payments": count_by_statuses(session, [OrderStatus.payment_submitted]),
        "verified_orders": count_by_statuses(session, KITCHEN_QUEUE_STATUSES),
        "completed_orders": count_by_statuses(session, [OrderStatus.completed]),
        "total_revenue_cents": sum_totals(session, [OrderStatus.completed]),
    }
