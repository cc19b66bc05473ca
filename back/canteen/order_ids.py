"""
Order ID generation: ORD<YYYYMMDD><seq3>, e.g. ORD20240115007.

Sequences come from a per-day counter row that is incremented with a single
UPDATE, so concurrent writers serialize on the row lock instead of racing on
"find the last order and add one". The counter for a day is seeded from the
greatest existing order id of that day, which keeps ids monotonic for data
created before the counter existed.
"""

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy import update
from sqlmodel import Session, col, select

from .errors import CapacityExceededError
from .models import Order, OrderCounter
from .settings import settings

ORDER_ID_PREFIX = "ORD"
SEQUENCE_WIDTH = 3
MAX_DAILY_SEQUENCE = 10**SEQUENCE_WIDTH - 1
ORDER_ID_PATTERN = re.compile(rf"{ORDER_ID_PREFIX}\d{{8}}\d{{{SEQUENCE_WIDTH}}}")


def canteen_today(now: datetime | None = None) -> date:
    """Current calendar day in the canteen's timezone."""
    tz = ZoneInfo(settings.canteen_timezone)
    return (now or datetime.now(tz)).astimezone(tz).date()


def day_prefix(day: date) -> str:
    return f"{ORDER_ID_PREFIX}{day.strftime('%Y%m%d')}"


def format_order_id(day: date, seq: int) -> str:
    if seq < 1 or seq > MAX_DAILY_SEQUENCE:
        raise CapacityExceededError(
            f"Daily order capacity of {MAX_DAILY_SEQUENCE} reached for {day.isoformat()}"
        )
    return f"{day_prefix(day)}{seq:0{SEQUENCE_WIDTH}d}"


def is_order_id(value: str) -> bool:
    return ORDER_ID_PATTERN.fullmatch(value) is not None


def parse_sequence(order_id: str) -> int | None:
    tail = order_id[-SEQUENCE_WIDTH:]
    return int(tail) if tail.isdigit() else None


def last_used_sequence(session: Session, day: date) -> int:
    """Highest sequence among existing orders of the day (0 if none)."""
    statement = (
        select(Order.order_id)
        .where(col(Order.order_id).startswith(day_prefix(day)))
        .order_by(col(Order.order_id).desc())
        .limit(1)
    )
    last_order_id = session.exec(statement).first()
    if last_order_id is None:
        return 0
    return parse_sequence(last_order_id) or 0


def next_sequence(session: Session, day: date) -> int:
    """
    Reserve the next sequence number for `day` inside the caller's transaction.

    The reservation only becomes visible when the caller commits; a rollback
    gives the number back. Two transactions seeding the same day concurrently
    collide on the counter's primary key and the loser gets an IntegrityError,
    which the caller treats like any other id collision and retries.
    """
    session.execute(
        update(OrderCounter)
        .where(col(OrderCounter.day) == day)
        .values(last_seq=col(OrderCounter.last_seq) + 1)
    )
    counter = session.exec(
        select(OrderCounter).where(OrderCounter.day == day)
    ).first()
    if counter is not None:
        # Pick up the value written by our own UPDATE, not a cached one
        session.refresh(counter)
        return counter.last_seq

    seq = last_used_sequence(session, day) + 1
    session.add(OrderCounter(day=day, last_seq=seq))
    session.flush()
    return seq


def allocate_order_id(session: Session, day: date | None = None) -> str:
    day = day or canteen_today()
    return format_order_id(day, next_sequence(session, day))
