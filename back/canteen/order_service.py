"""
Order Service

Business logic for the order lifecycle:
- Order creation with menu price snapshots and daily order ids
- Student payment submission
- Admin payment verification and status overrides
- Kitchen progression (preparing -> ready -> completed)

Status changes go through the transition table in state_machine and are
published to the websocket rooms named by each transition.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from .catalog import find_menu_item, get_current_settings
from .errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .models import (
    Order,
    OrderCreate,
    OrderItem,
    OrderStatus,
    User,
    VerificationAction,
    utcnow,
)
from .notifier import Notifier, publish_order_event
from .order_ids import allocate_order_id
from .order_store import (
    compare_and_set_status,
    find_by_phone,
    get_order,
    insert_order,
    list_by_statuses,
    require_order,
    serialize_order,
)
from .settings import settings
from .state_machine import (
    KITCHEN_QUEUE_STATUSES,
    STATUS_UPDATE_TARGETS,
    Actor,
    Decision,
    TransitionCheck,
    check_transition,
    conflict_reason,
)

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Payment not verified"


def _snapshot_items(session: Session, order_data: OrderCreate) -> list[dict]:
    """Validate every line item and copy name/price from the menu."""
    snapshots = []
    for item in order_data.items:
        if item.quantity < 1:
            raise ValidationError("Item quantity must be at least 1")

        menu_item = find_menu_item(session, item.menu_item_id)
        if menu_item is None:
            raise NotFoundError(f"Menu item not found: {item.menu_item_id}")
        if not menu_item.is_available:
            raise ValidationError(f"{menu_item.name} is currently unavailable")

        snapshots.append({
            "menu_item_id": menu_item.id,
            "name": menu_item.name,
            "price_cents": menu_item.price_cents,
            "quantity": item.quantity,
        })
    return snapshots


def create_order(session: Session, order_data: OrderCreate) -> Order:
    student_name = (order_data.student_name or "").strip()
    student_phone = (order_data.student_phone or "").strip()
    if not student_name or not student_phone or not order_data.items:
        raise ValidationError("Please provide all required fields")

    # All items are checked before anything is written
    snapshots = _snapshot_items(session, order_data)
    total_cents = sum(s["price_cents"] * s["quantity"] for s in snapshots)
    upi_id = get_current_settings(session).upi_id

    for attempt in range(1, settings.order_id_max_attempts + 1):
        try:
            order_id = allocate_order_id(session)
            order = Order(
                order_id=order_id,
                student_name=student_name,
                student_phone=student_phone,
                total_cents=total_cents,
                special_instructions=(order_data.special_instructions or "").strip(),
                status=OrderStatus.pending_payment,
                payment_upi_id=upi_id,
            )
            insert_order(session, order, [OrderItem(**s) for s in snapshots])
            session.commit()
        except IntegrityError as e:
            # Another writer took the same id or seeded the day counter first
            session.rollback()
            logger.warning(f"Order id collision on attempt {attempt}: {e.orig}")
            continue
        except Exception:
            session.rollback()
            raise

        logger.info(f"Order {order_id} created for {student_phone}, total {total_cents} cents")
        return require_order(session, order_id)

    raise InternalError("Could not allocate a unique order id, please retry")


def _apply_transition(
    session: Session,
    notifier: Notifier,
    order_id: str,
    check: TransitionCheck,
    **fields,
) -> Order:
    if check.decision is Decision.invalid_target:
        raise ValidationError(check.reason)
    if check.decision is Decision.forbidden:
        raise PermissionDeniedError(check.reason)

    transition = check.transition
    applied = compare_and_set_status(
        session, order_id, transition.sources, transition.target, **fields
    )
    order = get_order(session, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if not applied:
        raise ConflictError(conflict_reason(order.status, transition))

    logger.info(
        f"Order {order_id} -> {transition.target.value} by {transition.actor.value}"
    )
    if transition.notify:
        publish_order_event(notifier, transition.notify, serialize_order(order))
    return order


def _verification_stamp(user: User) -> dict:
    return {"verified_by": user.username, "verification_time": utcnow()}


def submit_payment(
    session: Session,
    notifier: Notifier,
    order_id: str,
    payment_proof: str | None = None,
) -> Order:
    fields = {}
    if payment_proof and payment_proof.strip():
        fields["payment_proof"] = payment_proof.strip()
    check = check_transition(Actor.customer, OrderStatus.payment_submitted)
    return _apply_transition(session, notifier, order_id, check, **fields)


def verify_payment(
    session: Session,
    notifier: Notifier,
    order_id: str,
    action: VerificationAction | str,
    user: User,
    rejection_reason: str | None = None,
) -> Order:
    try:
        action = VerificationAction(action)
    except ValueError:
        raise ValidationError("Invalid action")

    actor = Actor.for_role(user.role)
    fields = _verification_stamp(user)
    if action is VerificationAction.approve:
        check = check_transition(actor, OrderStatus.verified)
    else:
        check = check_transition(actor, OrderStatus.rejected)
        fields["rejection_reason"] = (rejection_reason or "").strip() or DEFAULT_REJECTION_REASON
    return _apply_transition(session, notifier, order_id, check, **fields)


def set_order_status(
    session: Session,
    notifier: Notifier,
    order_id: str,
    status: str,
    user: User,
) -> Order:
    """Admin override or kitchen progression, depending on the user's role."""
    actor = Actor.for_role(user.role)
    check = check_transition(actor, status, STATUS_UPDATE_TARGETS[actor])
    fields = {}
    if check.transition is not None and check.transition.stamps_verification:
        # Forcing `verified` counts as approving the payment
        fields = _verification_stamp(user)
    return _apply_transition(session, notifier, order_id, check, **fields)


def list_orders_by_phone(session: Session, phone: str) -> list[Order]:
    return find_by_phone(session, phone.strip(), settings.phone_history_limit)


def list_pending_verification(session: Session) -> list[Order]:
    return list_by_statuses(session, [OrderStatus.payment_submitted])


def list_kitchen_queue(session: Session) -> list[Order]:
    return list_by_statuses(session, KITCHEN_QUEUE_STATUSES)
