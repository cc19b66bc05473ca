"""
Order status transitions.

    pending_payment -> payment_submitted -> verified | rejected
    verified -> preparing -> ready -> completed
    any non-terminal status -> cancelled (admin only)

Every entry point that changes an order's status goes through
`check_transition`; the resulting `Transition` names the statuses the order
must currently be in, which the store applies as a conditional update.
"""

from dataclasses import dataclass
from enum import Enum

from .models import OrderStatus, Role
from .notifier import RoomFamily


class Actor(str, Enum):
    customer = "customer"
    admin = "admin"
    kitchen = "kitchen"

    @classmethod
    def for_role(cls, role: Role) -> "Actor":
        return cls(role.value)


class Decision(str, Enum):
    allowed = "allowed"
    forbidden = "forbidden"
    invalid_target = "invalid_target"


TERMINAL_STATUSES = frozenset({
    OrderStatus.completed,
    OrderStatus.rejected,
    OrderStatus.cancelled,
})
NON_TERMINAL_STATUSES = frozenset(s for s in OrderStatus if s not in TERMINAL_STATUSES)

# Statuses that count as paid (used by reports and the kitchen queue)
PAID_STATUSES = (
    OrderStatus.verified,
    OrderStatus.preparing,
    OrderStatus.ready,
    OrderStatus.completed,
)
KITCHEN_QUEUE_STATUSES = (
    OrderStatus.verified,
    OrderStatus.preparing,
    OrderStatus.ready,
)


@dataclass(frozen=True)
class Transition:
    actor: Actor
    sources: frozenset[OrderStatus]
    target: OrderStatus
    stamps_verification: bool = False
    notify: tuple[RoomFamily, ...] = (RoomFamily.order,)


def _t(actor, sources, target, **kwargs) -> Transition:
    return Transition(actor=actor, sources=frozenset(sources), target=target, **kwargs)


S = OrderStatus

TRANSITIONS: tuple[Transition, ...] = (
    _t(Actor.customer, {S.pending_payment}, S.payment_submitted, notify=()),

    _t(Actor.admin, {S.payment_submitted}, S.verified,
       stamps_verification=True, notify=(RoomFamily.kitchen, RoomFamily.order)),
    _t(Actor.admin, {S.payment_submitted}, S.rejected, stamps_verification=True),
    # Admin overrides move forward along the kitchen chain, skipping allowed
    _t(Actor.admin, {S.verified}, S.preparing),
    _t(Actor.admin, {S.verified, S.preparing}, S.ready),
    _t(Actor.admin, {S.verified, S.preparing, S.ready}, S.completed),
    _t(Actor.admin, NON_TERMINAL_STATUSES, S.cancelled),

    _t(Actor.kitchen, {S.verified}, S.preparing),
    _t(Actor.kitchen, {S.preparing}, S.ready),
    _t(Actor.kitchen, {S.ready}, S.completed),
)

_BY_ACTOR_AND_TARGET = {(t.actor, t.target): t for t in TRANSITIONS}

# Targets each role may request through the status-update endpoints
STATUS_UPDATE_TARGETS: dict[Actor, frozenset[OrderStatus]] = {
    Actor.admin: frozenset({S.verified, S.preparing, S.ready, S.completed, S.cancelled}),
    Actor.kitchen: frozenset({S.preparing, S.ready, S.completed}),
}


@dataclass(frozen=True)
class TransitionCheck:
    decision: Decision
    transition: Transition | None = None
    reason: str = ""

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.allowed


def parse_status(value: str | OrderStatus) -> OrderStatus | None:
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def check_transition(
    actor: Actor,
    target: str | OrderStatus,
    allowed_targets: frozenset[OrderStatus] | None = None,
) -> TransitionCheck:
    """
    Look up the transition `actor` may perform to reach `target`.

    `allowed_targets` narrows the table to what a particular entry point
    accepts (e.g. the kitchen status endpoint). The current status is not
    checked here: the returned transition's `sources` are applied atomically
    by the store, and a mismatch there is a conflict.
    """
    status = parse_status(target)
    if status is None:
        return TransitionCheck(Decision.invalid_target, reason=f"Invalid status: {target}")

    if allowed_targets is not None and status not in allowed_targets:
        return TransitionCheck(
            Decision.forbidden,
            reason=f"Role '{actor.value}' may not set status '{status.value}'",
        )

    transition = _BY_ACTOR_AND_TARGET.get((actor, status))
    if transition is None:
        return TransitionCheck(
            Decision.forbidden,
            reason=f"Role '{actor.value}' may not set status '{status.value}'",
        )
    return TransitionCheck(Decision.allowed, transition=transition)


def conflict_reason(current: OrderStatus, transition: Transition) -> str:
    if transition.target is OrderStatus.payment_submitted:
        return "Order payment already submitted or processed"
    if transition.stamps_verification:
        return "Order is not pending verification"
    expected = ", ".join(sorted(s.value for s in transition.sources))
    return (
        f"Cannot move order from '{current.value}' to '{transition.target.value}' "
        f"(expected one of: {expected})"
    )
