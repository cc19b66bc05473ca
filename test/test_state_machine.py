import pytest

from canteen.models import OrderStatus, Role
from canteen.notifier import RoomFamily
from canteen.state_machine import (
    NON_TERMINAL_STATUSES,
    STATUS_UPDATE_TARGETS,
    TERMINAL_STATUSES,
    TRANSITIONS,
    Actor,
    Decision,
    check_transition,
    conflict_reason,
)

S = OrderStatus


def test_actor_for_role():
    assert Actor.for_role(Role.admin) is Actor.admin
    assert Actor.for_role(Role.kitchen) is Actor.kitchen


def test_terminal_statuses_have_no_outgoing_transitions():
    for transition in TRANSITIONS:
        assert not (transition.sources & TERMINAL_STATUSES), transition


def test_one_transition_per_actor_and_target():
    keys = [(t.actor, t.target) for t in TRANSITIONS]
    assert len(keys) == len(set(keys))


def test_customer_may_only_submit_payment():
    check = check_transition(Actor.customer, S.payment_submitted)
    assert check.allowed
    assert check.transition.sources == {S.pending_payment}
    assert check.transition.notify == ()

    assert check_transition(Actor.customer, S.verified).decision is Decision.forbidden


def test_approval_notifies_kitchen_and_order_rooms():
    check = check_transition(Actor.admin, S.verified)
    assert check.allowed
    assert check.transition.sources == {S.payment_submitted}
    assert check.transition.stamps_verification
    assert set(check.transition.notify) == {RoomFamily.kitchen, RoomFamily.order}


def test_rejection_notifies_order_room_only():
    check = check_transition(Actor.admin, S.rejected)
    assert check.transition.stamps_verification
    assert check.transition.notify == (RoomFamily.order,)


@pytest.mark.parametrize(
    "target, sources",
    [
        (S.preparing, {S.verified}),
        (S.ready, {S.preparing}),
        (S.completed, {S.ready}),
    ],
)
def test_kitchen_moves_one_step_at_a_time(target, sources):
    check = check_transition(Actor.kitchen, target, STATUS_UPDATE_TARGETS[Actor.kitchen])
    assert check.allowed
    assert check.transition.sources == sources
    assert check.transition.notify == (RoomFamily.order,)


@pytest.mark.parametrize("target", [S.verified, S.cancelled, S.rejected, S.payment_submitted])
def test_kitchen_targets_outside_its_allow_list_are_forbidden(target):
    check = check_transition(Actor.kitchen, target, STATUS_UPDATE_TARGETS[Actor.kitchen])
    assert check.decision is Decision.forbidden
    assert check.transition is None


def test_admin_overrides_only_move_forward():
    ready = check_transition(Actor.admin, S.ready, STATUS_UPDATE_TARGETS[Actor.admin])
    assert ready.transition.sources == {S.verified, S.preparing}

    completed = check_transition(Actor.admin, S.completed, STATUS_UPDATE_TARGETS[Actor.admin])
    assert completed.transition.sources == {S.verified, S.preparing, S.ready}


def test_admin_may_cancel_any_non_terminal_order():
    check = check_transition(Actor.admin, S.cancelled, STATUS_UPDATE_TARGETS[Actor.admin])
    assert check.transition.sources == NON_TERMINAL_STATUSES
    assert S.pending_payment in check.transition.sources
    assert S.completed not in check.transition.sources


def test_status_endpoint_cannot_reject():
    check = check_transition(Actor.admin, S.rejected, STATUS_UPDATE_TARGETS[Actor.admin])
    assert check.decision is Decision.forbidden


@pytest.mark.parametrize("target", ["shipped", "", "VERIFIED"])
def test_unknown_status_is_an_invalid_target(target):
    check = check_transition(Actor.admin, target, STATUS_UPDATE_TARGETS[Actor.admin])
    assert check.decision is Decision.invalid_target
    assert "Invalid status" in check.reason


def test_status_strings_are_accepted():
    assert check_transition(Actor.kitchen, "preparing").allowed


def test_conflict_reasons():
    submit = check_transition(Actor.customer, S.payment_submitted).transition
    assert conflict_reason(S.payment_submitted, submit) == "Order payment already submitted or processed"

    approve = check_transition(Actor.admin, S.verified).transition
    assert conflict_reason(S.verified, approve) == "Order is not pending verification"

    ready = check_transition(Actor.kitchen, S.ready).transition
    message = conflict_reason(S.verified, ready)
    assert "'verified'" in message and "'ready'" in message
