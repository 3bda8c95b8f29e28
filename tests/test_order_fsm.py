from types import SimpleNamespace
import uuid

import pytest

from agriconnect import order_fsm
from agriconnect.order_fsm import InvalidTransition


F = uuid.uuid4()
R = uuid.uuid4()


def make_order(status="pending"):
    return SimpleNamespace(status=status, farmer_id=F, retailer_id=R)


def test_farmer_walks_the_happy_path():
    o = make_order()
    assert order_fsm.transition(o, "accepted", F) == "pending"
    assert order_fsm.transition(o, "completed", F) == "accepted"
    assert o.status == "completed"


def test_farmer_can_reject_pending():
    o = make_order()
    order_fsm.transition(o, "rejected", F)
    assert o.status == "rejected"


@pytest.mark.parametrize("start,target", [
    ("pending", "completed"),
    ("accepted", "rejected"),
    ("accepted", "pending"),
    ("rejected", "accepted"),
    ("rejected", "pending"),
    ("completed", "pending"),
    ("completed", "accepted"),
])
def test_disallowed_moves_raise(start, target):
    o = make_order(start)
    with pytest.raises(InvalidTransition):
        order_fsm.transition(o, target, F)
    assert o.status == start


def test_retailer_cannot_drive_status():
    o = make_order("accepted")
    with pytest.raises(InvalidTransition) as exc:
        order_fsm.transition(o, "completed", R)
    assert exc.value.party == "retailer"


def test_terminal_states_have_no_exits():
    for s in order_fsm.TERMINAL:
        assert order_fsm.next_statuses(make_order(s), F) == []


def test_next_statuses_per_party():
    assert order_fsm.next_statuses(make_order(), F) == ["accepted", "rejected"]
    assert order_fsm.next_statuses(make_order(), R) == []


def test_permissive_mode_lets_either_party_set_any_status():
    o = make_order("completed")
    order_fsm.transition(o, "pending", R, enforced=False)
    assert o.status == "pending"
    with pytest.raises(InvalidTransition):
        order_fsm.transition(o, "shipped", R, enforced=False)


def test_non_party_is_rejected_even_when_permissive():
    o = make_order()
    with pytest.raises(InvalidTransition):
        order_fsm.transition(o, "accepted", uuid.uuid4(), enforced=False)
