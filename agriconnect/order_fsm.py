"""Order status state machine.

    pending --farmer--> accepted --farmer--> completed
    pending --farmer--> rejected

``rejected`` and ``completed`` are terminal. With enforcement switched off the
machine degrades to the permissive rule the row policy alone gives: either party
may set any known status.
"""
from typing import Any, List, Optional

from .models import ORDER_STATUSES


PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
COMPLETED = "completed"

FARMER = "farmer"
RETAILER = "retailer"

INITIAL = PENDING
TERMINAL = frozenset({REJECTED, COMPLETED})

# (from, to, party allowed to make the move)
TRANSITIONS = frozenset({
    (PENDING, ACCEPTED, FARMER),
    (PENDING, REJECTED, FARMER),
    (ACCEPTED, COMPLETED, FARMER),
})


class InvalidTransition(Exception):
    def __init__(self, current: str, target: str, party: Optional[str]):
        super().__init__(f"cannot move order from {current} to {target} as {party or 'non-party'}")
        self.current = current
        self.target = target
        self.party = party


def party_of(order: Any, actor_id) -> Optional[str]:
    actor = str(actor_id)
    if str(order.farmer_id) == actor:
        return FARMER
    if str(order.retailer_id) == actor:
        return RETAILER
    return None


def can_transition(order: Any, target: str, actor_id, *, enforced: bool = True) -> bool:
    party = party_of(order, actor_id)
    if party is None or target not in ORDER_STATUSES:
        return False
    if not enforced:
        return True
    return (order.status, target, party) in TRANSITIONS


def next_statuses(order: Any, actor_id, *, enforced: bool = True) -> List[str]:
    return [s for s in ORDER_STATUSES if s != order.status and can_transition(order, s, actor_id, enforced=enforced)]


def transition(order: Any, target: str, actor_id, *, enforced: bool = True) -> str:
    """Move ``order`` to ``target`` on behalf of ``actor_id``; returns the previous status."""
    if not can_transition(order, target, actor_id, enforced=enforced):
        raise InvalidTransition(order.status, target, party_of(order, actor_id))
    previous = order.status
    order.status = target
    return previous
