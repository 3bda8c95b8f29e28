"""Row-level access control.

Every store operation is gated by one predicate from ``POLICIES``, keyed by
``(table, operation)``. Reads use it as a post-filter (rows that fail are simply
absent). Writes use it as a pre-check and raise ``PolicyViolation``; updates are
checked against both the current row and the row as it would look afterwards.

Rows can be ORM instances or plain mappings, so the same table serves request
handling and unit tests.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from prometheus_client import Counter
from sqlalchemy.orm import Session

from .models import Profile


log = logging.getLogger(__name__)

READ = "read"
INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

POLICY_DENIALS = Counter("agriconnect_policy_denials_total", "Writes rejected by row policies", ["table", "operation"])


class PolicyViolation(Exception):
    def __init__(self, table: str, operation: str):
        super().__init__(f"{operation} on {table} not permitted")
        self.table = table
        self.operation = operation


class RequestContext:
    """The requesting principal, plus a lazy lookup of its profile role."""

    _UNSET = object()

    def __init__(self, principal_id, db: Session | None = None, role: str | None | object = _UNSET):
        self.principal_id = principal_id
        self._db = db
        self._role = role

    @property
    def role(self) -> Optional[str]:
        if self._role is RequestContext._UNSET:
            if self._db is None:
                self._role = None
            else:
                self._role = self._db.query(Profile.role).filter(Profile.id == self.principal_id).scalar()
        return self._role  # type: ignore[return-value]

    def is_(self, value) -> bool:
        return value is not None and self.principal_id is not None and str(value) == str(self.principal_id)


def field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


Predicate = Callable[[RequestContext, Any], bool]


def _anyone(ctx: RequestContext, row: Any) -> bool:
    return True


def _own_profile(ctx: RequestContext, row: Any) -> bool:
    return ctx.is_(field(row, "id"))


def _product_visible(ctx: RequestContext, row: Any) -> bool:
    return field(row, "is_available") is True or ctx.is_(field(row, "farmer_id"))


def _product_owner(ctx: RequestContext, row: Any) -> bool:
    return ctx.is_(field(row, "farmer_id"))


def _farmer_inserts_own_product(ctx: RequestContext, row: Any) -> bool:
    # Role lookup only when the cheap comparison passes
    return ctx.is_(field(row, "farmer_id")) and ctx.role == "farmer"


def _order_party(ctx: RequestContext, row: Any) -> bool:
    return ctx.is_(field(row, "retailer_id")) or ctx.is_(field(row, "farmer_id"))


def _retailer_places_own_order(ctx: RequestContext, row: Any) -> bool:
    return ctx.is_(field(row, "retailer_id")) and ctx.role == "retailer"


def _message_party(ctx: RequestContext, row: Any) -> bool:
    return ctx.is_(field(row, "sender_id")) or ctx.is_(field(row, "receiver_id"))


def _message_sender(ctx: RequestContext, row: Any) -> bool:
    return ctx.is_(field(row, "sender_id"))


def _message_receiver(ctx: RequestContext, row: Any) -> bool:
    return ctx.is_(field(row, "receiver_id"))


POLICIES: Dict[Tuple[str, str], Predicate] = {
    ("profiles", READ): _anyone,
    ("profiles", INSERT): _own_profile,
    ("profiles", UPDATE): _own_profile,
    ("products", READ): _product_visible,
    ("products", INSERT): _farmer_inserts_own_product,
    ("products", UPDATE): _product_owner,
    ("products", DELETE): _product_owner,
    ("orders", READ): _order_party,
    ("orders", INSERT): _retailer_places_own_order,
    ("orders", UPDATE): _order_party,
    ("messages", READ): _message_party,
    ("messages", INSERT): _message_sender,
    ("messages", UPDATE): _message_receiver,
}


def allowed(ctx: RequestContext, table: str, operation: str, row: Any) -> bool:
    """Evaluate the policy for ``(table, operation)``; operations without a policy are denied."""
    predicate = POLICIES.get((table, operation))
    if predicate is None:
        return False
    return bool(predicate(ctx, row))


def _table(row: Any) -> str:
    return row.__tablename__


def _deny(table: str, operation: str, ctx: RequestContext) -> PolicyViolation:
    log.info("policy denied table=%s op=%s principal=%s", table, operation, ctx.principal_id)
    POLICY_DENIALS.labels(table=table, operation=operation).inc()
    return PolicyViolation(table, operation)


def visible(ctx: RequestContext, rows: Iterable[Any], table: str | None = None) -> List[Any]:
    out = []
    for row in rows:
        if allowed(ctx, table or _table(row), READ, row):
            out.append(row)
    return out


def get_visible(ctx: RequestContext, db: Session, model, row_id) -> Any:
    """Targeted read. Hidden and missing rows both come back as ``None``."""
    row = db.get(model, row_id)
    if row is None or not allowed(ctx, model.__tablename__, READ, row):
        return None
    return row


def check_insert(ctx: RequestContext, row: Any, table: str | None = None) -> None:
    table = table or _table(row)
    if not allowed(ctx, table, INSERT, row):
        raise _deny(table, INSERT, ctx)


def snapshot(row: Any) -> Dict[str, Any]:
    return {c.key: getattr(row, c.key) for c in row.__table__.columns}


def check_update(ctx: RequestContext, row: Any, changes: Mapping[str, Any], table: str | None = None) -> None:
    table = table or _table(row)
    if not allowed(ctx, table, UPDATE, row):
        raise _deny(table, UPDATE, ctx)
    after = dict(row) if isinstance(row, Mapping) else snapshot(row)
    after.update(changes)
    if not allowed(ctx, table, UPDATE, after):
        raise _deny(table, UPDATE, ctx)


def apply_update(ctx: RequestContext, row: Any, changes: Mapping[str, Any]) -> Any:
    check_update(ctx, row, changes)
    for key, value in changes.items():
        setattr(row, key, value)
    return row


def check_delete(ctx: RequestContext, row: Any, table: str | None = None) -> None:
    table = table or _table(row)
    if not allowed(ctx, table, DELETE, row):
        raise _deny(table, DELETE, ctx)
