import uuid

import pytest

from agriconnect import access
from agriconnect.access import RequestContext, allowed, PolicyViolation
from agriconnect.models import Profile, User


F = uuid.uuid4()   # farmer
R = uuid.uuid4()   # retailer
X = uuid.uuid4()   # bystander


def ctx(pid, role=None):
    return RequestContext(pid, role=role)


@pytest.mark.parametrize("available,requester,expected", [
    (True, F, True),
    (True, R, True),
    (False, F, True),
    (False, R, False),
    (False, X, False),
])
def test_product_read_iff_available_or_owner(available, requester, expected):
    row = {"farmer_id": F, "is_available": available}
    assert allowed(ctx(requester), "products", access.READ, row) is expected


@pytest.mark.parametrize("requester,expected", [(R, True), (F, True), (X, False)])
def test_order_read_iff_party(requester, expected):
    row = {"retailer_id": R, "farmer_id": F}
    assert allowed(ctx(requester), "orders", access.READ, row) is expected


def test_product_insert_needs_own_id_and_farmer_role():
    own = {"farmer_id": F}
    assert allowed(ctx(F, "farmer"), "products", access.INSERT, own)
    # someone else's id, whatever the role
    assert not allowed(ctx(R, "farmer"), "products", access.INSERT, own)
    assert not allowed(ctx(R, "retailer"), "products", access.INSERT, own)
    # own id but wrong role, or no profile at all
    assert not allowed(ctx(R, "retailer"), "products", access.INSERT, {"farmer_id": R})
    assert not allowed(ctx(R, None), "products", access.INSERT, {"farmer_id": R})


def test_order_insert_needs_own_id_and_retailer_role():
    row = {"retailer_id": R, "farmer_id": F}
    assert allowed(ctx(R, "retailer"), "orders", access.INSERT, row)
    assert not allowed(ctx(X, "retailer"), "orders", access.INSERT, row)
    assert not allowed(ctx(F, "farmer"), "orders", access.INSERT, {"retailer_id": F, "farmer_id": F})


def test_message_policies():
    row = {"sender_id": R, "receiver_id": F}
    assert allowed(ctx(R), "messages", access.READ, row)
    assert allowed(ctx(F), "messages", access.READ, row)
    assert not allowed(ctx(X), "messages", access.READ, row)
    assert allowed(ctx(R), "messages", access.INSERT, row)
    assert not allowed(ctx(F), "messages", access.INSERT, row)
    assert allowed(ctx(F), "messages", access.UPDATE, row)
    assert not allowed(ctx(R), "messages", access.UPDATE, row)


def test_profiles_readable_by_all_writable_by_self():
    row = {"id": F, "role": "farmer"}
    assert allowed(ctx(X), "profiles", access.READ, row)
    assert allowed(ctx(F), "profiles", access.INSERT, row)
    assert not allowed(ctx(X), "profiles", access.INSERT, row)
    assert not allowed(ctx(X), "profiles", access.UPDATE, row)


def test_operations_without_policy_are_denied():
    assert not allowed(ctx(F), "profiles", access.DELETE, {"id": F})
    assert not allowed(ctx(R), "orders", access.DELETE, {"retailer_id": R, "farmer_id": F})
    assert not allowed(ctx(R), "messages", access.DELETE, {"sender_id": R, "receiver_id": F})
    assert not allowed(ctx(F), "nope", access.READ, {})


def test_ids_compare_across_str_and_uuid():
    assert allowed(ctx(str(F)), "orders", access.READ, {"retailer_id": R, "farmer_id": F})


def test_update_checks_pre_and_post_state():
    row = {"farmer_id": F, "is_available": True}
    access.check_update(ctx(F), row, {"price": 5}, table="products")
    with pytest.raises(PolicyViolation):
        # handing the listing to someone else fails the post-state check
        access.check_update(ctx(F), row, {"farmer_id": R}, table="products")
    with pytest.raises(PolicyViolation):
        access.check_update(ctx(R), row, {"price": 5}, table="products")


def test_order_update_cannot_move_party_out():
    row = {"retailer_id": R, "farmer_id": F}
    with pytest.raises(PolicyViolation):
        access.check_update(ctx(R), row, {"retailer_id": X}, table="orders")


def test_visible_filters_silently():
    rows = [
        {"farmer_id": F, "is_available": True},
        {"farmer_id": F, "is_available": False},
        {"farmer_id": R, "is_available": False},
    ]
    assert len(access.visible(ctx(R), rows, table="products")) == 2
    assert len(access.visible(ctx(X), rows, table="products")) == 1


def test_role_is_looked_up_once_from_profile(db):
    u = User(phone="+10000000001")
    db.add(u)
    db.flush()
    db.add(Profile(id=u.id, role="farmer", full_name="F"))
    db.flush()

    c = RequestContext(u.id, db)
    assert c.role == "farmer"
    assert allowed(c, "products", access.INSERT, {"farmer_id": u.id})
    assert RequestContext(uuid.uuid4(), db).role is None


def test_denials_are_counted():
    from prometheus_client import REGISTRY

    labels = {"table": "products", "operation": "insert"}
    before = REGISTRY.get_sample_value("agriconnect_policy_denials_total", labels) or 0.0
    with pytest.raises(PolicyViolation):
        access.check_insert(ctx(R, "retailer"), {"farmer_id": R}, table="products")
    assert REGISTRY.get_sample_value("agriconnect_policy_denials_total", labels) == before + 1
