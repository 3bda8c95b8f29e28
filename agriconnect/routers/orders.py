import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from prometheus_client import Counter
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .. import access, order_fsm
from ..access import RequestContext
from ..auth import get_context
from ..config import settings
from ..database import get_db
from ..models import Order, Product
from ..schemas import (
    OrderCreateIn,
    OrderOut,
    OrdersListOut,
    OrderStatus,
    OrderStatusIn,
    OrderUpdateIn,
    PartySummary,
    TransitionsOut,
)
from ..utils import notify


router = APIRouter(prefix="/orders", tags=["orders"])

ORDERS_COUNTER = Counter("agriconnect_orders_total", "Order lifecycle events", ["status"])

_CENTS = Decimal("0.01")


def _to_out(o: Order) -> OrderOut:
    return OrderOut(
        id=str(o.id),
        product_id=str(o.product_id),
        product_name=o.product.name if o.product is not None else None,
        unit=o.product.unit if o.product is not None else None,
        retailer_id=str(o.retailer_id),
        farmer_id=str(o.farmer_id),
        quantity=float(o.quantity),
        total_price=float(o.total_price),
        status=o.status,
        payment_method=o.payment_method,
        delivery_address=o.delivery_address,
        notes=o.notes,
        created_at=o.created_at,
        updated_at=o.updated_at,
        retailer=PartySummary.of(o.retailer),
        farmer=PartySummary.of(o.farmer),
    )


def _get_or_404(ctx: RequestContext, db: Session, order_id: uuid.UUID, *, lock: bool = False) -> Order:
    stmt = select(Order).where(Order.id == order_id)
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    o = db.execute(stmt).scalars().first()
    if o is None or not access.allowed(ctx, "orders", access.READ, o):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return o


def total_price_for(quantity: Decimal, unit_price) -> Decimal:
    return (quantity * Decimal(str(unit_price))).quantize(_CENTS)


@router.post("", response_model=OrderOut)
def place_order(payload: OrderCreateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    stmt = select(Product).where(Product.id == payload.product_id)
    if settings.ORDER_RESERVES_STOCK:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    product = db.execute(stmt).scalars().first()
    if product is None or not access.allowed(ctx, "products", access.READ, product):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    qty = Decimal(str(payload.quantity))
    o = Order(
        product_id=product.id,
        retailer_id=payload.retailer_id or ctx.principal_id,
        farmer_id=product.farmer_id,
        quantity=qty,
        total_price=total_price_for(qty, product.price),
        status=order_fsm.INITIAL,
        payment_method=payload.payment_method,
        delivery_address=payload.delivery_address,
        notes=payload.notes or None,
    )
    access.check_insert(ctx, o)

    if settings.ORDER_RESERVES_STOCK:
        # Stock check and decrement share the order's transaction; the listing row is locked above
        available = Decimal(str(product.quantity_available))
        if qty > available:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient quantity")
        product.quantity_available = available - qty

    db.add(o)
    db.flush()
    ORDERS_COUNTER.labels(status=o.status).inc()
    notify("order.created", {"order_id": str(o.id), "product_id": str(product.id), "farmer_id": str(o.farmer_id)})
    return _to_out(o)


@router.get("", response_model=OrdersListOut)
def list_orders(status_filter: OrderStatus | None = Query(None, alias="status"), ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    # Narrowed on the indexed party columns; the row policy still decides visibility
    query = db.query(Order).filter(or_(Order.retailer_id == ctx.principal_id, Order.farmer_id == ctx.principal_id))
    if status_filter:
        query = query.filter(Order.status == status_filter)
    rows = access.visible(ctx, query.order_by(Order.created_at.desc()).all())
    return OrdersListOut(orders=[_to_out(o) for o in rows])


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return _to_out(_get_or_404(ctx, db, order_id))


@router.get("/{order_id}/transitions", response_model=TransitionsOut)
def order_transitions(order_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    o = _get_or_404(ctx, db, order_id)
    enforced = settings.ORDER_TRANSITIONS_ENFORCED
    return TransitionsOut(status=o.status, next=order_fsm.next_statuses(o, ctx.principal_id, enforced=enforced), enforced=enforced)


@router.post("/{order_id}/status", response_model=OrderOut)
def set_order_status(order_id: uuid.UUID, payload: OrderStatusIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    o = _get_or_404(ctx, db, order_id, lock=True)
    access.check_update(ctx, o, {"status": payload.status})
    previous = order_fsm.transition(o, payload.status, ctx.principal_id, enforced=settings.ORDER_TRANSITIONS_ENFORCED)
    db.flush()
    ORDERS_COUNTER.labels(status=o.status).inc()
    notify("order.status_changed", {"order_id": str(o.id), "from": previous, "to": o.status, "by": str(ctx.principal_id)})
    return _to_out(o)


@router.patch("/{order_id}", response_model=OrderOut)
def update_order(order_id: uuid.UUID, payload: OrderUpdateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    o = _get_or_404(ctx, db, order_id)
    access.apply_update(ctx, o, payload.model_dump(exclude_unset=True))
    db.flush()
    notify("order.updated", {"order_id": str(o.id)})
    return _to_out(o)
