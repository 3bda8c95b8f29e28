from typing import Any, List, Optional

from sqlalchemy.orm import Session

from .access import RequestContext, visible
from .models import Product


ALL_CATEGORIES = "all"


def matches(product: Any, q: Optional[str] = None, category: Optional[str] = None) -> bool:
    """Category equality plus case-insensitive substring over name, description and location."""
    if category and category.lower() != ALL_CATEGORIES and product.category != category:
        return False
    if q:
        needle = q.lower()
        haystacks = (product.name, product.description, product.location)
        return any(h and needle in h.lower() for h in haystacks)
    return True


def search_products(
    ctx: RequestContext,
    db: Session,
    q: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Product]:
    query = db.query(Product)
    if category and category.lower() != ALL_CATEGORIES:
        query = query.filter(Product.category == category)
    rows = query.order_by(Product.created_at.desc()).all()
    return [p for p in visible(ctx, rows) if matches(p, q, category)]


def list_categories(ctx: RequestContext, db: Session) -> List[str]:
    rows = visible(ctx, db.query(Product).all())
    return sorted({p.category for p in rows})


def owned_by(ctx: RequestContext, db: Session) -> List[Product]:
    rows = (
        db.query(Product)
        .filter(Product.farmer_id == ctx.principal_id)
        .order_by(Product.created_at.desc())
        .all()
    )
    return visible(ctx, rows)
