import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import access, catalog
from ..access import RequestContext
from ..auth import get_context
from ..database import get_db
from ..models import Product
from ..schemas import (
    CategoriesOut,
    PartySummary,
    ProductCreateIn,
    ProductOut,
    ProductsListOut,
    ProductUpdateIn,
)
from ..utils import notify


router = APIRouter(prefix="/products", tags=["products"])


def _to_out(p: Product) -> ProductOut:
    return ProductOut(
        id=str(p.id), farmer_id=str(p.farmer_id), name=p.name, description=p.description, category=p.category,
        price=float(p.price), unit=p.unit, quantity_available=float(p.quantity_available), image_url=p.image_url,
        location=p.location, is_available=p.is_available, created_at=p.created_at, updated_at=p.updated_at,
        farmer=PartySummary.of(p.farmer),
    )


def _get_or_404(ctx: RequestContext, db: Session, product_id: uuid.UUID) -> Product:
    p = access.get_visible(ctx, db, Product, product_id)
    if p is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return p


@router.get("", response_model=ProductsListOut)
def browse_products(
    q: str | None = None,
    category: str | None = None,
    limit: int = Query(50, gt=0, le=200),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    rows = catalog.search_products(ctx, db, q=q, category=category)
    return ProductsListOut(products=[_to_out(p) for p in rows[offset:offset + limit]], total=len(rows))


@router.get("/categories", response_model=CategoriesOut)
def categories(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return CategoriesOut(categories=catalog.list_categories(ctx, db))


@router.get("/mine", response_model=ProductsListOut)
def my_products(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    rows = catalog.owned_by(ctx, db)
    return ProductsListOut(products=[_to_out(p) for p in rows], total=len(rows))


@router.post("", response_model=ProductOut)
def create_product(payload: ProductCreateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    data = payload.model_dump()
    data["farmer_id"] = payload.farmer_id or ctx.principal_id
    p = Product(**data)
    access.check_insert(ctx, p)
    db.add(p)
    db.flush()
    notify("product.created", {"product_id": str(p.id), "farmer_id": str(p.farmer_id)})
    return _to_out(p)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return _to_out(_get_or_404(ctx, db, product_id))


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(product_id: uuid.UUID, payload: ProductUpdateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    p = _get_or_404(ctx, db, product_id)
    access.apply_update(ctx, p, payload.model_dump(exclude_unset=True))
    db.flush()
    notify("product.updated", {"product_id": str(p.id)})
    return _to_out(p)


@router.post("/{product_id}/toggle_availability", response_model=ProductOut)
def toggle_availability(product_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    p = _get_or_404(ctx, db, product_id)
    access.apply_update(ctx, p, {"is_available": not p.is_available})
    db.flush()
    notify("product.updated", {"product_id": str(p.id), "is_available": p.is_available})
    return _to_out(p)


@router.delete("/{product_id}")
def delete_product(product_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    p = _get_or_404(ctx, db, product_id)
    access.check_delete(ctx, p)
    db.delete(p)
    db.flush()
    notify("product.deleted", {"product_id": str(product_id)})
    return {"detail": "deleted"}
