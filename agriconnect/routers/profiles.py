import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import access
from ..access import RequestContext
from ..auth import get_context
from ..database import get_db
from ..models import Profile
from ..schemas import ProfileCreateIn, ProfileUpdateIn, ProfileOut, ProfilesListOut, Role
from ..utils import notify


router = APIRouter(prefix="/profiles", tags=["profiles"])


def _to_out(p: Profile) -> ProfileOut:
    return ProfileOut(
        id=str(p.id), role=p.role, full_name=p.full_name, phone=p.phone, location=p.location,
        latitude=float(p.latitude) if p.latitude is not None else None,
        longitude=float(p.longitude) if p.longitude is not None else None,
        bio=p.bio, avatar_url=p.avatar_url, created_at=p.created_at, updated_at=p.updated_at,
    )


@router.post("", response_model=ProfileOut)
def create_profile(payload: ProfileCreateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    data = payload.model_dump()
    data["id"] = payload.id or ctx.principal_id
    p = Profile(**data)
    access.check_insert(ctx, p)
    if db.get(Profile, p.id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="profile_exists")
    db.add(p)
    db.flush()
    notify("profile.created", {"profile_id": str(p.id), "role": p.role})
    return _to_out(p)


@router.get("", response_model=ProfilesListOut)
def list_profiles(role: Role | None = None, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    query = db.query(Profile)
    if role:
        query = query.filter(Profile.role == role)
    rows = access.visible(ctx, query.order_by(Profile.created_at.desc()).all())
    return ProfilesListOut(profiles=[_to_out(p) for p in rows])


@router.get("/me", response_model=ProfileOut)
def my_profile(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    p = access.get_visible(ctx, db, Profile, ctx.principal_id)
    if p is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return _to_out(p)


@router.patch("/me", response_model=ProfileOut)
def update_my_profile(payload: ProfileUpdateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    p = access.get_visible(ctx, db, Profile, ctx.principal_id)
    if p is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    access.apply_update(ctx, p, payload.model_dump(exclude_unset=True))
    db.flush()
    notify("profile.updated", {"profile_id": str(p.id)})
    return _to_out(p)


@router.get("/{profile_id}", response_model=ProfileOut)
def get_profile(profile_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    p = access.get_visible(ctx, db, Profile, profile_id)
    if p is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return _to_out(p)
