import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from .. import access
from ..access import RequestContext
from ..auth import get_context
from ..database import get_db
from ..models import Message, Product, Profile
from ..schemas import MessageCreateIn, MessageOut, MessagesListOut
from ..utils import notify


router = APIRouter(prefix="/messages", tags=["messages"])

CONVERSATION_LIMIT = 500


def _to_out(m: Message) -> MessageOut:
    return MessageOut(
        id=str(m.id), sender_id=str(m.sender_id), receiver_id=str(m.receiver_id),
        product_id=str(m.product_id) if m.product_id else None,
        message=m.message, is_read=m.is_read, created_at=m.created_at,
    )


def _list_out(ctx: RequestContext, rows) -> MessagesListOut:
    unread = sum(1 for m in rows if not m.is_read and ctx.is_(m.receiver_id))
    return MessagesListOut(messages=[_to_out(m) for m in rows], unread=unread)


@router.post("", response_model=MessageOut)
def send_message(payload: MessageCreateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    m = Message(
        sender_id=payload.sender_id or ctx.principal_id,
        receiver_id=payload.receiver_id,
        product_id=payload.product_id,
        message=payload.message,
        is_read=False,
    )
    access.check_insert(ctx, m)
    if access.get_visible(ctx, db, Profile, payload.receiver_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")
    if payload.product_id is not None and access.get_visible(ctx, db, Product, payload.product_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    db.add(m)
    db.flush()
    notify("message.sent", {"message_id": str(m.id), "receiver_id": str(m.receiver_id)})
    return _to_out(m)


@router.get("", response_model=MessagesListOut)
def list_messages(unread_only: bool = False, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    query = db.query(Message).filter(or_(Message.sender_id == ctx.principal_id, Message.receiver_id == ctx.principal_id))
    if unread_only:
        query = query.filter(Message.receiver_id == ctx.principal_id, Message.is_read.is_(False))
    rows = access.visible(ctx, query.order_by(Message.created_at.desc()).all())
    return _list_out(ctx, rows)


@router.get("/with/{profile_id}", response_model=MessagesListOut)
def conversation(profile_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    me = ctx.principal_id
    query = db.query(Message).filter(or_(
        and_(Message.sender_id == me, Message.receiver_id == profile_id),
        and_(Message.sender_id == profile_id, Message.receiver_id == me),
    ))
    # Latest window, shown oldest first
    latest = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(CONVERSATION_LIMIT).all()
    return _list_out(ctx, access.visible(ctx, list(reversed(latest))))


@router.post("/{message_id}/read", response_model=MessageOut)
def mark_read(message_id: uuid.UUID, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    m = access.get_visible(ctx, db, Message, message_id)
    if m is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    access.apply_update(ctx, m, {"is_read": True})
    db.flush()
    return _to_out(m)
