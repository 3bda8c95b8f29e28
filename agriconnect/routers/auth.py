from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import otp
from ..auth import create_access_token, ensure_user
from ..database import get_db
from ..schemas import OtpSentOut, RequestOtpIn, TokenOut, VerifyOtpIn
from ..utils import notify


router = APIRouter(prefix="/auth", tags=["auth"])


def _check_phone(phone: str) -> str:
    phone = phone.strip()
    if not phone.startswith("+"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid phone")
    return phone


@router.post("/request_otp", response_model=OtpSentOut)
def request_otp(payload: RequestOtpIn):
    phone = _check_phone(payload.phone)
    try:
        issue = otp.request_code(phone)
    except otp.OTPUnavailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="otp_unavailable")
    return OtpSentOut(otp_session=issue.session_id)


@router.post("/verify_otp", response_model=TokenOut)
def verify_otp(payload: VerifyOtpIn, db: Session = Depends(get_db)):
    phone = _check_phone(payload.phone)
    try:
        ok = otp.verify_code(phone, payload.otp, payload.session_id)
    except otp.OTPUnavailable:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="otp_unavailable")
    if not ok:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_otp")
    user, created = ensure_user(db, phone)
    if created:
        notify("principal.created", {"user_id": str(user.id)})
    return TokenOut(access_token=create_access_token(str(user.id), user.phone), user_id=str(user.id))
