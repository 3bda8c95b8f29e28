"""One-time login codes.

Two modes, chosen by OTP_MODE:

- ``dev``: a fixed code, honoured only when ENV=dev.
- ``redis``: a random six-digit code per request. Only an HMAC of it is stored,
  under a session key with a TTL. Verification is capped at OTP_MAX_ATTEMPTS per
  session and a code is consumed on success. The code itself is sent by SMS.
"""
import hashlib
import hmac
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import redis

from .config import settings


log = logging.getLogger(__name__)

DEV_OTP_CODE = "123456"


class OTPUnavailable(Exception):
    """The code store or the SMS gateway could not be reached."""


@dataclass
class OTPConfig:
    mode: str = "dev"
    ttl_secs: int = 300
    max_attempts: int = 5
    storage_secret: str = ""
    dev_mode: bool = True


def config_from_settings() -> OTPConfig:
    return OTPConfig(
        mode=settings.OTP_MODE.lower(),
        ttl_secs=settings.OTP_TTL_SECS,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        storage_secret=settings.OTP_STORAGE_SECRET,
        dev_mode=settings.DEV_MODE,
    )


@dataclass
class OTPIssue:
    session_id: str
    is_dev: bool


def generate_code() -> str:
    return f"{secrets.randbelow(10**6):06d}"


# SMS delivery

class SmsBackend(Protocol):
    def send(self, phone: str, message: str) -> None:
        ...


def mask_phone(phone: str) -> str:
    if len(phone) <= 6:
        return "*" * len(phone)
    return phone[:4] + "*" * (len(phone) - 6) + phone[-2:]


class LogBackend:
    def send(self, phone: str, message: str) -> None:
        log.info("sms(log) to=%s chars=%d", mask_phone(phone), len(message))


@dataclass
class HttpBackend:
    url: str
    token: str = ""

    def send(self, phone: str, message: str) -> None:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            r = httpx.post(self.url, json={"to": phone, "message": message}, headers=headers, timeout=5.0)
            r.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("sms(http) to=%s failed: %s", mask_phone(phone), e)
            raise OTPUnavailable("sms gateway unavailable") from e


def sms_backend() -> SmsBackend:
    if settings.SMS_PROVIDER.lower() == "http":
        return HttpBackend(url=settings.SMS_HTTP_URL, token=settings.SMS_HTTP_TOKEN)
    return LogBackend()


# Code store

_store: redis.Redis | None = None


def _redis() -> redis.Redis:
    global _store
    if _store is None:
        _store = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _store


def _session_keys(session_id: str) -> tuple[str, str]:
    return f"otp:{session_id}", f"otp_attempts:{session_id}"


def _phone_key(phone: str) -> str:
    return f"otp_phone:{phone}"


def _digest(cfg: OTPConfig, phone: str, session_id: str, nonce: str, code: str) -> str:
    msg = "|".join((phone, session_id, nonce, code)).encode()
    return hmac.new(cfg.storage_secret.encode(), msg, hashlib.sha256).hexdigest()


def request_code(phone: str, cfg: Optional[OTPConfig] = None) -> OTPIssue:
    cfg = cfg or config_from_settings()
    session_id = secrets.token_urlsafe(16)
    if cfg.mode != "redis":
        return OTPIssue(session_id=session_id, is_dev=True)

    code = generate_code()
    nonce = secrets.token_hex(16)
    record = {"phone": phone, "nonce": nonce, "hash": _digest(cfg, phone, session_id, nonce, code)}
    otp_key, attempts_key = _session_keys(session_id)
    try:
        r = _redis()
        r.setex(otp_key, cfg.ttl_secs, json.dumps(record))
        r.setex(attempts_key, cfg.ttl_secs, 0)
        r.setex(_phone_key(phone), cfg.ttl_secs, session_id)
    except redis.RedisError as e:
        raise OTPUnavailable("otp store unavailable") from e
    sms_backend().send(phone, f"Your AgriConnect login code is {code}")
    return OTPIssue(session_id=session_id, is_dev=False)


def verify_code(phone: str, code: str, session_id: Optional[str] = None, cfg: Optional[OTPConfig] = None) -> bool:
    cfg = cfg or config_from_settings()
    code = code.strip()
    if cfg.mode != "redis":
        return cfg.dev_mode and hmac.compare_digest(code.encode(), DEV_OTP_CODE.encode())
    try:
        return _verify_stored(_redis(), cfg, phone, code, session_id)
    except redis.RedisError as e:
        raise OTPUnavailable("otp store unavailable") from e


def _verify_stored(r, cfg: OTPConfig, phone: str, code: str, session_id: Optional[str]) -> bool:
    session_id = session_id or r.get(_phone_key(phone))
    if not session_id:
        return False
    otp_key, attempts_key = _session_keys(session_id)
    raw = r.get(otp_key)
    if raw is None:
        return False
    record = json.loads(raw)
    if not hmac.compare_digest(record.get("phone", "").encode(), phone.encode()):
        return False
    if int(r.incr(attempts_key)) > cfg.max_attempts:
        r.delete(otp_key, attempts_key)
        return False
    expected = _digest(cfg, phone, session_id, record.get("nonce", ""), code)
    if not hmac.compare_digest(record.get("hash", ""), expected):
        return False
    r.delete(otp_key, attempts_key, _phone_key(phone))
    return True
