import json

import pytest
import redis

from agriconnect import otp
from agriconnect.config import Settings, production_problems, settings


class _MemoryRedis:
    """Enough of the redis client API for the code store."""

    def __init__(self, down: bool = False):
        self.data = {}
        self.down = down

    def _check(self):
        if self.down:
            raise redis.ConnectionError("redis down")

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = str(value)

    def get(self, key):
        self._check()
        return self.data.get(key)

    def incr(self, key):
        self._check()
        self.data[key] = str(int(self.data.get(key) or 0) + 1)
        return int(self.data[key])

    def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)


class _Outbox:
    def __init__(self):
        self.sent = []

    def send(self, phone, message):
        self.sent.append((phone, message))

    def last_code(self):
        return self.sent[-1][1].split()[-1]


@pytest.fixture
def sms(monkeypatch):
    store = _MemoryRedis()
    outbox = _Outbox()
    monkeypatch.setattr(settings, "OTP_MODE", "redis")
    monkeypatch.setattr(settings, "OTP_STORAGE_SECRET", "test-secret")
    monkeypatch.setattr(settings, "OTP_MAX_ATTEMPTS", 2)
    monkeypatch.setattr(otp, "_store", store)
    monkeypatch.setattr(otp, "sms_backend", lambda: outbox)
    outbox.store = store
    return outbox


def test_redis_code_logs_in_once(client, sms):
    phone = "+254700000001"
    r = client.post("/auth/request_otp", json={"phone": phone})
    assert r.status_code == 200
    session = r.json()["otp_session"]
    code = sms.last_code()
    assert sms.sent[-1][0] == phone
    assert len(code) == 6
    record = json.loads(sms.store.data[f"otp:{session}"])
    assert set(record) == {"phone", "nonce", "hash"}
    assert code not in record.values()

    r = client.post("/auth/verify_otp", json={"phone": phone, "otp": code, "session_id": session})
    assert r.status_code == 200, r.text
    assert r.json()["access_token"]

    r = client.post("/auth/verify_otp", json={"phone": phone, "otp": code, "session_id": session})
    assert r.status_code == 400


def test_latest_code_used_without_session(client, sms):
    phone = "+254700000002"
    client.post("/auth/request_otp", json={"phone": phone})
    r = client.post("/auth/verify_otp", json={"phone": phone, "otp": sms.last_code()})
    assert r.status_code == 200


def test_fixed_dev_code_not_accepted_in_redis_mode(client, sms):
    phone = "+254700000003"
    client.post("/auth/request_otp", json={"phone": phone})
    if sms.last_code() == otp.DEV_OTP_CODE:
        pytest.skip("random code happened to equal the dev code")
    r = client.post("/auth/verify_otp", json={"phone": phone, "otp": otp.DEV_OTP_CODE})
    assert r.status_code == 400


def test_attempts_are_capped(client, sms):
    phone = "+254700000004"
    client.post("/auth/request_otp", json={"phone": phone})
    code = sms.last_code()
    wrong = "000000" if code != "000000" else "111111"
    for _ in range(2):
        assert client.post("/auth/verify_otp", json={"phone": phone, "otp": wrong}).status_code == 400
    assert client.post("/auth/verify_otp", json={"phone": phone, "otp": code}).status_code == 400


def test_code_bound_to_phone(client, sms):
    client.post("/auth/request_otp", json={"phone": "+254700000005"})
    code = sms.last_code()
    r = client.post("/auth/verify_otp", json={"phone": "+254700000006", "otp": code})
    assert r.status_code == 400


def test_store_down_is_503(client, sms, monkeypatch):
    monkeypatch.setattr(otp, "_store", _MemoryRedis(down=True))
    assert client.post("/auth/request_otp", json={"phone": "+254700000007"}).status_code == 503
    r = client.post("/auth/verify_otp", json={"phone": "+254700000007", "otp": "123456"})
    assert r.status_code == 503


def test_dev_code_needs_dev_env():
    assert otp.verify_code("+254700000008", "123456", cfg=otp.OTPConfig(mode="dev", dev_mode=True))
    assert not otp.verify_code("+254700000008", "123456", cfg=otp.OTPConfig(mode="dev", dev_mode=False))


def test_production_settings_can_issue_logins(monkeypatch):
    hardened = Settings()
    hardened.ALLOWED_ORIGINS = ["https://agriconnect.example"]
    hardened.AUTO_CREATE_SCHEMA = False
    hardened.OTP_MODE = "redis"
    hardened.OTP_STORAGE_SECRET = "vault-secret"
    hardened.SMS_PROVIDER = "http"
    hardened.SMS_HTTP_URL = "https://sms.example/send"
    hardened.JWT_SECRET = "s3cret-from-vault"
    hardened.RATE_LIMIT_BACKEND = "redis"
    hardened.DB_URL = "postgresql+psycopg2://app@db/agriconnect"
    assert production_problems(hardened) == []

    store, outbox = _MemoryRedis(), _Outbox()
    monkeypatch.setattr(otp, "_store", store)
    monkeypatch.setattr(otp, "sms_backend", lambda: outbox)
    cfg = otp.OTPConfig(mode=hardened.OTP_MODE, storage_secret=hardened.OTP_STORAGE_SECRET, dev_mode=False)
    issue = otp.request_code("+254700000009", cfg=cfg)
    assert issue.is_dev is False
    assert otp.verify_code("+254700000009", outbox.last_code(), issue.session_id, cfg=cfg)


def test_http_sms_backend_failure_is_unavailable(monkeypatch):
    import httpx

    def _refuse(*args, **kwargs):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr(httpx, "post", _refuse)
    with pytest.raises(otp.OTPUnavailable):
        otp.HttpBackend(url="https://sms.example/send").send("+254700000010", "hi")
