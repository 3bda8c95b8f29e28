import json
import uuid

import redis

from agriconnect import utils
from agriconnect.config import settings


class _FakeRedis:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.published = []

    def publish(self, channel, message):
        if self.fail:
            raise redis.ConnectionError("down")
        self.published.append((channel, message))


def test_log_mode_does_not_publish(monkeypatch):
    fake = _FakeRedis()
    monkeypatch.setattr(settings, "NOTIFY_MODE", "log")
    monkeypatch.setattr(utils, "_publisher", fake)
    utils.notify("order.created", {"order_id": "o1"})
    assert fake.published == []


def test_redis_mode_publishes_envelope(monkeypatch):
    fake = _FakeRedis()
    monkeypatch.setattr(settings, "NOTIFY_MODE", "redis")
    monkeypatch.setattr(utils, "_publisher", fake)
    oid = uuid.uuid4()
    utils.notify("order.status_changed", {"order_id": oid, "to": "accepted"})

    [(channel, raw)] = fake.published
    assert channel == settings.NOTIFY_REDIS_CHANNEL
    body = json.loads(raw)
    assert body["event"] == "order.status_changed"
    assert body["data"] == {"order_id": str(oid), "to": "accepted"}
    assert body["at"]


def test_publish_failure_is_logged_not_raised(monkeypatch, caplog):
    monkeypatch.setattr(settings, "NOTIFY_MODE", "redis")
    monkeypatch.setattr(utils, "_publisher", _FakeRedis(fail=True))
    utils.notify("message.sent", {"message_id": "m1"})
    assert "notify(redis) failed" in caplog.text
