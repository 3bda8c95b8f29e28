"""Domain event fan-out.

Every event is logged. With NOTIFY_MODE=redis it is also published as a JSON
envelope on NOTIFY_REDIS_CHANNEL for other services to consume.
"""
import datetime as dt
import json
import logging
from typing import Any, Dict

import redis

from .config import settings


log = logging.getLogger(__name__)

_publisher: redis.Redis | None = None


def _redis() -> redis.Redis | None:
    global _publisher
    if _publisher is None and settings.REDIS_URL:
        _publisher = redis.from_url(settings.REDIS_URL)
    return _publisher


def envelope(event: str, payload: Dict[str, Any]) -> str:
    return json.dumps(
        {"event": event, "at": dt.datetime.now(dt.timezone.utc).isoformat(), "data": payload},
        default=str,
    )


def notify(event: str, payload: Dict[str, Any]) -> None:
    log.info("event=%s payload=%s", event, payload)
    if settings.NOTIFY_MODE != "redis":
        return
    cli = _redis()
    if cli is None:
        log.warning("notify(redis): REDIS_URL not set, event %s not published", event)
        return
    try:
        cli.publish(settings.NOTIFY_REDIS_CHANNEL, envelope(event, payload))
    except redis.RedisError as e:
        log.warning("notify(redis) failed for %s: %s", event, e)
