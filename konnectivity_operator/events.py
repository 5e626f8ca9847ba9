"""
Reconcile event stream, optional: degrades gracefully if Redis is unavailable.

Every pass outcome is appended to a per-control-plane Redis Stream and
published on a global channel so dashboards can follow the operator live.
"""

import json
import logging

import redis

from konnectivity_operator.config import settings
from konnectivity_operator.utilities import utc_now

logger = logging.getLogger("events")

EVENTS_CHANNEL = "konnectivity:events"
STREAM_MAXLEN = 100

_redis_client = None


def get_redis():
    """Lazy-init Redis client. Returns None if unavailable."""
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    if not settings.REDIS_URL:
        return None
    try:
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        _redis_client.ping()
        logger.info(f"Redis connected: {settings.REDIS_URL}")
        return _redis_client
    except Exception as e:
        logger.warning(f"Redis unavailable (non-fatal): {e}")
        _redis_client = None
        return None


def stream_key(namespace: str, name: str) -> str:
    return f"konnectivity:events:{namespace}/{name}"


def publish_event(namespace: str, name: str, event_type: str, message: str, result: str = ""):
    """Publish a reconcile event for a tenant control plane."""
    r = get_redis()
    if not r:
        return
    event = {
        "type": event_type,
        "message": message,
        "result": result,
        "timestamp": utc_now(),
        "tenantControlPlane": f"{namespace}/{name}",
    }
    try:
        r.xadd(stream_key(namespace, name), event, maxlen=STREAM_MAXLEN)
        r.publish(EVENTS_CHANNEL, json.dumps(event))
    except Exception as e:
        logger.debug(f"Redis publish failed (non-fatal): {e}")


def recent_events(namespace: str, name: str, count: int = 50) -> list[dict]:
    """Read back the latest events of a tenant control plane, oldest first."""
    r = get_redis()
    if not r:
        return []
    try:
        entries = r.xrevrange(stream_key(namespace, name), count=count)
    except redis.RedisError as e:
        logger.debug(f"Redis stream read failed: {e}")
        return []
    return [data for _, data in reversed(entries)]
