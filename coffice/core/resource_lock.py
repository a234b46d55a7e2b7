from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterator, Optional
import uuid

from redis import Redis
from redis.exceptions import RedisError

from coffice.core.config import settings
from coffice.core.exceptions import ResourceBusyException, ServiceException
from coffice.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_LOCAL_LOCKS: Dict[str, threading.Lock] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_POLL_INTERVAL_S = 0.05

# Delete only if the key still holds our token, so an expired holder cannot
# release a lock another request has since taken.
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


def _lock_key(resource_id: str) -> str:
    return f"resource:{resource_id}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Redis:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is None:
            _SYNC_REDIS = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return _SYNC_REDIS


def _local_lock_for(resource_id: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock = _LOCAL_LOCKS.get(resource_id)
        if lock is None:
            lock = threading.Lock()
            _LOCAL_LOCKS[resource_id] = lock
        return lock


def acquire_local_lock(resource_id: str, timeout_s: float) -> bool:
    acquired = _local_lock_for(resource_id).acquire(timeout=timeout_s)
    prometheus_metrics.record_resource_lock("acquire", "success" if acquired else "timeout")
    return acquired


def release_local_lock(resource_id: str) -> None:
    _local_lock_for(resource_id).release()
    prometheus_metrics.record_resource_lock("release", "success")


def acquire_redis_lock(resource_id: str, token: str, ttl_s: int, timeout_s: float) -> bool:
    client = _get_sync_redis()
    key = _namespaced_key(_lock_key(resource_id))
    deadline = time.monotonic() + timeout_s
    try:
        while True:
            if client.set(key, token, nx=True, ex=ttl_s):
                prometheus_metrics.record_resource_lock("acquire", "success")
                return True
            if time.monotonic() >= deadline:
                prometheus_metrics.record_resource_lock("acquire", "timeout")
                return False
            time.sleep(_POLL_INTERVAL_S)
    except RedisError as exc:
        prometheus_metrics.record_resource_lock("acquire", "error")
        logger.error(
            "resource_lock_redis_acquire_failed",
            extra={
                "resource_id": resource_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        raise ServiceException(
            "Resource lock backend unavailable", code="LOCK_BACKEND_UNAVAILABLE"
        ) from exc


def release_redis_lock(resource_id: str, token: str) -> None:
    client = _get_sync_redis()
    try:
        deleted = client.eval(_RELEASE_SCRIPT, 1, _namespaced_key(_lock_key(resource_id)), token)
    except RedisError as exc:
        # The TTL reclaims the key; the committed work is not affected.
        prometheus_metrics.record_resource_lock("release", "error")
        logger.warning(
            "resource_lock_redis_release_failed",
            extra={
                "resource_id": resource_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return
    prometheus_metrics.record_resource_lock("release", "success" if deleted else "not_found")


@contextmanager
def resource_lock(
    resource_id: str,
    ttl_s: Optional[int] = None,
    timeout_s: Optional[float] = None,
) -> Iterator[None]:
    """
    Serialize check-then-write sequences for a single resource.

    Raises ResourceBusyException when the lock is not obtained within
    ``timeout_s``. The backend is chosen by ``settings.lock_backend``.
    """
    ttl = ttl_s if ttl_s is not None else settings.resource_lock_ttl_seconds
    timeout = timeout_s if timeout_s is not None else settings.resource_lock_timeout_seconds

    if settings.lock_backend == "redis":
        token = uuid.uuid4().hex
        if not acquire_redis_lock(resource_id, token, ttl, timeout):
            raise ResourceBusyException(resource_id)
        try:
            yield
        finally:
            release_redis_lock(resource_id, token)
        return

    if not acquire_local_lock(resource_id, timeout):
        raise ResourceBusyException(resource_id)
    try:
        yield
    finally:
        release_local_lock(resource_id)
