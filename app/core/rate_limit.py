"""slowapi limiter shared by the routers."""

import logging
import os

import redis
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

logger = logging.getLogger(__name__)

MEMORY_STORAGE = "memory://"

AUTH_LIMIT = settings.RATE_LIMIT_AUTH
WEBHOOK_LIMIT = settings.RATE_LIMIT_WEBHOOK
UPLOAD_LIMIT = settings.RATE_LIMIT_UPLOAD


def _testing() -> bool:
    return os.getenv("TESTING", "").lower() in ("1", "true", "yes")


def _default_limits() -> list[str]:
    if _testing() or settings.RATE_LIMIT_API <= 0:
        return []
    return [f"{settings.RATE_LIMIT_API}/minute"]


def _storage_uri() -> str:
    """REDIS_URL when it answers a ping, otherwise per-process memory."""
    if _testing() or not settings.REDIS_URL:
        return MEMORY_STORAGE
    try:
        redis.from_url(settings.REDIS_URL, socket_connect_timeout=1).ping()
    except redis.RedisError as exc:
        logger.warning("Rate limit storage falling back to memory (%s)", type(exc).__name__)
        return MEMORY_STORAGE
    return settings.REDIS_URL


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_storage_uri(),
    default_limits=_default_limits(),
)
