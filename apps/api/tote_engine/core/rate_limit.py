"""Rate limiting configuration for the claim API."""

import logging
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from tote_engine.core.config import settings

logger = logging.getLogger(__name__)

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")
DEFAULT_LIMITS = (
    []
    if IS_TESTING or settings.RATE_LIMIT_API <= 0
    else [f"{settings.RATE_LIMIT_API}/minute"]
)
VERIFY_LIMIT = f"{max(settings.RATE_LIMIT_VERIFY, 1)}/minute"


def _resolve_storage_uri() -> str:
    """Use the configured Redis storage when reachable, otherwise in-memory."""
    storage_uri = settings.RATE_LIMIT_STORAGE_URI
    if IS_TESTING or not storage_uri.startswith(("redis://", "rediss://")):
        return "memory://"
    try:
        import redis

        client = redis.from_url(storage_uri, socket_connect_timeout=1)
        client.ping()
    except Exception as e:
        logger.warning("Redis unavailable for rate limiting, using in-memory: %s", e)
        return "memory://"
    return storage_uri


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_resolve_storage_uri(),
    default_limits=DEFAULT_LIMITS,
    enabled=not IS_TESTING,
)
