"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and api/routes/auth.py
(to apply per-route limits with @limiter.limit()).

A single shared instance means all routes share the same in-memory counter
store. RATE_LIMIT_ENABLED=false turns every limit off (used by the tests).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)


def login_rate_limit() -> str:
    return get_settings().login_rate_limit
