"""Shared rate limiter (in-memory, per client IP).

The AI order and mailbox poll endpoints call paid or throttled upstream
services and carry tighter per-route limits on top of the default.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)
