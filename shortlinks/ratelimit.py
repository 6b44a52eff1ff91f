"""Per-client request budgets, enforced with slowapi.

Counters live in the storage named by ``RATE_LIMIT_STORAGE_URI`` (Redis at
``REDIS_URL`` by default) so every worker process shares the same budget.
Each decorated route keeps its own fixed-window counter per client address::

    @router.get("/{short_code}")
    @limiter.limit(RATE_LIMIT)
    async def redirect_to_url(request: Request, short_code: str): ...

Key Behaviours
===============
- Over budget, slowapi raises ``RateLimitExceeded``; ``shortlinks.main``
  renders it as 429 ``RateLimited``.
- Storage errors are logged by slowapi and the request is let through.
- ``RATE_LIMIT_ENABLED=false`` turns every check into a no-op.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from shortlinks.config import Settings, get_settings

__all__ = ["RATE_LIMIT", "build_limiter", "default_rate_limit", "limiter"]


def build_limiter(settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_remote_address,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI or settings.REDIS_URL,
        key_prefix=settings.RATE_LIMIT_KEY_PREFIX,
        enabled=settings.RATE_LIMIT_ENABLED,
        swallow_errors=True,
    )


def default_rate_limit(settings: Settings) -> str:
    """Limit string in slowapi's ``"N per M seconds"`` notation."""
    return f"{settings.RATE_LIMIT_REQUESTS} per {settings.RATE_LIMIT_WINDOW_SECONDS} seconds"


limiter = build_limiter(get_settings())
RATE_LIMIT = default_rate_limit(get_settings())
