# middleware/rate_limit.py
"""
Rate limiting configuration using slowapi.

Only routes decorated with `@limiter.limit(...)` are limited:

    from middleware.rate_limit import limiter, REFRESH_RATE_LIMIT

    @router.post("/update-prices")
    @limiter.limit(REFRESH_RATE_LIMIT)
    async def update_prices(request: Request, ...):
        ...
"""
import logging
import os

from fastapi import Request
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)


def _get_rate_limit_key(request: Request) -> str:
    """
    Bucket by user id (JWT `sub`) when a bearer token is present, else by IP.
    The token is not verified here; auth is enforced by get_current_db_user.
    """
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1].strip()
        try:
            sub = jwt.get_unverified_claims(token).get("sub")
        except JWTError:
            sub = None
        if sub:
            return f"user:{sub}"

    return get_remote_address(request)


# ─── Limits ────────────────────────────────────────────────────────
# A sweep hits the quote source once per tracked ticker.
REFRESH_RATE_LIMIT = os.getenv("RATE_LIMIT_REFRESH", "6/minute")
LOGIN_RATE_LIMIT = os.getenv("RATE_LIMIT_LOGIN", "10/minute")

limiter = Limiter(
    key_func=_get_rate_limit_key,
    storage_uri=os.getenv("REDIS_URL", "memory://"),
    strategy="fixed-window",
    enabled=os.getenv("RATE_LIMIT_ENABLED", "1").lower() in ("1", "true", "yes"),
)
