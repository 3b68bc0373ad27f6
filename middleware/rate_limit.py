# middleware/rate_limit.py
"""
Rate limiting for the assessment API (slowapi).

Polling clients hit the status endpoint every few seconds for up to two
minutes, so reads get a much higher budget than writes.

    from middleware.rate_limit import limiter, READ_LIMIT

    @router.get("/crypto-assessments/{assessment_id}")
    @limiter.limit(READ_LIMIT)
    def read(request: Request, ...):
        ...
"""
import logging
import os

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
WRITE_LIMIT = os.getenv("RATE_LIMIT_ASSESSMENT_WRITE", "10/minute")
READ_LIMIT = os.getenv("RATE_LIMIT_ASSESSMENT_READ", "120/minute")


def _get_rate_limit_key(request: Request) -> str:
    """Bucket by Supabase user (sub claim) when a bearer token is present, else by IP.

    The token is not verified here; the route's auth dependency does that.
    """
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth.split(" ", 1)[1].strip()
        try:
            from jose import jwt
            from jose.exceptions import JOSEError

            sub = jwt.get_unverified_claims(token).get("sub")
        except (JOSEError, ValueError):
            sub = None
        if sub:
            return f"user:{sub}"

    return get_remote_address(request)


limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
    strategy="fixed-window",
    enabled=os.getenv("RATE_LIMIT_ENABLED", "1").lower() not in ("0", "false", "no"),
)
