# services/supabase_auth.py
import logging
import os

from jose import jwt, JWTError
from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

SUPABASE_PROJECT_URL = os.getenv("SUPABASE_PROJECT_URL", "").rstrip("/")
SUPABASE_JWT_AUD = os.getenv("SUPABASE_JWT_AUD", "authenticated")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")


def _get_bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization")
    if not auth or not auth.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return auth.split(" ", 1)[1].strip()


def decode_supabase_token(token: str) -> dict:
    if not SUPABASE_JWT_SECRET:
        raise RuntimeError("SUPABASE_JWT_SECRET is not configured")

    options = {}
    kwargs = {}
    if SUPABASE_PROJECT_URL:
        kwargs["issuer"] = f"{SUPABASE_PROJECT_URL}/auth/v1"
    else:
        options["verify_iss"] = False

    return jwt.decode(
        token,
        SUPABASE_JWT_SECRET,  # HS256 uses shared secret
        algorithms=["HS256"],
        audience=SUPABASE_JWT_AUD,
        options=options,
        **kwargs,
    )


async def get_current_supabase_user(request: Request) -> dict:
    token = _get_bearer_token(request)
    try:
        return decode_supabase_token(token)
    except JWTError as e:
        logger.warning("supabase_jwt_rejected reason=%s", type(e).__name__)
        raise HTTPException(status_code=401, detail="Invalid or expired token")


async def get_current_user_id(request: Request) -> str:
    """Owner identity for assessment rows: the Supabase user UUID (sub claim)."""
    payload = await get_current_supabase_user(request)
    supabase_user_id = payload.get("sub")
    if not supabase_user_id:
        raise HTTPException(status_code=401, detail="Invalid auth token")
    return str(supabase_user_id)
