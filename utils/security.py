# ===============================================================
# utils/security.py
# ===============================================================
import uuid

import itsdangerous
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import SESSION_SECRET, SESSION_MAX_AGE
from db import get_session
from helpers import StorefrontError
from logging_setup import get_logger
from models import User

logger = get_logger(__name__)


# ---------------------------------------------------------------
# 🔐 Signed bearer tokens
# ---------------------------------------------------------------
serializer = itsdangerous.URLSafeTimedSerializer(SESSION_SECRET, salt="edifypub-access")


def issue_access_token(user: User) -> str:
    """Sign {"uid": <user id>}; valid for SESSION_MAX_AGE seconds."""
    return serializer.dumps({"uid": str(user.id)})


def read_access_token(token: str, max_age: int = SESSION_MAX_AGE):
    """Return the user id inside the token, or None when invalid/expired."""
    try:
        data = serializer.loads(token, max_age=max_age)
    except itsdangerous.BadSignature:
        return None
    try:
        return uuid.UUID(str(data.get("uid")))
    except (AttributeError, ValueError):
        return None


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# ---------------------------------------------------------------
# 👤 FastAPI dependencies
# ---------------------------------------------------------------
async def get_current_user(request: Request, session: AsyncSession = Depends(get_session)) -> User:
    token = _bearer_token(request)
    user_id = read_access_token(token) if token else None
    if user_id is None:
        raise StorefrontError(401, "Unauthorized")

    user = await session.get(User, user_id)
    if not user or not user.is_active:
        logger.warning(f"🚫 Token for unknown or inactive user {user_id}")
        raise StorefrontError(401, "Unauthorized")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise StorefrontError(403, "Forbidden")
    return user
