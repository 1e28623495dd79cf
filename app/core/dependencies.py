# app/core/dependencies.py
# FastAPI dependency functions for authentication and authorization
#
# Key rules:
#   1. Tokens are issued by the external identity provider; we only verify them
#      and resolve the local User by (lower-cased) email.
#   2. Deactivated users are treated as anonymous (401).
#   3. Booking actions require a verified student card (AUTO_VERIFIED).
#   4. Cron / internal triggers authenticate with shared-secret headers, not JWTs.

from typing import Optional

import redis
from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.security import decode_token, secret_matches
from app.db.session import get_db
from app.models.user import User

# Bearer token extractor -- auto_error=False so we can handle 401 ourselves
bearer_scheme = HTTPBearer(auto_error=False)

_redis_client: Optional[redis.Redis] = None


# ── Token Extraction ──────────────────────────────────────────────────────────

def _extract_user_from_token(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
) -> Optional[User]:
    """
    Internal helper: decode Bearer token and load user from DB.
    Returns None if no token, invalid token, or user not found/deactivated.
    """
    if not credentials:
        return None

    payload = decode_token(credentials.credentials)
    if not payload:
        return None

    email = (payload.get("email") or "").strip().lower()
    if not email:
        return None

    user = db.query(User).filter(func.lower(User.email) == email).first()
    if not user or user.is_deactivated:
        return None

    return user


# ── Auth Dependencies ─────────────────────────────────────────────────────────

def require_login(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Requires a valid JWT token. Raises 401 if not authenticated.

    Use for: Any endpoint requiring login but not a specific role.
    """
    user = _extract_user_from_token(credentials, db)
    if not user:
        raise UnauthorizedError("Authentication required. Please log in.")
    return user


def require_verified_user(user: User = Depends(require_login)) -> User:
    """
    Requires a verified student card.
    Use for: booking, rescheduling, applying to tutor.
    """
    if user.verification_status != "AUTO_VERIFIED":
        raise ForbiddenError("Verify your student card before booking sessions.")
    return user


def require_tutor(user: User = Depends(require_login)) -> User:
    """
    Requires an approved, verified tutor.
    Use for: /tutor/* endpoints (accept, reject, propose, complete, cancel).
    """
    if not user.is_tutor:
        raise ForbiddenError("Tutor access required.")
    if user.verification_status != "AUTO_VERIFIED":
        raise ForbiddenError("Tutor account is not verified.")
    return user


def require_admin(user: User = Depends(require_login)) -> User:
    """
    Requires the ADMIN role. Raises 403 for all other roles.
    Use for: Admin portal endpoints only.
    """
    if not user.is_admin:
        raise ForbiddenError("Admin access required.")
    return user


# ── Shared-Secret Triggers ────────────────────────────────────────────────────
# Header names match the scheduler configuration.

def require_allocator_secret(
    x_allocator_secret: Optional[str] = Header(default=None),
) -> None:
    if not secret_matches(settings.allocator_secret, x_allocator_secret):
        raise UnauthorizedError("Invalid allocator secret.")


def require_auto_complete_secret(
    x_auto_complete_secret: Optional[str] = Header(default=None),
) -> None:
    if not secret_matches(settings.auto_complete_secret, x_auto_complete_secret):
        raise ForbiddenError("Invalid auto-complete secret.")


def require_cron_secret(
    x_cron_secret: Optional[str] = Header(default=None),
) -> None:
    if not secret_matches(settings.cron_secret, x_cron_secret):
        raise UnauthorizedError("Invalid cron secret.")


# ── Redis ─────────────────────────────────────────────────────────────────────

def get_redis() -> redis.Redis:
    """
    Shared Redis client (typing indicators).
    Created lazily; tests override this dependency with fakeredis.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client
