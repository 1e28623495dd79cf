# app/core/security.py
# Identity-provider token verification and shared-secret checks
# Used by: dependencies.py, cron endpoints
#
# Authentication itself (sign-up, login, password reset) lives with the
# external identity provider. It signs bearer JWTs with a shared secret;
# we only verify them and read `sub` / `email`.

import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.core.config import settings


# ── JWT Tokens ────────────────────────────────────────────────────────────────

def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate an identity-provider JWT.
    Returns the payload dict if valid, None if expired or invalid.
    Does NOT check the database -- use dependencies.py for full validation.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
        return payload
    except JWTError:
        return None


def create_access_token(user_id: str, email: str, minutes: int = 60) -> str:
    """
    Mint a token shaped like the identity provider's.
    Used by local tooling and the test-suite; production tokens come from the IdP.

    Payload:
        sub   -- provider user id
        email -- login email (resolved to a local User)
        aud   -- configured audience
        exp   -- expiry timestamp
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": settings.jwt_audience,
        "exp": now + timedelta(minutes=minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


# ── Shared Secrets ────────────────────────────────────────────────────────────

def secret_matches(expected: str, received: Optional[str]) -> bool:
    """
    Constant-time comparison for cron / trigger shared secrets.
    An unset expected secret never matches, so unconfigured endpoints stay closed.
    """
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode(), received.encode())
