"""Access token handling.

The identity provider is opaque to the authorization core, which reads
only these claims:
  - sub:   user ID
  - sid:   session ID (scopes the per-session context cache)
  - type:  "access"
  - exp:   expiry timestamp (also caps the context cache TTL)

`create_access_token` exists for the CLI and the test suite; production
tokens are minted by the identity provider with the shared secret.
"""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from wms.config import settings


def create_access_token(
    user_id: str,
    session_id: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {
        "sub": user_id,
        "sid": session_id or uuid.uuid4().hex,
        "type": "access",
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Verified claims, or {} for a malformed, forged or expired token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return {}
