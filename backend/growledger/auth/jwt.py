"""JWT token creation and decoding.

Token claims:
  - sub:    user ID (recorded as the audit actor)
  - email:  user e-mail, copied onto audit entries
  - type:   "access"
  - exp:    expiry timestamp

Login and token issuance belong to the surrounding application;
``create_access_token`` exists for it and for tests.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from growledger.config import settings

ALGORITHM = settings.jwt_algorithm


def create_access_token(
    user_id: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": expire,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Returns empty dict on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return {}
