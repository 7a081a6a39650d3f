"""FastAPI dependencies for authentication.

Dependencies:
  get_current_actor  → decode JWT, return the Actor recorded on audit entries
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from growledger.auth.jwt import decode_token
from growledger.services.audit import Actor

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


async def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    """Turn the bearer token into the acting user.

    The ledger trusts the token's claims; user lookup and revocation live
    with the login service.
    """
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Actor(user_id=user_id, email=payload.get("email"))
