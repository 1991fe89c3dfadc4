from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from ticketbox.core.config import settings

ALGORITHM = "HS256"

# Tokens are issued by the identity service; this module only needs to read
# them. create_access_token mirrors that service's claims for local tooling.
DEFAULT_TOKEN_MINUTES = 60


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=DEFAULT_TOKEN_MINUTES)
    )
    to_encode = {"exp": expire, "sub": str(subject)}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[str]:
    """Returns user ID (sub claim) or None if token is invalid/expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        return payload.get("sub")
    except JWTError:
        return None
