from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import jwt

from busline.core.config import settings


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a bearer token issued by the identity provider.

    Raises jwt.PyJWTError if the signature, expiry or audience is invalid
    and returns the payload as a dict.
    """
    options = {"verify_aud": settings.jwt_audience is not None}
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options=options,
    )
    return payload


def create_access_token(subject: str | Any, expires_delta: Optional[timedelta] = None) -> str:
    # Only used by the dev seed and the test-suite; production tokens come from the identity provider.
    expire = datetime.now(tz=timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode: dict[str, Any] = {"sub": str(subject), "exp": expire}
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
