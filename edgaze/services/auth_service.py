from datetime import datetime, timedelta, timezone
import os
from typing import Optional

import jwt

JWT_ALGORITHM = "HS256"
JWT_EXP_HOURS = 1


def _get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET is required")
    if len(secret) < 32:
        raise ValueError("JWT_SECRET must be at least 32 characters")
    return secret


def jwt_secret_configured() -> bool:
    return bool(os.getenv("JWT_SECRET"))


def create_access_token(user_id: str, email: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": "authenticated",
        "iat": now,
        "exp": now + timedelta(hours=JWT_EXP_HOURS),
    }
    if email:
        payload["email"] = email
    audience = os.getenv("JWT_AUDIENCE")
    if audience:
        payload["aud"] = audience
    return jwt.encode(payload, _get_jwt_secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """Validate an access token issued by the identity provider.

    Raises ValueError carrying the provider's message.
    """
    audience = os.getenv("JWT_AUDIENCE")
    try:
        payload = jwt.decode(
            token,
            _get_jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            audience=audience,
            options={"verify_aud": bool(audience)},
        )
    except jwt.PyJWTError as exc:
        raise ValueError(str(exc) or "Invalid token") from exc

    if not payload.get("sub"):
        raise ValueError("Invalid token claims")

    return payload
