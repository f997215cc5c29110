import logging
import os
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from edgaze.core.errors import Forbidden, Unauthenticated
from edgaze.database import get_db
from edgaze.services.admin_service import is_admin
from edgaze.services.auth_service import verify_token

logger = logging.getLogger(__name__)


def _session_cookie_name() -> str:
    return os.getenv("SESSION_COOKIE_NAME", "sb-access-token")


def _parse_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):].strip()
    return token or None


def _resolve_user_id(token: str) -> str:
    try:
        claims = verify_token(token)
    except ValueError as exc:
        raise Unauthenticated(str(exc) or "Invalid token") from exc
    return str(claims["sub"])


def require_user(request: Request) -> str:
    token = _parse_bearer_token(request)
    if token is None:
        raise Unauthenticated("Missing Authorization token")

    user_id = _resolve_user_id(token)
    request.state.user_id = user_id
    return user_id


def require_user_or_session(request: Request) -> str:
    """Bearer credential first, then the browser session cookie."""
    token = _parse_bearer_token(request)
    if token is None:
        token = request.cookies.get(_session_cookie_name()) or None
    if token is None:
        raise Unauthenticated("Missing Authorization token")

    user_id = _resolve_user_id(token)
    request.state.user_id = user_id
    return user_id


def optional_user(request: Request) -> Optional[str]:
    token = _parse_bearer_token(request)
    if token is None:
        return None
    try:
        claims = verify_token(token)
    except ValueError as exc:
        logger.info("Ignoring invalid bearer token on anonymous endpoint", extra={"reason": str(exc)})
        return None
    return str(claims["sub"])


def require_admin(
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
) -> str:
    if not is_admin(db, user_id):
        raise Forbidden("Admin access required")
    return user_id


def require_admin_or_session(
    user_id: str = Depends(require_user_or_session),
    db: Session = Depends(get_db),
) -> str:
    if not is_admin(db, user_id):
        raise Forbidden("Admin access required")
    return user_id
