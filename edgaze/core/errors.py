from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional

from sqlalchemy.exc import DBAPIError


@dataclass(frozen=True)
class UpstreamError:
    """Error reported by the managed store or another external service."""

    message: str
    code: Optional[str] = None
    details: Optional[str] = None
    hint: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "UpstreamError":
        if isinstance(exc, UpstreamFailure):
            return exc.error

        code = details = hint = None
        message = str(exc) or exc.__class__.__name__

        if isinstance(exc, DBAPIError) and exc.orig is not None:
            orig = exc.orig
            # psycopg2 exposes SQLSTATE and diagnostics on the driver error
            code = getattr(orig, "pgcode", None)
            diag = getattr(orig, "diag", None)
            if diag is not None:
                message = getattr(diag, "message_primary", None) or message
                details = getattr(diag, "message_detail", None)
                hint = getattr(diag, "message_hint", None)
            else:
                message = str(orig) or message

        return cls(message=message, code=code, details=details, hint=hint)

    def structured(self) -> Optional[dict[str, Any]]:
        """code/details/hint when any of them is known."""
        if not (self.code or self.details or self.hint):
            return None
        return {k: v for k, v in asdict(self).items() if k != "message" and v is not None}


class EdgazeError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(EdgazeError):
    status_code = 401


class Forbidden(EdgazeError):
    status_code = 403


class NotFound(EdgazeError):
    status_code = 404


class InvalidInput(EdgazeError):
    status_code = 400


class Conflict(EdgazeError):
    status_code = 409


class RateLimited(EdgazeError):
    status_code = 429


class UpstreamFailure(EdgazeError):
    status_code = 500

    def __init__(self, error: UpstreamError):
        super().__init__(error.message)
        self.error = error

    @classmethod
    def wrap(cls, exc: Exception) -> "UpstreamFailure":
        return cls(UpstreamError.from_exception(exc))
