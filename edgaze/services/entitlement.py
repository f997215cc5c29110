import os
from dataclasses import dataclass
from typing import Any

DEFAULT_BUILDER_TEST_RUN_LIMIT = 10
DEFAULT_FREE_RUN_LIMIT = 5
ADMIN_UNLIMITED = 999999


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def builder_test_run_limit() -> int:
    return _env_int("BUILDER_TEST_RUN_LIMIT", DEFAULT_BUILDER_TEST_RUN_LIMIT)


def free_run_limit() -> int:
    return _env_int("FREE_RUN_LIMIT", DEFAULT_FREE_RUN_LIMIT)


def run_limit(is_builder_test: bool) -> int:
    return builder_test_run_limit() if is_builder_test else free_run_limit()


def remaining(limit: int, used: int) -> int:
    return max(0, int(limit) - int(used))


@dataclass(frozen=True)
class Entitlement:
    used: int
    limit: int
    free_runs_remaining: int
    is_admin: bool = False

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "used": self.used,
            "limit": self.limit,
            "freeRunsRemaining": self.free_runs_remaining,
        }
        if self.is_admin:
            body["isAdmin"] = True
        return body


def evaluate(used: int, *, is_builder_test: bool, is_admin: bool) -> Entitlement:
    """Advisory quota for display; execution is gated elsewhere.

    Operators are never limited but still see their real usage.
    """
    if is_admin:
        return Entitlement(
            used=used,
            limit=ADMIN_UNLIMITED,
            free_runs_remaining=ADMIN_UNLIMITED,
            is_admin=True,
        )

    limit = run_limit(is_builder_test)
    return Entitlement(used=used, limit=limit, free_runs_remaining=remaining(limit, used))
