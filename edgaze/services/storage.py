"""
Object storage for uploaded attachments.
"""
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from fastapi import Request

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class IStorageBackend(ABC):
    """Interface for attachment storage backends."""

    @abstractmethod
    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        """Store bytes under bucket/path; never overwrites."""

    @abstractmethod
    def exists(self, bucket: str, path: str) -> bool:
        """Check if an object exists."""


class LocalFileSystemBackend(IStorageBackend):
    """Local filesystem storage backend, one directory per bucket."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path).resolve()

    def _resolve_path(self, bucket: str, path: str) -> Path:
        resolved = (self.base_path / bucket / path).resolve()
        # keep writes inside the storage root
        if not resolved.is_relative_to(self.base_path):
            raise StorageError(f"Path outside storage root: {path}")
        return resolved

    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        resolved = self._resolve_path(bucket, path)
        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            with open(resolved, "xb") as fh:
                fh.write(data)
        except FileExistsError as exc:
            raise StorageError("The resource already exists") from exc
        except OSError as exc:
            raise StorageError(str(exc)) from exc
        logger.debug("Stored object", extra={"bucket": bucket, "path": path, "content_type": content_type})

    def exists(self, bucket: str, path: str) -> bool:
        return self._resolve_path(bucket, path).exists()


def get_storage_root() -> str:
    return os.getenv("STORAGE_ROOT", "./storage")


def get_storage(request: Request) -> IStorageBackend:
    return request.app.state.storage
