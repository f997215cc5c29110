import pytest

from edgaze.services.storage import LocalFileSystemBackend, StorageError


def test_upload_and_exists(tmp_path):
    storage = LocalFileSystemBackend(str(tmp_path / "root"))
    storage.upload("media", "2025-01-01/a.png", b"data", "image/png")

    assert storage.exists("media", "2025-01-01/a.png")
    assert (tmp_path / "root" / "media" / "2025-01-01" / "a.png").read_bytes() == b"data"


def test_existing_object_is_never_overwritten(tmp_path):
    storage = LocalFileSystemBackend(str(tmp_path / "root"))
    storage.upload("media", "a.png", b"first")

    with pytest.raises(StorageError):
        storage.upload("media", "a.png", b"second")
    assert (tmp_path / "root" / "media" / "a.png").read_bytes() == b"first"


def test_sibling_directory_with_shared_prefix_is_outside_root(tmp_path):
    storage = LocalFileSystemBackend(str(tmp_path / "root"))

    with pytest.raises(StorageError):
        storage.upload("..", "root2/escape.bin", b"x")
    assert not (tmp_path / "root2").exists()

    with pytest.raises(StorageError):
        storage.upload("media", "../../outside.bin", b"x")
