from typing import Optional

MAGIC_HEADER_LENGTH = 12

# (mime, leading bytes); WEBP additionally needs "WEBP" at offset 8
_MAGIC: list[tuple[str, bytes]] = [
    ("image/png", b"\x89PNG\r\n\x1a\n"),
    ("image/jpeg", b"\xff\xd8\xff"),
    ("image/gif", b"GIF8"),
    ("image/webp", b"RIFF"),
]

VERIFIED_IMAGE_MIME_TYPES = frozenset(mime for mime, _ in _MAGIC)


def mime_from_magic(data: bytes) -> Optional[str]:
    """MIME type implied by the first bytes of a file, if it is a known image."""
    header = bytes(data[:MAGIC_HEADER_LENGTH])
    if len(header) < MAGIC_HEADER_LENGTH:
        return None

    for mime, magic in _MAGIC:
        if not header.startswith(magic):
            continue
        if mime == "image/webp":
            if header[8:12] == b"WEBP":
                return mime
            continue
        return mime

    return None


def image_matches_declared_type(declared_mime: str, data: bytes) -> bool:
    declared = (declared_mime or "").lower().strip()
    detected = mime_from_magic(data)

    if detected is not None and detected != declared:
        return False
    if declared in VERIFIED_IMAGE_MIME_TYPES and detected is None:
        return False
    return True
