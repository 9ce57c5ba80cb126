# ABOUTME: Content hashing for book files, used for import dedup and after metadata rewrites.
# ABOUTME: Streams files in chunks so large books never load fully into memory.

import hashlib
from pathlib import Path

_CHUNK_SIZE = 1 << 16


def compute_file_hash(path: Path) -> str:
    """Return the SHA-256 hex digest of a file's bytes.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    digest = hashlib.sha256()
    with path.open("rb") as stream:
        for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
