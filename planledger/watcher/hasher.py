"""Content fingerprints for watched files."""

import hashlib
import logging
from pathlib import Path
from typing import Optional, Union

from .config import DEFAULT_HASH_THRESHOLD_BYTES

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


def algorithm_for(size: int, threshold: int = DEFAULT_HASH_THRESHOLD_BYTES) -> str:
    """Pick the hash algorithm for a file of the given size."""
    return "sha256" if size <= threshold else "md5"


def fingerprint(
    path: Union[str, Path],
    threshold: int = DEFAULT_HASH_THRESHOLD_BYTES,
) -> Optional[str]:
    """
    Compute the content fingerprint of a file.

    Files up to ``threshold`` bytes are hashed with SHA-256, larger ones
    with MD5 to keep big CAD assemblies cheap to hash.

    Args:
        path: Path to the file
        threshold: Size limit for SHA-256 hashing

    Returns:
        Hex digest, or None if the file cannot be read
    """
    path = Path(path)
    try:
        size = path.stat().st_size
        hasher = hashlib.new(algorithm_for(size, threshold))
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                hasher.update(chunk)
        return hasher.hexdigest()
    except OSError as e:
        logger.warning(f"Could not hash {path}: {e}")
        return None
