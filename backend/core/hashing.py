"""
Content fingerprints for ingested files.
"""
import hashlib
from typing import Tuple


def compute_hashes(content: bytes) -> Tuple[str, str]:
    """Return (md5, sha1) hex digests of the raw file bytes."""
    return (
        hashlib.md5(content).hexdigest(),
        hashlib.sha1(content).hexdigest(),
    )
