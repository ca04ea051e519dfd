"""Content fingerprinting used to detect stale embeddings."""

import hashlib


def content_fingerprint(content: str) -> str:
    """Return the SHA-256 hex digest of a document's content.

    Args:
        content (str): The full document text.

    Returns:
        str: 64-character lowercase hex digest. Identical content always yields the same value.
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
