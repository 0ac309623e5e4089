"""Content hashing utilities.

The content hash is the idempotency key for every expensive per-text
operation (embedding, translation). Normalization rule:

1. strip leading and trailing whitespace
2. collapse every internal whitespace run to a single space
3. lower-case with ``str.lower`` (locale independent)

The digest is MD5 over the UTF-8 bytes of ``normalized + "\\0" + lang``.
It is a deduplication key, not a security primitive.
"""

import hashlib


def normalize_text(text: str) -> str:
    """Normalize text for content hashing."""
    return " ".join(text.split()).lower()


def content_hash(text: str, lang: str) -> str:
    """Return the 32-char hex content hash of ``text`` in language ``lang``."""
    payload = f"{normalize_text(text)}\0{lang}".encode("utf-8")
    return hashlib.md5(payload, usedforsecurity=False).hexdigest()
