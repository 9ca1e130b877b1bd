"""Cache key generation — canonical locators plus processor identity."""

from __future__ import annotations

import hashlib
from urllib.parse import urlsplit, urlunsplit


def canonicalize_locator(locator: str) -> str:
    """Normalize a locator so equivalent URLs share one cache slot.

    Scheme and host are lowercased, the fragment is dropped and an empty
    path becomes "/". Path and query are kept verbatim.
    """
    parts = urlsplit(locator.strip())
    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ""))


def generate_cache_key(locator: str, processor_id: str = "") -> str:
    """Generate a SHA256 cache key from the canonical locator and processor.

    The same URL downsampled to two different targets yields two entries.
    """
    combined = canonicalize_locator(locator) + "|" + processor_id
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()
