"""URL canonicalization helpers for feed ingestion and dedup."""

from __future__ import annotations

import hashlib
from urllib.parse import urlsplit


def normalize_url(url: str) -> str | None:
    """Canonicalize a URL for hashing and dedup.

    - Lowercase hostname
    - Drop query string and fragment
    - Keep scheme and path as given

    Returns None when the input is not an absolute URL.
    """
    if not url or not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not host:
        return None
    return f"{parts.scheme.lower()}://{host.lower()}{parts.path or '/'}"


def extract_source(url: str) -> str:
    """Canonical domain for a URL, without the ``www.`` prefix."""
    try:
        host = urlsplit(url or "").hostname
    except ValueError:
        host = None
    if not host:
        return "unknown"
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def url_hash(url: str) -> str | None:
    """Stable SHA-256 hash of a canonicalized URL."""
    canon = normalize_url(url)
    if canon is None:
        return None
    return hashlib.sha256(canon.encode("utf-8")).hexdigest()
