# src/scrapers/fingerprint.py

"""Deterministic product identity derived from a URL."""

import hashlib


def fingerprint(url: str) -> str:
    """Return the SHA-256 hex digest of the exact URL string.

    The URL is hashed as given: a trailing slash, a reordered query
    string or a tracking parameter all produce a different id.
    """
    data = url.encode("utf-8", errors="surrogatepass")
    return hashlib.sha256(data).hexdigest()
