# qrkit/utils/urls.py

"""
Strict URL splitting shared by the URL detector, the payload builders and
the URL risk engine. urllib accepts almost anything, so the checks a browser
URL parser would make are applied here.
"""

from __future__ import annotations

import re
from urllib.parse import SplitResult, urlsplit

SCHEME_REGEX = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")
HOST_REQUIRED_SCHEMES = {"http", "https", "ftp", "ws", "wss"}


def split_url(url: str) -> SplitResult:
    """
    Split an absolute URL or raise ValueError.

    Rejects: no scheme, a missing host for schemes that need one, whitespace
    inside the authority, a non-numeric or out-of-range port and broken IPv6
    brackets.
    """
    if not SCHEME_REGEX.match(url):
        raise ValueError("URL has no scheme")

    parts = urlsplit(url)  # raises ValueError on unbalanced IPv6 brackets
    scheme = parts.scheme.lower()

    if re.search(r"\s", parts.netloc):
        raise ValueError("Whitespace in URL authority")

    if scheme in HOST_REQUIRED_SCHEMES and not parts.hostname:
        raise ValueError(f"{scheme} URL has no host")

    parts.port  # raises ValueError on a malformed port
    return parts
