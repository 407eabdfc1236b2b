"""URL helpers used to match links against crawled specifications."""

from __future__ import annotations

import re
from typing import Optional, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

_INDEX_PAGE = re.compile(r"/index\.html?$", re.IGNORECASE)


def split_fragment(url: str) -> Tuple[str, Optional[str]]:
    """Split ``url`` into the document URL and the decoded fragment."""
    base, sep, fragment = (url or "").strip().partition("#")
    if not sep or not fragment:
        return base, None
    return base, unquote(fragment)


def normalize_url(url: str) -> str:
    """Normalize a specification URL so that equivalent spellings compare equal.

    The fragment and query are dropped, scheme and host are lowercased, a
    trailing ``index.html`` is removed and the path always ends with ``/``
    unless it names a file.
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    parts = urlsplit(raw)
    if not parts.scheme or not parts.netloc:
        return raw.partition("#")[0]

    path = _INDEX_PAGE.sub("/", parts.path) or "/"
    last_segment = path.rsplit("/", 1)[-1]
    if last_segment and "." not in last_segment:
        path += "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


def is_remote(location: str) -> bool:
    """Return True when ``location`` is an http(s) URL rather than a path."""
    return bool(re.match(r"^https?://", location or "", flags=re.IGNORECASE))
