"""
URL canonicalization: mapping URLs to mirror paths and resolving discovered links.
"""
from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import SplitResult, unquote, urljoin, urlsplit, urlunsplit

ALLOWED_SCHEMES: frozenset[str] = frozenset(("http", "https"))


def validate_seed_url(url: str) -> SplitResult:
    """Parse the seed URL, raising ValueError unless it is an absolute http(s) URL."""
    try:
        parsed = urlsplit(url)
    except ValueError as e:
        raise ValueError(f"error parsing URL {url}: {e}") from e

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ValueError(f"URL must be http or https: {url}")
    if not parsed.hostname:
        raise ValueError(f"URL has no host: {url}")
    return parsed


def _bare_netloc(parsed: SplitResult) -> str:
    """Lowercased host[:port] without any userinfo."""
    return parsed.netloc.rpartition("@")[2].lower()


def seed_origin(seed: SplitResult) -> Tuple[str, str]:
    """(scheme, host[:port]) used to scope and complete discovered links."""
    return seed.scheme.lower(), _bare_netloc(seed)


def url_to_path(url: str) -> str:
    """
    Map a URL to its path inside a host directory.

    - Empty paths and paths ending in "/" get "index.html"
    - Dot segments are collapsed against "/" so nothing escapes the root
    - A query string is kept after "?" with any "/" percent-encoded, so it
      stays part of the file name

    Raises ValueError when the decoded path cannot name a file.
    """
    parsed = urlsplit(url)
    path = unquote(parsed.path)

    if not path or path.endswith("/"):
        path += "index.html"

    canonical = posixpath.normpath("/" + path.lstrip("/"))
    # normpath keeps a leading "//"
    canonical = "/" + canonical.lstrip("/")

    if parsed.query:
        canonical = f"{canonical}?{parsed.query.replace('/', '%2F')}"

    if "\x00" in canonical:
        raise ValueError(f"path contains a NUL byte: {url}")
    return canonical


def host_directory(url: str) -> str:
    """Per-host directory name: "{scheme}:{host[:port]}", credentials excluded."""
    parsed = urlsplit(url)
    return f"{parsed.scheme.lower()}:{_bare_netloc(parsed)}"


def local_path(url: str, root: Path) -> Path:
    """Full filesystem destination for *url* under the mirror *root*."""
    relative = url_to_path(url).lstrip("/")
    return root / host_directory(url) / relative


def resolve_link(raw: str, page_url: str, origin: Tuple[str, str]) -> Optional[str]:
    """
    Turn a raw link from *page_url* into the canonical absolute URL to enqueue.

    Returns None for links on another host, links with a non-http(s) scheme
    and links that do not parse. Fragments are always dropped.
    """
    scheme, host = origin
    raw = raw.strip()
    if not raw:
        return None

    try:
        parsed = urlsplit(raw)
        if parsed.scheme and parsed.scheme.lower() not in ALLOWED_SCHEMES:
            return None

        if parsed.netloc:
            if _bare_netloc(parsed) != host:
                return None
            # Same host in any case, credentials dropped; protocol-relative
            # links take the seed scheme
            parsed = parsed._replace(
                scheme=parsed.scheme.lower() or scheme,
                netloc=host,
            )
        else:
            # Relative paths resolve against the current page, not the site root
            joined = urlsplit(urljoin(page_url, raw))
            parsed = joined._replace(scheme=scheme, netloc=host)
    except ValueError:
        return None

    return urlunsplit(parsed._replace(fragment=""))
