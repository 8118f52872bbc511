"""
HTTP side of the mirror: session setup, the remote-size probe and
fetching with optional byte-range resume.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

import requests

from sitemirror.extract import LinkExtractionError, LinkExtractor

# Chunk size for streaming bodies to disk (64 KiB)
CHUNK_SIZE = 65536


class FetchStatus(Enum):
    RESUMED = "resumed"
    FRESH = "fresh"
    FAILED = "failed"


class Freshness(Enum):
    CURRENT = "current"
    STALE = "stale"
    BAD_LENGTH = "bad_length"


@dataclass(slots=True)
class FetchResult:
    """Outcome of one fetch. `error` and `error_kind` are set only when FAILED."""
    status: FetchStatus
    links: List[str] = field(default_factory=list)
    bytes_written: int = 0
    content_type: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not FetchStatus.FAILED


def _failed(error: str, kind: str) -> FetchResult:
    return FetchResult(status=FetchStatus.FAILED, error=error, error_kind=kind)


def build_session(user_agent: str) -> requests.Session:
    """Session shared by every request of a run."""
    session = requests.Session()
    session.headers["User-Agent"] = user_agent
    # Sizes and range offsets must refer to the bytes as stored on disk
    session.headers["Accept-Encoding"] = "identity"
    return session


def is_html(content_type: Optional[str]) -> bool:
    """Check whether a Content-Type header denotes HTML."""
    return (content_type or "").strip().lower().startswith("text/html")


def check_freshness(
    session: requests.Session,
    url: str,
    dest: Path,
    timeout_s: float,
) -> Freshness:
    """
    Compare the size of an existing local copy with the remote Content-Length.

    A failed probe, a non-200 answer or a missing length all count as STALE
    so that the caller falls through to fetching.
    """
    local_size = dest.stat().st_size

    try:
        resp = session.head(url, timeout=timeout_s, allow_redirects=True)
    except requests.RequestException:
        return Freshness.STALE
    resp.close()

    if resp.status_code != 200:
        return Freshness.STALE

    length = resp.headers.get("Content-Length")
    if not length:
        return Freshness.STALE

    try:
        remote_size = int(length)
    except ValueError:
        return Freshness.BAD_LENGTH

    return Freshness.CURRENT if remote_size == local_size else Freshness.STALE


def _write_body(resp: requests.Response, dest: Path, mode: str) -> int:
    dest.parent.mkdir(parents=True, exist_ok=True)
    total = 0
    with dest.open(mode) as fh:
        for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                fh.write(chunk)
                total += len(chunk)
    return total


def _attempt_resume(
    session: requests.Session,
    url: str,
    dest: Path,
    timeout_s: float,
) -> Optional[FetchResult]:
    """
    Ask for the bytes past the end of the local file.

    Returns None when the server answered with anything other than 200/206,
    telling the caller to fall back to a fresh download.
    """
    offset = dest.stat().st_size
    resp = session.get(
        url,
        headers={"Range": f"bytes={offset}-"},
        timeout=timeout_s,
        stream=True,
    )
    try:
        if resp.status_code == 206:
            status, mode = FetchStatus.RESUMED, "ab"
        elif resp.status_code == 200:
            # Range ignored: the body is the whole resource
            status, mode = FetchStatus.FRESH, "wb"
        else:
            return None
        written = _write_body(resp, dest, mode)
        return FetchResult(
            status=status,
            bytes_written=written,
            content_type=resp.headers.get("Content-Type"),
        )
    finally:
        resp.close()


def _fetch_fresh(
    session: requests.Session,
    url: str,
    dest: Path,
    timeout_s: float,
) -> FetchResult:
    resp = session.get(url, timeout=timeout_s, stream=True)
    try:
        if resp.status_code != 200:
            return _failed(
                f"got bad http status {resp.status_code}",
                f"http_{resp.status_code}",
            )
        written = _write_body(resp, dest, "wb")
        return FetchResult(
            status=FetchStatus.FRESH,
            bytes_written=written,
            content_type=resp.headers.get("Content-Type"),
        )
    finally:
        resp.close()


def fetch(
    session: requests.Session,
    url: str,
    dest: Path,
    resume: bool,
    extractor: LinkExtractor,
    timeout_s: float,
) -> FetchResult:
    """
    Download *url* to *dest* and return the raw links found if it is HTML.

    With *resume* and an existing *dest*, only the missing tail is requested;
    any answer other than 200/206 quietly degrades to a full download.
    No request is ever retried.
    """
    try:
        result = None
        if resume and dest.is_file():
            result = _attempt_resume(session, url, dest, timeout_s)
        if result is None:
            result = _fetch_fresh(session, url, dest, timeout_s)
    except requests.RequestException as e:
        return _failed(f"failed to fetch URL: {e}", "connection_error")
    except OSError as e:
        return _failed(f"could not write {dest}: {e}", "filesystem")

    if not result.ok or not is_html(result.content_type):
        return result

    try:
        result.links = extractor.extract_links(dest.read_bytes())
    except OSError as e:
        return _failed(f"could not reread file for parsing links: {e}", "filesystem")
    except LinkExtractionError as e:
        return _failed(f"could not parse HTML: {e}", "parse")
    return result
