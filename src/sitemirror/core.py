"""
Core mirroring loop and data structures.
"""
from __future__ import annotations

import sys
from collections import defaultdict, deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Dict, List, Optional, Set, Tuple

import requests

from sitemirror.extract import LinkExtractor, SoupLinkExtractor
from sitemirror.fetch import (
    FetchStatus,
    Freshness,
    build_session,
    check_freshness,
    fetch,
)
from sitemirror.filters import Decision, FilterRules
from sitemirror.urls import local_path, resolve_link, seed_origin, validate_seed_url

DEFAULT_USER_AGENT = "SiteMirror/1.0"
DEFAULT_TIMEOUT_S = 30.0


@dataclass(slots=True)
class FrontierEntry:
    """A discovered URL waiting to be processed."""
    url: str
    depth: int


@dataclass(slots=True)
class MirrorConfig:
    """Everything a run is configured with."""
    seed_url: str
    max_depth: Optional[int] = None
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    refresh: List[str] = field(default_factory=list)
    resume: bool = False
    timeout_s: float = DEFAULT_TIMEOUT_S
    user_agent: str = DEFAULT_USER_AGENT
    root: Optional[Path] = None
    verbose: bool = False


@dataclass(slots=True)
class MirrorStats:
    """Statistics collected during a run for summary output."""
    fetched: int = 0
    resumed: int = 0
    up_to_date: int = 0
    filtered: int = 0
    depth_exceeded: int = 0
    bytes_written: int = 0
    error_counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_error(self, kind: str) -> None:
        self.error_counts[kind] += 1


@dataclass
class TraversalContext:
    """Traversal state owned by a single run: the frontier and the seen set."""
    config: MirrorConfig
    rules: FilterRules
    origin: Tuple[str, str]
    root: Path
    session: requests.Session
    extractor: LinkExtractor
    queue: Deque[FrontierEntry] = field(default_factory=deque)
    seen: Set[str] = field(default_factory=set)
    stats: MirrorStats = field(default_factory=MirrorStats)

    def exceeds_depth(self, depth: int) -> bool:
        max_depth = self.config.max_depth
        return max_depth is not None and depth > max_depth


def print_warning(message: str) -> None:
    """Print a per-URL warning to stderr."""
    sys.stderr.write(f"warning, {message}\n")
    sys.stderr.flush()


def print_skip(verbose: bool, reason: str, url: str) -> None:
    """Print a skipped URL to stderr when verbose."""
    if verbose:
        sys.stderr.write(f"  ⊘ {reason} {url}\n")


def print_got(url: str, path: Path, status: FetchStatus, new_links: int) -> None:
    """Print a stored URL with its local path and new link count."""
    resumed = " resumed" if status is FetchStatus.RESUMED else ""
    sys.stderr.write(f"Got {url} -> {path} (+{new_links} links{resumed})\n")
    sys.stderr.flush()


def build_context(
    config: MirrorConfig,
    session: Optional[requests.Session] = None,
    extractor: Optional[LinkExtractor] = None,
) -> TraversalContext:
    """
    Validate the configuration and prepare a traversal seeded at depth 0.

    Raises ValueError for a bad seed URL, depth or pattern, and OSError when
    the working directory cannot be determined.
    """
    seed = validate_seed_url(config.seed_url)

    if config.max_depth is not None and config.max_depth < 0:
        raise ValueError(f"depth must be non-negative, got {config.max_depth}")

    rules = FilterRules.compile(config.include, config.exclude, config.refresh)
    root = config.root if config.root is not None else Path.cwd()

    ctx = TraversalContext(
        config=config,
        rules=rules,
        origin=seed_origin(seed),
        root=root,
        session=session if session is not None else build_session(config.user_agent),
        extractor=extractor if extractor is not None else SoupLinkExtractor(),
    )
    seed_url = seed._replace(fragment="").geturl()
    ctx.queue.append(FrontierEntry(url=seed_url, depth=0))
    return ctx


def _enqueue_children(ctx: TraversalContext, entry: FrontierEntry, links: List[str]) -> int:
    """Resolve raw links from *entry* and append unseen ones one level deeper."""
    added = 0
    for raw in links:
        target = resolve_link(raw, entry.url, ctx.origin)
        if target is None:
            continue
        if target not in ctx.seen:
            ctx.queue.append(FrontierEntry(url=target, depth=entry.depth + 1))
            added += 1
    return added


def process_entry(ctx: TraversalContext, entry: FrontierEntry) -> None:
    """Run one frontier entry through depth check, filters, staleness and fetch."""
    verbose = ctx.config.verbose
    stats = ctx.stats

    if ctx.exceeds_depth(entry.depth):
        # Not marked seen: a shallower encounter may still process it
        print_skip(verbose, "DEPTH", entry.url)
        stats.depth_exceeded += 1
        return

    if entry.url in ctx.seen:
        return

    if ctx.rules.decide(entry.url) is Decision.SKIP:
        print_skip(verbose, "FILTER", entry.url)
        stats.filtered += 1
        ctx.seen.add(entry.url)
        return

    try:
        dest = local_path(entry.url, ctx.root)
    except ValueError as e:
        print_warning(f"could not convert url {entry.url} to local path: {e}")
        stats.record_error("path")
        ctx.seen.add(entry.url)
        return

    resume = ctx.config.resume
    timeout_s = ctx.config.timeout_s

    if ctx.rules.force_refresh(entry.url):
        resume = False
    elif dest.is_file():
        freshness = check_freshness(ctx.session, entry.url, dest, timeout_s)
        if freshness is Freshness.CURRENT:
            print_skip(verbose, "UP-TO-DATE", entry.url)
            stats.up_to_date += 1
            ctx.seen.add(entry.url)
            return
        if freshness is Freshness.BAD_LENGTH:
            print_warning(f"content-length of {entry.url} is not an integer, force downloading")
            resume = False

    result = fetch(ctx.session, entry.url, dest, resume, ctx.extractor, timeout_s)
    if not result.ok:
        print_warning(f"couldn't process URL {entry.url}: {result.error}")
        stats.record_error(result.error_kind or "unknown")
        ctx.seen.add(entry.url)
        return

    stats.fetched += 1
    stats.bytes_written += result.bytes_written
    if result.status is FetchStatus.RESUMED:
        stats.resumed += 1

    new_links = _enqueue_children(ctx, entry, result.links)
    ctx.seen.add(entry.url)
    print_got(entry.url, dest, result.status, new_links)


def run(ctx: TraversalContext) -> MirrorStats:
    """Drain the frontier in FIFO order."""
    while ctx.queue:
        process_entry(ctx, ctx.queue.popleft())
    return ctx.stats


def mirror(
    config: MirrorConfig,
    session: Optional[requests.Session] = None,
    extractor: Optional[LinkExtractor] = None,
) -> MirrorStats:
    """
    Mirror a site breadth-first starting from the seed URL.

    Args:
        config: Run configuration.
        session: Optional pre-built HTTP session (defaults to one carrying
                 the configured User-Agent).
        extractor: Optional link extractor (defaults to BeautifulSoup + lxml).

    Returns:
        Statistics for the run.
    """
    ctx = build_context(config, session=session, extractor=extractor)

    if config.verbose:
        depth = "unbounded" if config.max_depth is None else config.max_depth
        sys.stderr.write(f"Mirroring from: {config.seed_url}\n")
        sys.stderr.write(f"Depth is: {depth}\n")
        sys.stderr.write(f"Includes is: {config.include or ['.*']}\n")
        sys.stderr.write(f"Excludes is: {config.exclude}\n")
        sys.stderr.write(f"Refresh is: {config.refresh}\n")
        sys.stderr.write(f"Resume: {config.resume}\n\n")

    return run(ctx)
