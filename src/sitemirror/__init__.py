"""
Recursive website mirror: fetches a seed URL and every same-host anchor and
image it leads to, breadth-first, into a local directory tree.
"""
from sitemirror.core import MirrorConfig, MirrorStats, mirror

__version__ = "1.0.0"
__all__ = ["mirror", "MirrorConfig", "MirrorStats"]
