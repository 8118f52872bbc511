"""
Link extraction from downloaded HTML.
"""
from __future__ import annotations

from typing import List, Protocol

from bs4 import BeautifulSoup, ParserRejectedMarkup, SoupStrainer

# Parse only the tags that can carry links
LINK_STRAINER = SoupStrainer(["a", "img"])


class LinkExtractionError(Exception):
    """Raised when an HTML document cannot be parsed for links."""


class LinkExtractor(Protocol):
    def extract_links(self, data: bytes) -> List[str]:
        ...


class SoupLinkExtractor:
    """Collects <a href> values (minus mailto: targets) followed by <img src> values."""

    def __init__(self, parser: str = "lxml") -> None:
        self.parser = parser

    def extract_links(self, data: bytes) -> List[str]:
        try:
            soup = BeautifulSoup(data, self.parser, parse_only=LINK_STRAINER)
        except ParserRejectedMarkup as e:
            raise LinkExtractionError(str(e)) from e

        hrefs = [
            a["href"] for a in soup.find_all("a", href=True)
            if not a["href"].strip().lower().startswith("mailto:")
        ]
        srcs = [img["src"] for img in soup.find_all("img", src=True)]
        return hrefs + srcs
