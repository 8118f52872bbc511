"""
Include / exclude / refresh rules applied to every frontier URL.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple

# Used when the caller gives no include pattern at all
DEFAULT_INCLUDE: Tuple[str, ...] = (".*",)


class Decision(Enum):
    FETCH = "fetch"
    SKIP = "skip"


def _compile_all(patterns: Iterable[str], kind: str) -> Tuple[re.Pattern[str], ...]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ValueError(f"failed to compile {kind} regexp `{pattern}`: {e}") from e
    return tuple(compiled)


def _any_match(rules: Sequence[re.Pattern[str]], url: str) -> bool:
    return any(rule.search(url) for rule in rules)


@dataclass(frozen=True, slots=True)
class FilterRules:
    """Compiled rule sets. Patterns search anywhere in the full URL, case-sensitively."""
    include: Tuple[re.Pattern[str], ...]
    exclude: Tuple[re.Pattern[str], ...] = ()
    refresh: Tuple[re.Pattern[str], ...] = ()

    @classmethod
    def compile(
        cls,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        refresh: Optional[Sequence[str]] = None,
    ) -> "FilterRules":
        """Compile pattern strings, raising ValueError on the first bad one."""
        return cls(
            include=_compile_all(include or DEFAULT_INCLUDE, "include"),
            exclude=_compile_all(exclude or (), "exclude"),
            refresh=_compile_all(refresh or (), "refresh"),
        )

    def decide(self, url: str) -> Decision:
        """Exclude wins over include; a URL no include rule matches is skipped."""
        if _any_match(self.exclude, url):
            return Decision.SKIP
        if not _any_match(self.include, url):
            return Decision.SKIP
        return Decision.FETCH

    def force_refresh(self, url: str) -> bool:
        """True when the URL must be downloaded from scratch every run."""
        return _any_match(self.refresh, url)
