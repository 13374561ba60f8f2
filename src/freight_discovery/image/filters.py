"""Tag filtering applied before any selection strategy runs.

A tag is kept iff it is allowed by the optional allow-regex and is not in
the ignore list. All strategies that filter share these semantics.

Example:
    >>> import re
    >>> allows_tag("yes", re.compile(r"^[a-z]*$"))
    True
    >>> ignores_tag("ignore-me", ["ignore-me"])
    True
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field


def allows_tag(tag: str, allow_regex: re.Pattern[str] | None) -> bool:
    """Return True if no regex is configured or the tag matches it."""
    if allow_regex is None:
        return True
    return allow_regex.search(tag) is not None


def ignores_tag(tag: str, ignore: Collection[str]) -> bool:
    """Return True if the tag is exactly present in the ignore list."""
    return tag in ignore


def filter_tags(
    tags: Iterable[str],
    allow_regex: re.Pattern[str] | None = None,
    ignore: Collection[str] = (),
) -> list[str]:
    """Return the tags that are allowed and not ignored, in their original order."""
    return [t for t in tags if allows_tag(t, allow_regex) and not ignores_tag(t, ignore)]


@dataclass(frozen=True)
class TagFilter:
    """Compiled allow-regex and ignore list for one selector.

    Attributes:
        allow_regex: Compiled allow pattern, or None to allow everything.
        ignore: Exact tag names to discard.
    """

    allow_regex: re.Pattern[str] | None = None
    ignore: frozenset[str] = field(default_factory=frozenset)

    def apply(self, tags: Iterable[str]) -> list[str]:
        """Filter tags, preserving their order."""
        return filter_tags(tags, self.allow_regex, self.ignore)


__all__ = ["TagFilter", "allows_tag", "filter_tags", "ignores_tag"]
