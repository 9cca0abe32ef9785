"""Gitignore-style exclude globs for directory mappings.

  - ``*`` matches within one path segment
  - ``?`` matches one non-separator character
  - ``**`` matches any number of segments, including none

Examples: ``*.md`` matches ``README.md`` but not ``docs/guide.md``;
``docs/internal/**`` matches everything under ``docs/internal``;
``**/*.png`` matches a PNG at any depth.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable


@lru_cache(maxsize=256)
def _compile(pattern: str) -> "re.Pattern[str]":
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("/**", i) and i + 3 == len(pattern):
            out.append("(?:/.*)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z")


def matches_exclude(rel_path: str, patterns: Iterable[str]) -> bool:
    """Return True if *rel_path* matches any of *patterns*."""
    normalized = rel_path.replace("\\", "/")
    return any(_compile(p.replace("\\", "/")).match(normalized) for p in patterns)
