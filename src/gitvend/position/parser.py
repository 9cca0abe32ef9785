"""Position grammar parser — splits ``path:L...`` into (path, PositionSpec).

Accepted suffixes::

    src/file.go:L5              single line
    src/file.go:L5-L20          inclusive range (L5:L20 also accepted)
    src/file.go:L10-EOF         line 10 to end of file
    src/file.go:L5C10:L5C30     byte-precise columns

The suffix starts at the first ``:`` immediately followed by ``L`` and a
digit. A bare ``:`` never qualifies, so ``C:\\src\\a.go`` and
``\\\\server\\share:x`` are plain paths.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from gitvend.position.models import (
    ColumnRange,
    InvalidPosition,
    Line,
    LineRange,
    LineToEOF,
    MalformedPositionSpec,
    PositionSpec,
)

# 2**31 - 1: larger line or column numbers are rejected rather than clamped.
MAX_POSITION_INDEX = 2_147_483_647

_TRIGGER_RE = re.compile(r":L[0-9]")
_COL_RANGE_RE = re.compile(r"^L([0-9]+)C([0-9]+):L([0-9]+)C([0-9]+)$")
_LINE_RANGE_RE = re.compile(r"^L([0-9]+)[-:]L([0-9]+)$")
_LINE_EOF_RE = re.compile(r"^L([0-9]+)-EOF$")
_SINGLE_LINE_RE = re.compile(r"^L([0-9]+)$")

_EXPECTED = "expected L<n>, L<n>-L<m>, L<n>-EOF, or L<n>C<c>:L<m>C<d>"


def find_position_start(path: str) -> int:
    """Return the index of the ``:`` that opens the position suffix, or -1."""
    m = _TRIGGER_RE.search(path)
    return m.start() if m else -1


def parse_path_position(path: str) -> Tuple[str, Optional[PositionSpec]]:
    """Split *path* into its file path and optional position.

    Raises:
        MalformedPositionSpec: the suffix matches ``:L<digit>`` but no shape.
        InvalidPosition: numbers are zero, reversed, or too large.
    """
    idx = find_position_start(path)
    if idx == -1:
        return path, None

    file_path = path[:idx]
    if not file_path:
        raise MalformedPositionSpec(f"empty file path in position specifier: {path!r}")

    try:
        spec = parse_position(path[idx + 1:])
    except MalformedPositionSpec as exc:
        raise MalformedPositionSpec(f"invalid position specifier in {path!r}: {exc}") from exc
    except InvalidPosition as exc:
        raise InvalidPosition(f"invalid position specifier in {path!r}: {exc}") from exc
    return file_path, spec


def strip_position(path: str) -> str:
    """Return *path* without its position suffix; unparseable suffixes are kept."""
    try:
        file_path, _ = parse_path_position(path)
    except (MalformedPositionSpec, InvalidPosition):
        return path
    return file_path


def parse_position(spec: str) -> PositionSpec:
    """Parse a bare specifier (no leading colon), e.g. ``L5-L20``."""
    if m := _COL_RANGE_RE.match(spec):
        start, start_col, end, end_col = (_to_index(g, spec) for g in m.groups())
        _check_line(start, "start line")
        _check_line(start_col, "start column")
        _check_line(end_col, "end column")
        if end < start:
            raise InvalidPosition(f"end line ({end}) must be >= start line ({start})")
        if start == end and end_col < start_col:
            raise InvalidPosition(
                f"on same line, end column ({end_col}) must be >= start column ({start_col})"
            )
        return ColumnRange(start, start_col, end, end_col)

    if m := _LINE_RANGE_RE.match(spec):
        start, end = (_to_index(g, spec) for g in m.groups())
        _check_line(start, "start line")
        if end < start:
            raise InvalidPosition(f"end line ({end}) must be >= start line ({start})")
        return LineRange(start, end)

    if m := _LINE_EOF_RE.match(spec):
        start = _to_index(m.group(1), spec)
        _check_line(start, "start line")
        return LineToEOF(start)

    if m := _SINGLE_LINE_RE.match(spec):
        line = _to_index(m.group(1), spec)
        _check_line(line, "line")
        return Line(line)

    raise MalformedPositionSpec(f"unrecognized position format {spec!r} ({_EXPECTED})")


def format_path_position(path: str, spec: Optional[PositionSpec]) -> str:
    """Inverse of :func:`parse_path_position`."""
    if spec is None:
        return path
    return f"{path}:{spec}"


def _to_index(digits: str, spec: str) -> int:
    # Length check first so absurd inputs never become huge ints.
    significant = digits.lstrip("0") or "0"
    if len(significant) > len(str(MAX_POSITION_INDEX)) or int(significant) > MAX_POSITION_INDEX:
        raise InvalidPosition(f"number {digits} in {spec!r} exceeds {MAX_POSITION_INDEX}")
    return int(significant)


def _check_line(value: int, label: str) -> None:
    if value < 1:
        raise InvalidPosition(f"{label} must be >= 1, got {value}")
