"""Position specifier models — one frozen dataclass per grammar shape.

A mapping path without a ``:L...`` suffix carries no position at all and
is represented by ``None``. Every variant exposes the same flat view
(``start_line``, ``end_line``, ``start_col``, ``end_col``, ``to_eof``)
so the extractor can treat them uniformly.

Columns are 1-indexed *byte* offsets, inclusive on both ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


class PositionError(Exception):
    """Base class for position grammar and extraction failures."""


class MalformedPositionSpec(PositionError):
    """The suffix matched ``:L<digit>`` but none of the accepted shapes."""


class InvalidPosition(PositionError):
    """Structurally valid, semantically impossible (line 0, end < start, overflow)."""


class LineOutOfRange(PositionError):
    """The position is valid but the content has too few lines."""


class ColumnOutOfRange(LineOutOfRange):
    """A column offset runs past the end of its line."""


class BinaryContent(PositionError):
    """Positional extraction was requested on binary content."""


@dataclass(frozen=True)
class Line:
    """``L<n>`` — a single line."""

    line: int

    @property
    def start_line(self) -> int:
        return self.line

    @property
    def end_line(self) -> int:
        return 0

    @property
    def start_col(self) -> int:
        return 0

    @property
    def end_col(self) -> int:
        return 0

    @property
    def to_eof(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"L{self.line}"


@dataclass(frozen=True)
class LineRange:
    """``L<n>-L<m>`` — inclusive line range."""

    start: int
    end: int

    @property
    def start_line(self) -> int:
        return self.start

    @property
    def end_line(self) -> int:
        return self.end

    @property
    def start_col(self) -> int:
        return 0

    @property
    def end_col(self) -> int:
        return 0

    @property
    def to_eof(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"L{self.start}-L{self.end}"


@dataclass(frozen=True)
class LineToEOF:
    """``L<n>-EOF`` — line n through the last line."""

    start: int

    @property
    def start_line(self) -> int:
        return self.start

    @property
    def end_line(self) -> int:
        return 0

    @property
    def start_col(self) -> int:
        return 0

    @property
    def end_col(self) -> int:
        return 0

    @property
    def to_eof(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"L{self.start}-EOF"


@dataclass(frozen=True)
class ColumnRange:
    """``L<n>C<c>:L<m>C<d>`` — byte-precise range, inclusive."""

    start: int
    start_column: int
    end: int
    end_column: int

    @property
    def start_line(self) -> int:
        return self.start

    @property
    def end_line(self) -> int:
        return self.end

    @property
    def start_col(self) -> int:
        return self.start_column

    @property
    def end_col(self) -> int:
        return self.end_column

    @property
    def to_eof(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"L{self.start}C{self.start_column}:L{self.end}C{self.end_column}"


PositionSpec = Union[Line, LineRange, LineToEOF, ColumnRange]


def is_single_line(spec: PositionSpec) -> bool:
    """True if *spec* targets exactly one line."""
    return not spec.to_eof and spec.end_line in (0, spec.start_line)


def has_columns(spec: PositionSpec) -> bool:
    return spec.start_col > 0
