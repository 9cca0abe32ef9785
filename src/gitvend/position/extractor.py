"""Content extractor — return exactly the bytes a position designates.

Line endings: CRLF is normalised to LF before splitting; a lone ``\\r`` is
left alone. Splitting on ``\\n`` means a file ending in a newline has one
extra empty trailing line, so ``L5-EOF`` on a 5-line file ending in ``\\n``
returns ``b"line5\\n"``. ``L1-EOF`` is always identical to the whole
normalised content, which keeps positional and whole-file hashes equal.

A 0-byte file is one empty line: ``L1`` extracts ``b""``, ``L2`` fails.
"""

from __future__ import annotations

from typing import List, Optional

from gitvend.position.models import (
    BinaryContent,
    ColumnOutOfRange,
    LineOutOfRange,
    PositionSpec,
    has_columns,
)

_BINARY_SNIFF_BYTES = 8000


def normalize_crlf(content: bytes) -> bytes:
    """Replace ``\\r\\n`` with ``\\n``."""
    return content.replace(b"\r\n", b"\n")


def is_binary(content: bytes) -> bool:
    """Return True if a NUL byte appears in the first 8000 bytes (git's heuristic)."""
    return b"\x00" in content[:_BINARY_SNIFF_BYTES]


def _effective_end(spec: PositionSpec, total: int) -> int:
    if spec.to_eof:
        return total
    return spec.end_line or spec.start_line


def _check_lines(spec: PositionSpec, total: int, label: str) -> int:
    if spec.start_line > total:
        raise LineOutOfRange(f"line {spec.start_line} does not exist in {label} ({total} lines)")
    end = _effective_end(spec, total)
    if end > total:
        raise LineOutOfRange(f"line {end} does not exist in {label} ({total} lines)")
    return end


def extract(content: bytes, spec: Optional[PositionSpec], *, label: str = "content") -> bytes:
    """Return the bytes of *content* designated by *spec*.

    ``spec=None`` returns the whole (normalised) content. *label* only
    appears in error messages, usually the file path.

    Raises:
        LineOutOfRange: start or end line past the last line.
        ColumnOutOfRange: a column past the end of its line.
        BinaryContent: *spec* is set and *content* looks binary.
    """
    if spec is not None and is_binary(content):
        raise BinaryContent(f"position extraction on binary {label} is not supported")

    data = normalize_crlf(content)
    if spec is None:
        return data

    lines = data.split(b"\n")
    end = _check_lines(spec, len(lines), label)

    if has_columns(spec):
        return _extract_columns(lines, spec, label)
    return b"\n".join(lines[spec.start_line - 1:end])


def _extract_columns(lines: List[bytes], spec: PositionSpec, label: str) -> bytes:
    start_line, end_line = spec.start_line, spec.end_line

    if start_line == end_line:
        line = lines[start_line - 1]
        for col in (spec.start_col, spec.end_col):
            if col > len(line):
                raise ColumnOutOfRange(
                    f"column {col} exceeds line length ({len(line)} bytes) "
                    f"in {label} line {start_line}"
                )
        return line[spec.start_col - 1:spec.end_col]

    # Multi-line: the first line may start one past its end (empty head).
    first = lines[start_line - 1]
    if spec.start_col > len(first) + 1:
        raise ColumnOutOfRange(
            f"column {spec.start_col} exceeds line length ({len(first)} bytes) "
            f"in {label} line {start_line}"
        )
    last = lines[end_line - 1]
    if spec.end_col > len(last):
        raise ColumnOutOfRange(
            f"column {spec.end_col} exceeds line length ({len(last)} bytes) "
            f"in {label} line {end_line}"
        )

    parts = [first[spec.start_col - 1:]]
    parts.extend(lines[start_line:end_line - 1])
    parts.append(last[:spec.end_col])
    return b"\n".join(parts)


def place(
    existing: bytes,
    replacement: bytes,
    spec: Optional[PositionSpec],
    *,
    label: str = "target",
) -> bytes:
    """Return *existing* with the range designated by *spec* replaced.

    ``spec=None`` replaces everything. The result uses LF line endings.
    """
    if spec is None:
        return replacement
    if is_binary(existing):
        raise BinaryContent(f"position placement into binary {label} is not supported")

    lines = normalize_crlf(existing).split(b"\n")
    end = _check_lines(spec, len(lines), label)

    if not has_columns(spec):
        merged = lines[:spec.start_line - 1] + replacement.split(b"\n") + lines[end:]
        return b"\n".join(merged)

    first = lines[spec.start_line - 1]
    last = lines[spec.end_line - 1]
    if spec.start_col > len(first) + 1 or spec.end_col > len(last):
        raise ColumnOutOfRange(
            f"column range {spec} exceeds line length in {label} line {spec.start_line}"
        )
    head = first[:spec.start_col - 1]
    tail = last[spec.end_col:]
    merged = lines[:spec.start_line - 1] + [head + replacement + tail] + lines[spec.end_line:]
    return b"\n".join(merged)
