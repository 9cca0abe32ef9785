"""Position grammar, parser and content extractor."""

from gitvend.position.extractor import extract, is_binary, normalize_crlf, place
from gitvend.position.models import (
    BinaryContent,
    ColumnOutOfRange,
    ColumnRange,
    InvalidPosition,
    Line,
    LineOutOfRange,
    LineRange,
    LineToEOF,
    MalformedPositionSpec,
    PositionError,
    PositionSpec,
)
from gitvend.position.parser import (
    format_path_position,
    parse_path_position,
    parse_position,
    strip_position,
)

__all__ = [
    "BinaryContent",
    "ColumnOutOfRange",
    "ColumnRange",
    "InvalidPosition",
    "Line",
    "LineOutOfRange",
    "LineRange",
    "LineToEOF",
    "MalformedPositionSpec",
    "PositionError",
    "PositionSpec",
    "extract",
    "format_path_position",
    "is_binary",
    "normalize_crlf",
    "parse_path_position",
    "parse_position",
    "place",
    "strip_position",
]
