"""Split an SQL export into comment lines and complete query statements."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Iterator


class StatementKind(Enum):
    """What kind of text a statement holds."""

    COMMENT = "comment"
    QUERY = "query"


@dataclass(frozen=True)
class Statement:
    """One item read from an export, with its byte offset in the stream."""

    offset: int
    kind: StatementKind
    text: str

    @property
    def is_comment(self) -> bool:
        return self.kind is StatementKind.COMMENT

    @property
    def is_query(self) -> bool:
        return self.kind is StatementKind.QUERY


def iter_statements(source: BinaryIO) -> Iterator[Statement]:
    """Yield statements from a seekable binary stream.

    Lines starting with ``--`` are comments (trailing newline removed).
    Any other text belongs to a query that ends with a line ending in
    ``;\\n`` (terminator kept). Text left over at end of input is yielded
    as a final query. Offsets are absolute positions in ``source``.
    """
    parts: list[str] = []
    start: int | None = None
    while True:
        position = source.tell()
        raw = source.readline()
        if not raw:
            if parts:
                yield Statement(start or 0, StatementKind.QUERY, "".join(parts))
            return
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError("input is not valid UTF-8") from exc

        if line.startswith("--"):
            yield Statement(position, StatementKind.COMMENT, line.rstrip("\n"))
            continue

        if not parts:
            start = position
        parts.append(line)

        # Earlier parts always end in a newline, so only the last line can
        # complete the terminator.
        if line.endswith(";\n"):
            yield Statement(
                position if start is None else start,
                StatementKind.QUERY,
                "".join(parts),
            )
            parts = []
            start = None


class StatementStream:
    """Iterator over the statements of a seekable binary stream."""

    def __init__(self, source: BinaryIO) -> None:
        self.source = source
        self._statements = iter_statements(source)

    def __iter__(self) -> "StatementStream":
        return self

    def __next__(self) -> Statement:
        return next(self._statements)