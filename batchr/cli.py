"""Plan and run the import of an SQL export, one concurrent job per table."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Sequence

from tqdm import tqdm

from batchr.db import Database, DatabaseError
from batchr.parse import Statement, StatementStream

BATCH_TARGET_BYTES = 2_000_000
DEFAULT_CONCURRENCY = 10


class SectionKind(Enum):
    """Which part of a table's export is being read."""

    DEFINITIONS = "definitions"
    DATA = "data"


@dataclass(frozen=True)
class Section:
    """The table and part of the export the reader is currently in."""

    kind: SectionKind
    table: str

    def __str__(self) -> str:
        return f"{self.table} {self.kind.value}"


@dataclass(frozen=True)
class TableSpan:
    """Where a table's data starts in the export and how many queries it holds."""

    name: str
    offset: int
    statements: int


def _strip_comment(comment: str) -> str:
    return comment.strip("- ")


def split_comment(comment: str) -> tuple[str, str]:
    """Split a ``-- PREFIX: suffix`` comment into its trimmed prefix and suffix."""
    text = _strip_comment(comment)
    index = text.find(": ")
    if index >= 0:
        prefix, suffix = text[:index], text[index:]
    else:
        prefix, suffix = text, ""
    return prefix.strip(": "), suffix.strip(": ")


def plan_import(statements: Iterable[Statement]) -> tuple[list[str], list[TableSpan]]:
    """Collect definition queries and locate each table's data section."""
    definitions: list[str] = []
    tables: list[TableSpan] = []
    data_offset = 0
    data_statements = 0
    section = Section(SectionKind.DEFINITIONS, "Initial")

    for statement in statements:
        if statement.is_comment:
            prefix, suffix = split_comment(statement.text)
            if prefix == "":
                continue
            if prefix == "TABLE":
                print(f"STARTING TABLE: {suffix}, PREVIOUS: {section}")
                if section.kind is SectionKind.DATA:
                    tables.append(TableSpan(section.table, data_offset, data_statements))
                    data_statements = 0
                section = Section(SectionKind.DEFINITIONS, suffix)
            elif prefix == "TABLE DATA":
                section = Section(SectionKind.DATA, suffix)
                data_offset = statement.offset
            else:
                print(f"-- {_strip_comment(statement.text)}")
        elif section.kind is SectionKind.DEFINITIONS:
            definitions.append(statement.text)
        else:
            data_statements += 1

    if section.kind is SectionKind.DATA:
        tables.append(TableSpan(section.table, data_offset, data_statements))

    return definitions, tables


def iter_batches(
    statements: Iterable[Statement],
    limit: int,
    target_bytes: int = BATCH_TARGET_BYTES,
) -> Iterator[list[str]]:
    """Yield batches of queries until ``limit`` queries have been yielded.

    A batch ends when its size in bytes reaches ``target_bytes``, when a
    ``TABLE`` comment starts the next table, or at end of input; iteration
    stops once the input is exhausted.
    """
    stream = iter(statements)
    completed = 0
    exhausted = False
    while completed < limit and not exhausted:
        batch: list[str] = []
        size = 0
        for statement in stream:
            if statement.is_comment:
                prefix, _ = split_comment(statement.text)
                if prefix == "TABLE":
                    break
                continue
            batch.append(statement.text)
            size += len(statement.text.encode("utf-8"))
            if size >= target_bytes:
                break
        else:
            exhausted = True
        yield batch
        completed += len(batch)


def _describe(progress: Any, message: str) -> None:
    if progress is not None:
        progress.set_description(message)


async def import_table(db: Database, path: str, table: TableSpan, progress: Any = None) -> int:
    """Import one table's data section in batches; return the queries sent.

    Failed batches are reported on ``progress`` and the import carries on.
    """
    completed = 0
    with open(path, "rb") as source:
        source.seek(table.offset)
        for batch in iter_batches(StatementStream(source), table.statements, BATCH_TARGET_BYTES):
            size = sum(len(query.encode("utf-8")) for query in batch)
            _describe(
                progress,
                f"Importing {table.name} data with {len(batch)} statements and {size} bytes:",
            )
            try:
                await db.import_batch(table.name, completed, batch)
            except (DatabaseError, OSError) as exc:
                _describe(progress, f"Failed to import {table.name}: {exc}")
            completed += len(batch)
            if progress is not None:
                progress.update(len(batch))
    return completed


async def run(path: str, db: Database, concurrency: int = DEFAULT_CONCURRENCY) -> list[TableSpan]:
    """Recreate the namespace and import the export at ``path``."""
    print(f"Removing namespace: {db.namespace}")
    await db.sql(f"REMOVE NAMESPACE IF EXISTS {db.namespace};")
    print(f"Removed namespace: {db.namespace}")

    with open(path, "rb") as source:
        definitions, tables = plan_import(StatementStream(source))

    print(f"Planning to import {len(definitions)} definition statements.")
    try:
        await db.import_batch("Initial", 0, definitions)
    except DatabaseError as exc:
        raise DatabaseError(f"Failed to import definitions: {exc}") from exc
    print(f"Successfully imported {len(definitions)} definition statements.")

    print(f"Planning to import {len(tables)} tables.")
    limit = asyncio.Semaphore(max(1, concurrency))

    async def worker(table: TableSpan) -> None:
        async with limit:
            with tqdm(total=table.statements, desc=table.name, leave=False) as bar:
                await import_table(db, path, table, bar)

    await asyncio.gather(*(worker(table) for table in tables))
    print(f"Successfully imported {len(tables)} tables.")
    return tables


async def _amain(args: Sequence[str]) -> None:
    db = Database.from_env()
    async with db:
        if not args:
            raise DatabaseError("No file path provided")
        await run(args[0], db, DEFAULT_CONCURRENCY)


def main(argv: Sequence[str] | None = None) -> int:
    """Import the export named on the command line; return an exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        asyncio.run(_amain(args))
    except (DatabaseError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())